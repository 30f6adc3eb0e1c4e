"""Provider adapters and the lookup orchestrator."""

from .aws_s3 import AwsS3Service, S3Location
from .base import RemoteService, SearchService
from .channel import ChannelStatus, CollectingChannel, LookupChannel, LookupEnvelope, QueueChannel
from .crossref import CrossrefService
from .data import LookupData, LookupResponse
from .google_books import GoogleBooksService
from .ia_download import DownloadedFile, IaDownloadService, ProbeResult
from .lookup import LookupResult, LookupService, LookupState, ProviderState, ProviderStatus
from .merge import blend_data, merge_data
from .request import LookupJob, LookupOptions, LookupRequest, fix_term
from .world_cat import WorldCatService

__all__ = [
    "AwsS3Service",
    "S3Location",
    "RemoteService",
    "SearchService",
    "ChannelStatus",
    "CollectingChannel",
    "LookupChannel",
    "LookupEnvelope",
    "QueueChannel",
    "CrossrefService",
    "LookupData",
    "LookupResponse",
    "GoogleBooksService",
    "DownloadedFile",
    "IaDownloadService",
    "ProbeResult",
    "LookupResult",
    "LookupService",
    "LookupState",
    "ProviderState",
    "ProviderStatus",
    "blend_data",
    "merge_data",
    "LookupJob",
    "LookupOptions",
    "LookupRequest",
    "fix_term",
    "WorldCatService",
]
