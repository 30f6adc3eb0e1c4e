"""Direct object fetches from S3 buckets (BiblioVault and friends)."""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import boto3
import structlog
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from biblookup.errors import ConfigurationError, TransportError
from biblookup.records.aws_s3 import S3Download
from biblookup.services.ia_download import filename_from, safe_filename
from biblookup.settings import Settings

S3_URI = re.compile(r"^s3://(?P<bucket>[^/]+)/(?P<key>.+)$")
S3_HOST = re.compile(
    r"^(?:https?://)?(?P<bucket>[a-z0-9][a-z0-9.-]*?)\.s3(?:[.-](?P<region>[a-z0-9-]+))?\.amazonaws\.com/(?P<key>.+)$",
    flags=re.IGNORECASE,
)
S3_PATH_STYLE = re.compile(
    r"^(?:https?://)?s3(?:[.-][a-z0-9-]+)?\.amazonaws\.com/(?P<bucket>[^/]+)/(?P<key>.+)$",
    flags=re.IGNORECASE,
)
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class S3Location:
    bucket: str
    key: str


class AwsS3Service:
    """Streams objects by bucket and key; not a search provider."""

    name = "aws_s3"

    def __init__(self, settings: Settings, *, client: Any = None, logger: Any = None) -> None:
        self.config = settings.service(self.name)
        self._settings = settings
        self._client = client
        self._logger = logger or structlog.get_logger(__name__).bind(service=self.name)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self._settings.s3_region,
                config=BotoConfig(
                    retries={"max_attempts": 3, "mode": "standard"},
                    connect_timeout=self.config.timeout,
                    read_timeout=self.config.timeout,
                ),
            )
        return self._client

    def locate(self, item: str) -> S3Location:
        """Find the bucket and key for ``item``.

        The bucket is taken from an S3 URL or ``s3://`` URI when one is given,
        otherwise the configured default bucket is used with ``item`` as key.
        """
        item = item.strip()
        for pattern in (S3_URI, S3_HOST, S3_PATH_STYLE):
            if match := pattern.match(item):
                return S3Location(bucket=match.group("bucket"), key=match.group("key"))
        if not self._settings.s3_bucket:
            raise ConfigurationError(f"no bucket in {item!r} and no default S3 bucket configured")
        return S3Location(bucket=self._settings.s3_bucket, key=item.lstrip("/"))

    async def fetch(self, item: str) -> S3Download:
        """Read a whole object into an :class:`S3Download`."""
        location = self.locate(item)
        message, body = await self._open(location)
        if body is not None:
            try:
                message.body = await asyncio.to_thread(body.read)
            finally:
                _close(body)
            self._logger.info("s3.fetched", bucket=location.bucket, key=location.key, size=len(message.body))
        return message

    async def stream(self, item: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield an object's bytes in chunks; raises TransportError on failure."""
        location = self.locate(item)
        message, body = await self._open(location)
        if body is None:
            raise message.exception
        try:
            while chunk := await asyncio.to_thread(body.read, chunk_size):
                yield chunk
        finally:
            _close(body)

    async def _open(self, location: S3Location) -> tuple[S3Download, Any]:
        self._logger.debug("s3.get_object", bucket=location.bucket, key=location.key)
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=location.bucket, Key=location.key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "Unknown")
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            self._logger.warning("s3.client_error", bucket=location.bucket, key=location.key, code=code)
            error = TransportError(f"S3 {code} for s3://{location.bucket}/{location.key}", status=status, service=self.name)
            return S3Download.failure(error, status=status), None
        except BotoCoreError as exc:
            self._logger.warning("s3.error", bucket=location.bucket, key=location.key, error=str(exc))
            return S3Download.failure(TransportError(str(exc), service=self.name)), None
        disposition = response.get("ContentDisposition")
        message = S3Download(
            bucket=location.bucket,
            key=location.key,
            content_type=response.get("ContentType"),
            content_disposition=disposition,
            content_length=response.get("ContentLength"),
            filename=safe_filename(filename_from(disposition), safe_filename(location.key, location.bucket)),
            status=response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200),
        )
        return message, response["Body"]


def _close(body: Any) -> None:
    close = getattr(body, "close", None)
    if close is not None:
        close()
