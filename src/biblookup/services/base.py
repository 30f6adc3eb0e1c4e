"""Shared plumbing for remote provider adapters."""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any, ClassVar, Protocol, TypeVar

import httpx
import structlog

from biblookup.errors import TransportError
from biblookup.records.lookup import LookupItem
from biblookup.records.record import BibliographicRecord, Message
from biblookup.records.serializer import Format, WrapStrategy
from biblookup.services.data import LookupData, LookupResponse
from biblookup.services.request import LookupRequest
from biblookup.settings import ServiceConfig, Settings

M = TypeVar("M", bound=Message)


class SearchService(Protocol):
    """What the lookup orchestrator needs from a search adapter."""

    name: str
    enabled: bool
    priority: int
    timeout: float
    types: list[str]

    async def lookup_metadata(self, request: LookupRequest, *, extended: bool = False) -> LookupResponse:
        ...


class RemoteService:
    """Base class for adapters that talk to a provider over HTTP.

    Each subclass names its provider; configuration (enabled flag, priority,
    timeout, identifier types, base URL and API key) comes from
    :meth:`Settings.service` and may be overridden per instance.  Failed
    calls never raise: :meth:`_get` returns a message whose ``exception`` is
    populated instead.
    """

    name: ClassVar[str]
    api_key_param: ClassVar[str] = "api_key"
    default_options: ClassVar[Mapping[str, Any]] = {}

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        *,
        logger: Any = None,
        **overrides: Any,
    ) -> None:
        config = settings.service(self.name)
        self.config: ServiceConfig = config.model_copy(update=overrides) if overrides else config
        self._client = client
        self._settings = settings
        self._logger = logger or structlog.get_logger(__name__).bind(service=self.name)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def timeout(self) -> float:
        return self.config.timeout

    @property
    def types(self) -> list[str]:
        return self.config.types

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def api_options(self, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Final query parameters, with the API key under the provider's name."""
        options = {**self.default_options, **(params or {})}
        api_key = options.pop("api_key", None) or self.config.api_key
        if api_key:
            options[self.api_key_param] = api_key
        return {key: value for key, value in options.items() if value is not None}

    def request_headers(self) -> dict[str, str]:
        return {}

    async def _get(
        self,
        path: str,
        params: Mapping[str, Any] | None,
        message_type: type[M],
        *,
        fmt: Format | None = None,
        wrap: WrapStrategy | None = None,
    ) -> M:
        url = self.url_for(path)
        options = self.api_options(params)
        self._logger.debug("service.get", url=url, params=_redacted(options, self.api_key_param))
        try:
            response = await self._client.get(
                url, params=options, headers=self.request_headers(), timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            self._logger.warning("service.timeout", url=url, error=str(exc))
            return message_type.failure(TransportError(f"timeout: {exc}", service=self.name))
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            self._logger.warning("service.http_error", url=url, status=status)
            return message_type.failure(
                TransportError(f"HTTP {status} from {self.name}", status=status, service=self.name),
                status=status,
            )
        except httpx.HTTPError as exc:
            self._logger.warning("service.error", url=url, error=str(exc))
            return message_type.failure(TransportError(str(exc) or type(exc).__name__, service=self.name))
        return message_type(response.text, format=fmt or _format_of(response), wrap=wrap, status=response.status_code)

    # Lookup protocol

    async def fetch(self, request: LookupRequest) -> Message:
        raise NotImplementedError

    def pre_flight(self, request: LookupRequest) -> None:
        self._logger.info("service.lookup", ids=request.ids, query=request.query)

    def post_flight(self, message: Message, request: LookupRequest) -> Message:
        return message

    async def lookup_metadata(self, request: LookupRequest, *, extended: bool = False) -> LookupResponse:
        started = time.monotonic()
        self.pre_flight(request)
        message = await self.fetch(request)
        message = self.post_flight(message, request)
        duration = round(time.monotonic() - started, 3)
        diagnostic = {"status": message.status, "records": len(message.api_records())} if extended else None
        if message.exception is not None:
            self._logger.warning("service.lookup_failed", error=str(message.exception), duration=duration)
            return LookupResponse(
                service=self.name,
                status="failed",
                duration=duration,
                error=str(message.exception),
                diagnostic=diagnostic,
            )
        data = self.transform(message)
        self._logger.info("service.lookup_complete", count=data.count, duration=duration)
        return LookupResponse(
            service=self.name, status="completed", duration=duration, data=data, diagnostic=diagnostic
        )

    def transform(self, message: Message) -> LookupData:
        return self.transform_multiple(message.api_records())

    def transform_multiple(self, records: list) -> LookupData:
        data = LookupData()
        for index, record in enumerate(records, start=1):
            if not isinstance(record, BibliographicRecord):
                continue
            item = self.transform_single(record)
            data.add(item.best_identifier() or f"{self.name}-{index}", item)
        return data

    def transform_single(self, record: BibliographicRecord) -> LookupItem:
        return LookupItem(
            dc_title=record.full_title(),
            dc_creator=record.creator_list(),
            dc_identifier=record.identifier_list(),
            dc_subject=record.subject_list(),
            dc_language=record.language_list(),
            dc_publisher=record.full_publisher(),
            dc_description=record.description_list(),
            bib_series=record.journal_title(),
            bib_series_type=record.series_type(),
            bib_series_position=record.series_position(),
            emma_publication_date=record.publication_date(),
            dcterms_date_copyright=record.publication_year(),
        )


def _format_of(response: httpx.Response) -> Format:
    content_type = response.headers.get("content-type", "")
    return Format.XML if "xml" in content_type else Format.JSON


def _redacted(params: Mapping[str, Any], key: str) -> dict[str, Any]:
    return {name: "***" if name == key else value for name, value in params.items()}
