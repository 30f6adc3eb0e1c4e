"""Concurrent fan-out of a lookup request to the enabled search adapters."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog

from biblookup.errors import AggregateTimeout, ConfigurationError, InvalidRequestError, ProviderTimeout
from biblookup.services.base import SearchService
from biblookup.services.channel import ChannelStatus, LookupChannel, LookupEnvelope
from biblookup.services.crossref import CrossrefService
from biblookup.services.data import LookupData, LookupResponse
from biblookup.services.google_books import GoogleBooksService
from biblookup.services.merge import merge_data
from biblookup.services.request import LookupRequest
from biblookup.services.world_cat import WorldCatService
from biblookup.settings import Settings

SEARCH_SERVICES = (CrossrefService, GoogleBooksService, WorldCatService)


class ProviderState(str, Enum):
    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class LookupState(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    DONE = "DONE"


@dataclass(slots=True)
class ProviderStatus:
    service: str
    state: ProviderState = ProviderState.PENDING
    error: str | None = None
    duration: float | None = None
    timed_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"state": self.state.value}
        if self.error:
            payload["error"] = self.error
        if self.duration is not None:
            payload["duration"] = self.duration
        return payload


@dataclass(slots=True)
class LookupResult:
    job_id: str
    request: LookupRequest
    state: LookupState = LookupState.PENDING
    providers: dict[str, ProviderStatus] = field(default_factory=dict)
    responses: dict[str, LookupResponse] = field(default_factory=dict)
    data: LookupData = field(default_factory=LookupData)
    discard: list[str] = field(default_factory=list)

    @property
    def completed(self) -> list[str]:
        return [name for name, status in self.providers.items() if status.state is ProviderState.COMPLETED]

    @property
    def failed(self) -> list[str]:
        return [name for name, status in self.providers.items() if status.state is ProviderState.FAILED]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.data.to_dict(),
            "providers": {name: status.to_dict() for name, status in self.providers.items()},
            "discard": list(self.discard),
        }


class LookupService:
    """Runs one lookup across several providers and streams its progress.

    Services are queried concurrently, each bounded by its own timeout,
    while the whole lookup is bounded by an overall deadline.  Providers
    still running at the deadline are cancelled and reported as failed by
    timeout; results that already arrived are kept.
    """

    def __init__(
        self,
        services: Iterable[SearchService],
        *,
        timeout: float | None = None,
        logger: Any = None,
    ) -> None:
        self._services = {service.name: service for service in services}
        self.timeout = timeout if timeout is not None else 2 * max(
            (service.timeout for service in self._services.values()), default=10.0
        )
        self._logger = logger or structlog.get_logger(__name__)

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "LookupService":
        services = [service_class(client, settings) for service_class in SEARCH_SERVICES]
        return cls(services, timeout=settings.lookup_timeout)

    def service_table(self) -> list[SearchService]:
        """Enabled services, most authoritative first."""
        enabled = [service for service in self._services.values() if service.enabled]
        return sorted(enabled, key=lambda service: (service.priority, -len(service.types), service.name))

    def services_for(self, request: LookupRequest, names: Iterable[str] | None = None) -> list[SearchService]:
        """Services able to answer ``request``; explicit names are validated."""
        id_types = set(request.id_types)
        if names:
            selected = []
            for name in names:
                service = self._services.get(name)
                if service is None:
                    raise ConfigurationError(f"unknown lookup service {name!r}")
                if id_types and not id_types.intersection(service.types):
                    raise ConfigurationError(f"{name} does not support {', '.join(sorted(id_types))}")
                selected.append(service)
            return sorted(selected, key=lambda service: (service.priority, -len(service.types), service.name))
        table = self.service_table()
        if not id_types:
            return table
        return [service for service in table if id_types.intersection(service.types)]

    async def get_from(self, service: SearchService, request: LookupRequest) -> LookupResponse:
        """Query one provider; failures come back as a failed response."""
        started = time.monotonic()
        try:
            return await asyncio.wait_for(service.lookup_metadata(request), timeout=service.timeout)
        except asyncio.TimeoutError:
            error = ProviderTimeout(service.name, service.timeout)
            self._logger.warning("lookup.provider_timeout", service=service.name, timeout=service.timeout)
            return LookupResponse.failed(service.name, f"timeout: {error}", _elapsed(started))
        except Exception as exc:
            self._logger.warning("lookup.provider_error", service=service.name, error=str(exc))
            return LookupResponse.failed(service.name, str(exc) or type(exc).__name__, _elapsed(started))

    async def lookup(
        self,
        request: LookupRequest,
        *,
        channel: LookupChannel | None = None,
        timeout: float | None = None,
        services: Iterable[str] | None = None,
        job_id: str | None = None,
        user: str | None = None,
    ) -> LookupResult:
        job_id = job_id or uuid.uuid4().hex

        async def send(status: ChannelStatus, **fields: Any) -> None:
            if channel is not None:
                await channel.send(LookupEnvelope(status=status, job_id=job_id, user=user, **fields))

        if request.empty:
            await send(ChannelStatus.ERROR, class_name="InvalidRequestError", data={"error": "no search terms"})
            raise InvalidRequestError("lookup request has no terms")
        try:
            selected = self.services_for(request, services or request.services)
        except ConfigurationError as exc:
            await send(ChannelStatus.ERROR, class_name="ConfigurationError", data={"error": str(exc)})
            raise

        deadline = timeout or request.timeout or self.timeout
        result = LookupResult(job_id=job_id, request=request)
        result.providers = {service.name: ProviderStatus(service.name) for service in selected}
        self._logger.info("lookup.start", job_id=job_id, services=list(result.providers), terms=request.terms)
        await send(
            ChannelStatus.STARTING,
            class_name="LookupRequest",
            service=list(result.providers),
            data=request.to_dict(),
        )

        tasks: dict[asyncio.Task[LookupResponse], SearchService] = {}
        for service in selected:
            result.providers[service.name].state = ProviderState.IN_FLIGHT
            tasks[asyncio.create_task(self.get_from(service, request))] = service

        loop = asyncio.get_running_loop()
        end = loop.time() + deadline
        pending = set(tasks)
        try:
            while pending:
                remaining = end - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    response = task.result()
                    self._record(result, response)
                    await send(
                        ChannelStatus.PARTIAL,
                        class_name="LookupResponse",
                        service=response.service,
                        duration=response.duration,
                        count=response.count,
                        data=response.to_dict(),
                    )
        finally:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        if pending:
            late = sorted(tasks[task].name for task in pending)
            error = AggregateTimeout(late, deadline)
            self._logger.warning("lookup.deadline", job_id=job_id, discard=late, timeout=deadline)
            for name in late:
                status = result.providers[name]
                status.state, status.error, status.timed_out = ProviderState.FAILED, f"timeout: {error}", True
            result.discard = late

        result.state = LookupState.DONE
        ordered = [result.responses[service.name] for service in selected if service.name in result.responses]
        result.data = merge_data(ordered, request)
        self._logger.info(
            "lookup.complete",
            job_id=job_id,
            completed=result.completed,
            failed=result.failed,
            count=result.data.count,
        )
        await send(
            ChannelStatus.COMPLETE,
            class_name="LookupResult",
            service=result.completed,
            count=result.data.count,
            discard=bool(result.discard),
            data=result.to_dict(),
        )
        return result

    def _record(self, result: LookupResult, response: LookupResponse) -> None:
        status = result.providers[response.service]
        status.duration = response.duration
        if response.completed:
            status.state = ProviderState.COMPLETED
            result.responses[response.service] = response
            result.state = LookupState.PARTIAL
        else:
            status.state = ProviderState.FAILED
            status.error = response.error


def _elapsed(started: float) -> float:
    return round(time.monotonic() - started, 3)
