"""Envelopes exchanged with a lookup client and the channels that carry them."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field


class ChannelStatus(str, Enum):
    STARTING = "STARTING"
    PARTIAL = "PARTIAL"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"
    STEP = "STEP"

    @property
    def terminal(self) -> bool:
        return self in (ChannelStatus.COMPLETE, ChannelStatus.ERROR)


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class LookupEnvelope(BaseModel):
    """One outbound message for the client of a lookup job."""

    model_config = ConfigDict(populate_by_name=True)

    status: ChannelStatus
    service: str | list[str] | None = None
    user: str | None = None
    time: str = Field(default_factory=timestamp)
    job_id: str | None = None
    class_name: str | None = Field(default=None, alias="class")
    duration: float | None = None
    count: int | None = None
    discard: bool | None = None
    data: Any = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LookupChannel(Protocol):
    async def send(self, envelope: LookupEnvelope) -> None:
        ...


class QueueChannel:
    """Delivers envelopes through an asyncio queue; ``None`` marks the end."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[LookupEnvelope | None] = asyncio.Queue(maxsize)

    async def send(self, envelope: LookupEnvelope) -> None:
        await self.queue.put(envelope)
        if envelope.status.terminal:
            await self.queue.put(None)

    async def __aiter__(self):
        while (envelope := await self.queue.get()) is not None:
            yield envelope


class CollectingChannel:
    def __init__(self) -> None:
        self.envelopes: list[LookupEnvelope] = []

    async def send(self, envelope: LookupEnvelope) -> None:
        self.envelopes.append(envelope)

    def statuses(self) -> list[ChannelStatus]:
        return [envelope.status for envelope in self.envelopes]
