"""Per-provider lookup responses and their item collections."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from biblookup.records.lookup import LookupItem

ResponseStatus = Literal["completed", "failed"]


@dataclass(slots=True)
class LookupData:
    """Lookup items grouped by their best identifier."""

    items: dict[str, list[LookupItem]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return sum(len(entries) for entries in self.items.values())

    def add(self, key: str, item: LookupItem) -> None:
        self.items.setdefault(key, []).append(item)

    def all_items(self) -> list[LookupItem]:
        return [item for entries in self.items.values() for item in entries]

    def to_dict(self) -> dict[str, Any]:
        return {"items": {key: [item.to_dict() for item in entries] for key, entries in self.items.items()}}


@dataclass(slots=True)
class LookupResponse:
    service: str
    status: ResponseStatus
    duration: float
    data: LookupData = field(default_factory=LookupData)
    error: str | None = None
    diagnostic: dict[str, Any] | None = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    @property
    def count(self) -> int:
        return self.data.count

    @classmethod
    def failed(cls, service: str, error: str, duration: float = 0.0) -> "LookupResponse":
        return cls(service=service, status="failed", duration=duration, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "service": self.service,
            "status": self.status,
            "duration": self.duration,
            "count": self.count,
            "data": self.data.to_dict(),
        }
        if self.error:
            payload["error"] = self.error
        if self.diagnostic:
            payload["diagnostic"] = self.diagnostic
        return payload
