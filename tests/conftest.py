from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
import pytest
import structlog

from biblookup.records.lookup import LookupItem
from biblookup.services.data import LookupData, LookupResponse
from biblookup.settings import Settings


@dataclass
class DummyService:
    name: str
    items: list[LookupItem] = field(default_factory=list)
    delay: float = 0.0
    priority: int = 1
    timeout: float = 5.0
    types: list[str] = field(default_factory=lambda: ["isbn", "oclc"])
    enabled: bool = True
    error: Optional[Exception] = None
    calls: int = 0
    cancelled: bool = False

    async def lookup_metadata(self, request, *, extended: bool = False) -> LookupResponse:
        self.calls += 1
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        data = LookupData()
        for index, item in enumerate(self.items, start=1):
            data.add(item.best_identifier() or f"{self.name}-{index}", item)
        return LookupResponse(service=self.name, status="completed", duration=self.delay, data=data)


@pytest.fixture
def dummy_service() -> Callable[..., DummyService]:
    return DummyService


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path, log_level="WARNING")


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    def build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
