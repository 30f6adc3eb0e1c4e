"""WebSocket transport for lookup jobs."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Optional

import httpx
import structlog
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from biblookup.errors import ConfigurationError, InvalidRequestError
from biblookup.logs import configure_logging
from biblookup.services import ChannelStatus, LookupEnvelope, LookupJob, LookupService
from biblookup.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

LookupFactory = Callable[[httpx.AsyncClient, Settings], LookupService]


class WebSocketChannel:
    """Sends each envelope to the client as one JSON text frame."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, envelope: LookupEnvelope) -> None:
        await self.websocket.send_json(envelope.to_payload())


def create_app(
    settings: Optional[Settings] = None,
    lookup_factory: Optional[LookupFactory] = None,
) -> FastAPI:
    """Factory used by uvicorn."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    factory = lookup_factory or LookupService.from_settings
    app = FastAPI(title="Bibliographic Lookup")

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "services": {name: config.enabled for name, config in settings.services.items()},
        }

    @app.websocket("/lookup")
    async def lookup(websocket: WebSocket) -> None:
        await websocket.accept()
        channel = WebSocketChannel(websocket)
        async with httpx.AsyncClient() as client:
            service = factory(client, settings)
            try:
                while True:
                    text = await websocket.receive_text()
                    await _run_job(service, channel, text)
            except WebSocketDisconnect:
                logger.info("web.disconnected")

    return app


async def _run_job(service: LookupService, channel: WebSocketChannel, text: str) -> None:
    try:
        job = LookupJob.parse(json.loads(text))
    except (ValueError, InvalidRequestError) as exc:
        logger.warning("web.bad_request", error=str(exc))
        await channel.send(
            LookupEnvelope(status=ChannelStatus.ERROR, class_name="InvalidRequestError", data={"error": str(exc)})
        )
        return
    try:
        await service.lookup(
            job.to_request(),
            channel=channel,
            job_id=job.job_id,
            user=job.user,
        )
    except (InvalidRequestError, ConfigurationError) as exc:
        logger.warning("web.lookup_rejected", error=str(exc))
