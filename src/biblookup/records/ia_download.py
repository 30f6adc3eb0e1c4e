"""Internet Archive on-the-fly download probe responses."""

from __future__ import annotations

from biblookup.records.record import Message, Record
from biblookup.records.schema import define_schema, scalar
from biblookup.records.serializer import Format, WrapWithTemplate


class IaDownloadMessage(Message):
    """Body of a probe reply: ``{"status": ..., "message": ...}``.

    Error replies are sometimes a bare JSON string; those are wrapped so the
    text lands in ``message``.
    """

    schema = define_schema(
        scalar("state", wire_name="status"),
        scalar("message"),
        scalar("reason", wire_name="error"),
    )
    wrap_formats = {Format.JSON: WrapWithTemplate('{"message": %(data)s}')}

    def _api_records(self) -> list[Record]:
        return [self]

    @property
    def text(self) -> str | None:
        return self.message or self.reason or self.state
