"""Result of streaming an object out of an S3 (BiblioVault) bucket."""

from __future__ import annotations

from typing import Any

from biblookup.records.record import Message, Record
from biblookup.records.schema import define_schema, scalar


class S3Download(Message):
    schema = define_schema(
        scalar("bucket"),
        scalar("key"),
        scalar("content_type"),
        scalar("content_disposition"),
        scalar("content_length", int),
        scalar("filename"),
    )

    def __init__(self, src: Any = None, *, body: bytes | None = None, **kwargs: Any) -> None:
        super().__init__(src, **kwargs)
        self.body = body

    def _api_records(self) -> list[Record]:
        return [self] if self.body is not None else []
