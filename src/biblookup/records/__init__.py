"""Schema-driven record types for provider payloads."""

from .lookup import LookupItem
from .record import BibliographicRecord, Message, Record
from .schema import Field, FieldKind, Schema, attribute, define_schema, has_many, has_one, scalar, schema_from
from .serializer import (
    Format,
    FormatPolicy,
    NoWrap,
    WrapBoolean,
    WrapStrategy,
    WrapWithTemplate,
    deserialize,
    serialize,
    wrap,
)

__all__ = [
    "BibliographicRecord",
    "Field",
    "FieldKind",
    "Format",
    "FormatPolicy",
    "LookupItem",
    "Message",
    "NoWrap",
    "Record",
    "Schema",
    "WrapBoolean",
    "WrapStrategy",
    "WrapWithTemplate",
    "attribute",
    "define_schema",
    "deserialize",
    "has_many",
    "has_one",
    "scalar",
    "schema_from",
    "serialize",
    "wrap",
]
