"""Declarative field schemas attached to record types."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType

from biblookup.errors import SchemaError
from biblookup.utils import camelize, underscore

SCALAR_TYPES: tuple[type, ...] = (str, int, float, bool, datetime, date)

NAMING_MODES = (
    "default",
    "underscore",
    "underscore_uppercase",
    "camelcase",
    "full_camelcase",
    "lowercase",
    "uppercase",
    "dasherize",
)


class FieldKind(str, Enum):
    SCALAR = "scalar"
    ONE = "one"
    MANY = "many"


@dataclass(frozen=True, slots=True)
class Field:
    """One named field of a schema and its render options."""

    name: str
    kind: FieldKind = FieldKind.SCALAR
    type: type = str
    wire_name: str | None = None
    attribute: bool = False
    text: bool = False
    wrap: bool | None = None
    required: bool = False
    choices: tuple[str, ...] | None = None

    @property
    def nested(self) -> bool:
        return is_record_type(self.type)

    @property
    def collection(self) -> bool:
        return self.kind is FieldKind.MANY

    def empty_value(self):
        return [] if self.collection else None


def scalar(name: str, type_: type = str, **options) -> Field:
    return Field(name=name, kind=FieldKind.SCALAR, type=type_, **options)


def attribute(name: str, type_: type = str, **options) -> Field:
    """An XML attribute when rendered by a format that keeps attributes."""
    return Field(name=name, kind=FieldKind.SCALAR, type=type_, attribute=True, **options)


def has_one(name: str, type_: type, **options) -> Field:
    return Field(name=name, kind=FieldKind.ONE, type=type_, **options)


def has_many(name: str, type_: type = str, **options) -> Field:
    return Field(name=name, kind=FieldKind.MANY, type=type_, **options)


def is_record_type(value: object) -> bool:
    return isinstance(value, type) and isinstance(getattr(value, "schema", None), Schema)


class Schema:
    """Ordered, validated collection of fields."""

    def __init__(self, fields: Iterable[Field]) -> None:
        ordered = tuple(fields)
        seen: set[str] = set()
        for field in ordered:
            if not isinstance(field, Field):
                raise SchemaError(f"not a field declaration: {field!r}")
            if field.name in seen:
                raise SchemaError(f"duplicate field name {field.name!r}")
            seen.add(field.name)
            _check_type(field)
        self._fields = ordered
        self._by_name = MappingProxyType({field.name: field for field in ordered})

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __getitem__(self, name: str) -> Field:
        return self._by_name[name]

    def __repr__(self) -> str:
        return f"Schema({', '.join(self.names)})"

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(field.name for field in self._fields)

    def derive(self, *extra: Field, exclude: Iterable[str] = ()) -> "Schema":
        """Copy this schema, preserving field order, then append ``extra``."""
        skipped = set(exclude)
        return Schema([field for field in self._fields if field.name not in skipped] + list(extra))

    def with_options(self, name: str, **options) -> "Schema":
        return Schema(replace(field, **options) if field.name == name else field for field in self._fields)


def _check_type(field: Field) -> None:
    target = field.type
    if field.kind is FieldKind.SCALAR:
        if target in SCALAR_TYPES or (isinstance(target, type) and issubclass(target, Enum)):
            return
        raise SchemaError(f"field {field.name!r} declares unsupported scalar type {target!r}")
    if target in SCALAR_TYPES and field.kind is FieldKind.MANY:
        return
    if isinstance(target, type) and issubclass(target, Enum) and field.kind is FieldKind.MANY:
        return
    if not is_record_type(target) or not len(target.schema):
        raise SchemaError(f"nested field {field.name!r} requires a record type with a schema, got {target!r}")
    if field.attribute or field.text:
        raise SchemaError(f"nested field {field.name!r} cannot be an attribute or text node")


def define_schema(*fields: Field) -> Schema:
    return Schema(fields)


def schema_from(source: type, *extra: Field, exclude: Iterable[str] = ()) -> Schema:
    """Derive a schema wholesale from another record type."""
    if not is_record_type(source):
        raise SchemaError(f"{source!r} has no schema to derive from")
    return source.schema.derive(*extra, exclude=exclude)


def transform_name(name: str, mode: str) -> str:
    match mode:
        case "default":
            return name
        case "underscore":
            return underscore(name)
        case "underscore_uppercase":
            return underscore(name).upper()
        case "camelcase":
            return camelize(name)
        case "full_camelcase":
            return camelize(name, upper_first=True)
        case "lowercase":
            return name.lower()
        case "uppercase":
            return name.upper()
        case "dasherize":
            return underscore(name).replace("_", "-")
    raise SchemaError(f"unknown naming mode {mode!r}")
