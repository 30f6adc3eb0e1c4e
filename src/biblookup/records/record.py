"""Record and Message value objects built on the schema framework."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

import structlog

from biblookup.errors import DeserializationError
from biblookup.records.schema import Schema, define_schema
from biblookup.records.serializer import Format, WrapStrategy, load_values, serialize

logger = structlog.get_logger(__name__)


class Record:
    """An instance of a schema: one attribute per declared field."""

    schema: ClassVar[Schema] = define_schema()
    policy_overrides: ClassVar[Mapping[Format, Mapping[str, Any]]] = {}
    wrap_formats: ClassVar[Mapping[Format, WrapStrategy]] = {}
    identifying_fields: ClassVar[tuple[str, ...]] = ()
    xml_root: ClassVar[str | None] = None

    def __init__(
        self,
        src: Any = None,
        *,
        format: Format | str | None = None,
        wrap: WrapStrategy | None = None,
        error: Exception | None = None,
        **data: Any,
    ) -> None:
        self.error = error
        for field in self.schema:
            setattr(self, field.name, field.empty_value())
        if src is not None:
            values, problem = load_values(type(self), src, format, wrap)
            self._assign(values)
            if problem is not None:
                self.error = self.error or problem
            elif self.identifying_fields and not self.identified:
                raise DeserializationError(
                    f"{type(self).__name__} requires one of {', '.join(self.identifying_fields)}"
                )
            self._after_load()
        if data:
            self.update(data)

    @classmethod
    def loaded(cls, values: Mapping[str, Any]):
        record = cls()
        record._assign(values)
        record._after_load()
        return record

    @classmethod
    def prepare(cls, data: Mapping[str, Any], fmt: Format) -> Mapping[str, Any]:
        """Adjust raw mapping data before generic deserialization."""
        return data

    def _after_load(self) -> None:
        pass

    def _assign(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            setattr(self, name, value)

    def update(self, values: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        for name, value in {**(values or {}), **kwargs}.items():
            if name not in self.schema:
                raise TypeError(f"{type(self).__name__} has no field {name!r}")
            field = self.schema[name]
            if field.collection and value is None:
                value = []
            setattr(self, name, list(value) if field.collection else value)

    @property
    def identified(self) -> bool:
        return any(getattr(self, name, None) not in (None, "", []) for name in self.identifying_fields)

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error else None

    def fields(self) -> dict[str, Any]:
        return {field.name: getattr(self, field.name) for field in self.schema}

    def to_dict(self) -> dict[str, Any]:
        return serialize(self, Format.HASH)

    def to_json(self) -> str:
        return serialize(self, Format.JSON)

    def to_xml(self) -> str:
        return serialize(self, Format.XML)

    def to_obj(self) -> str:
        return serialize(self, Format.OBJ)

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self.fields() == other.fields()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        shown = ", ".join(f"{name}={value!r}" for name, value in self.fields().items() if value not in (None, []))
        return f"{type(self).__name__}({shown})"


class BibliographicRecord(Record):
    """Common accessors used to normalize provider records into lookup items."""

    def full_title(self) -> str | None:
        return None

    def creator_list(self) -> list[str]:
        return []

    def identifier_list(self) -> list[str]:
        return []

    def subject_list(self) -> list[str]:
        return []

    def language_list(self) -> list[str]:
        return []

    def full_publisher(self) -> str | None:
        return None

    def description_list(self) -> list[str]:
        return []

    def journal_title(self) -> str | None:
        return None

    def series_type(self) -> str | None:
        return None

    def series_position(self) -> str | None:
        return None

    def publication_date(self) -> str | None:
        return None

    def publication_year(self) -> str | None:
        date = self.publication_date()
        return date[:4] if date and date[:4].isdigit() else None

    def best_identifier(self) -> str | None:
        identifiers = self.identifier_list()
        return identifiers[0] if identifiers else None


class Message(Record):
    """A full provider response, successful or not."""

    def __init__(
        self,
        src: Any = None,
        *,
        status: int | None = None,
        exception: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(src, **kwargs)
        self.status = status
        self.exception = exception if exception is not None else self.error

    @classmethod
    def failure(cls, exception: Exception, status: int | None = None):
        return cls(status=status, exception=exception)

    @property
    def ok(self) -> bool:
        return self.exception is None

    def api_records(self) -> list[Record]:
        """Business records inside the provider envelope; never raises."""
        try:
            records = self._api_records()
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            logger.debug("message.api_records_failed", message=type(self).__name__, error=str(exc))
            return []
        return [record for record in records or [] if record is not None]

    def _api_records(self) -> list[Record]:
        return []
