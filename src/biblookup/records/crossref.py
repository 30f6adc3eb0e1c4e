"""Crossref REST API response records.

Crossref uses dasherized keys (``container-title``, ``isbn-type``) and a
few upper-case acronyms (``DOI``, ``URL``).  :meth:`CrossrefMessage.prepare`
transliterates the whole payload to underscore names before the generic
deserializer runs, and flattens ``date-parts`` down to a single list.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from biblookup.records.record import BibliographicRecord, Message, Record
from biblookup.records.schema import define_schema, has_many, has_one, scalar
from biblookup.records.serializer import Format

UPPERCASE_KEYS = {"DOI": "doi", "ISBN": "isbn", "ISSN": "issn", "URL": "url", "ORCID": "orcid"}


def transliterate(value: Any) -> Any:
    """Recursively rename Crossref keys to underscore form."""
    if isinstance(value, Mapping):
        result = {}
        for key, item in value.items():
            name = UPPERCASE_KEYS.get(key, key.replace("-", "_"))
            if name == "date_parts" and isinstance(item, list) and item and isinstance(item[0], list):
                item = item[0]
            result[name] = transliterate(item)
        return result
    if isinstance(value, list):
        return [transliterate(item) for item in value]
    return value


class CrossrefDateParts(Record):
    schema = define_schema(
        has_many("date_parts", int),
        scalar("date_time"),
        scalar("timestamp", int),
    )

    def to_date_string(self) -> str | None:
        parts = [part for part in self.date_parts if part is not None]
        if not parts:
            return None
        year, *rest = parts
        return "-".join([f"{year:04d}", *(f"{part:02d}" for part in rest[:2])])


class CrossrefAffiliation(Record):
    schema = define_schema(scalar("name"))


class CrossrefAuthor(Record):
    schema = define_schema(
        scalar("given"),
        scalar("family"),
        scalar("name"),
        scalar("suffix"),
        scalar("sequence", choices=("first", "additional")),
        scalar("orcid"),
        has_many("affiliation", CrossrefAffiliation),
    )

    def full_name(self) -> str | None:
        if self.family and self.given:
            return f"{self.family}, {self.given}"
        return self.family or self.name or self.given


class CrossrefTypedIdentifier(Record):
    schema = define_schema(scalar("type"), scalar("value"))
    identifying_fields = ("value",)


class CrossrefWork(BibliographicRecord):
    schema = define_schema(
        scalar("abstract"),
        has_one("accepted", CrossrefDateParts),
        has_one("approved", CrossrefDateParts),
        has_many("author", CrossrefAuthor),
        has_many("chair", CrossrefAuthor),
        has_many("container_title"),
        scalar("doi"),
        scalar("edition_number"),
        has_many("editor", CrossrefAuthor),
        has_many("isbn"),
        has_many("isbn_type", CrossrefTypedIdentifier),
        has_many("issn"),
        has_many("issn_type", CrossrefTypedIdentifier),
        scalar("issue"),
        has_one("issued", CrossrefDateParts),
        scalar("language"),
        has_many("original_title"),
        scalar("page"),
        has_one("posted", CrossrefDateParts),
        has_one("published", CrossrefDateParts),
        has_one("published_online", CrossrefDateParts),
        has_one("published_print", CrossrefDateParts),
        scalar("publisher"),
        scalar("publisher_location"),
        scalar("score", float),
        has_many("short_title"),
        has_many("subject"),
        has_many("subtitle"),
        has_many("title"),
        has_many("translator", CrossrefAuthor),
        scalar("type"),
        scalar("url"),
        scalar("volume"),
    )

    @classmethod
    def prepare(cls, data: Mapping[str, Any], fmt: Format) -> Mapping[str, Any]:
        return transliterate(data)

    def full_title(self) -> str | None:
        if not self.title:
            return None
        title = self.title[0]
        if self.subtitle and self.subtitle[0] not in title:
            title = f"{title}: {self.subtitle[0]}"
        return title

    def creator_list(self) -> list[str]:
        people = [*self.author, *self.editor, *self.translator, *self.chair]
        return list(dict.fromkeys(name for name in (p.full_name() for p in people) if name))

    def identifier_list(self) -> list[str]:
        result = [f"doi:{self.doi.lower()}"] if self.doi else []
        isbns = [entry.value for entry in self.isbn_type] or self.isbn
        issns = [entry.value for entry in self.issn_type] or self.issn
        result += [f"isbn:{value.replace('-', '')}" for value in isbns]
        result += [f"issn:{value}" for value in issns]
        return list(dict.fromkeys(result))

    def subject_list(self) -> list[str]:
        return list(self.subject)

    def language_list(self) -> list[str]:
        return [self.language] if self.language else []

    def full_publisher(self) -> str | None:
        if self.publisher and self.publisher_location:
            return f"{self.publisher_location}: {self.publisher}"
        return self.publisher

    def description_list(self) -> list[str]:
        return [self.abstract] if self.abstract else []

    def journal_title(self) -> str | None:
        return self.container_title[0] if self.container_title else None

    def series_type(self) -> str | None:
        if not self.type or not self.container_title:
            return None
        return self.type.split("-")[0]

    def series_position(self) -> str | None:
        parts = []
        if self.volume:
            parts.append(f"v. {self.volume}")
        if self.issue:
            parts.append(f"no. {self.issue}")
        if self.page:
            parts.append(f"p. {self.page}")
        return ", ".join(parts) or None

    def publication_date(self) -> str | None:
        for dates in (self.issued, self.published, self.published_print, self.published_online, self.posted):
            if dates is not None and (value := dates.to_date_string()):
                return value
        return None


class CrossrefWorkList(Record):
    schema = define_schema(
        scalar("total_results", int),
        scalar("items_per_page", int),
        scalar("next_cursor"),
        has_many("items", CrossrefWork),
    )


class CrossrefMessage(Message):
    """Common envelope: ``{status, message-type, message-version, message}``."""

    @classmethod
    def prepare(cls, data: Mapping[str, Any], fmt: Format) -> Mapping[str, Any]:
        return transliterate(data)


class CrossrefWorkMessage(CrossrefMessage):
    schema = define_schema(
        scalar("api_status", wire_name="status"),
        scalar("message_type"),
        scalar("message_version"),
        has_one("message", CrossrefWork),
    )

    def _api_records(self) -> list[Record]:
        return [self.message]


class CrossrefWorkListMessage(CrossrefMessage):
    schema = define_schema(
        scalar("api_status", wire_name="status"),
        scalar("message_type"),
        scalar("message_version"),
        has_one("message", CrossrefWorkList),
    )

    def _api_records(self) -> list[Record]:
        return list(self.message.items)
