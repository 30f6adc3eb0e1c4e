"""Google Books volumes API records (``{kind, totalItems, items}``)."""

from __future__ import annotations

from biblookup.identifiers import Identifier
from biblookup.records.record import BibliographicRecord, Message, Record
from biblookup.records.schema import define_schema, has_many, has_one, scalar
from biblookup.records.serializer import Format

GOOGLE_POLICY = {fmt: {"parse_element": "camelcase"} for fmt in (Format.HASH, Format.JSON, Format.OBJ)}

INDUSTRY_TYPES = {"ISBN_10": "isbn", "ISBN_13": "isbn", "ISSN": "issn"}


class GoogleBooksIdentifier(Record):
    schema = define_schema(scalar("type"), scalar("identifier"))
    policy_overrides = GOOGLE_POLICY
    identifying_fields = ("identifier",)

    def to_identifier(self) -> Identifier | None:
        kind = INDUSTRY_TYPES.get((self.type or "").upper())
        if kind:
            return Identifier.cast(self.identifier, kind)
        # Entries typed OTHER carry their own prefix, e.g. "OCLC:12345".
        return Identifier.parse(self.identifier)


class GoogleBooksVolumeInfo(Record):
    schema = define_schema(
        scalar("title"),
        scalar("subtitle"),
        has_many("authors"),
        scalar("publisher"),
        scalar("published_date"),
        scalar("description"),
        has_many("industry_identifiers", GoogleBooksIdentifier),
        scalar("page_count", int),
        scalar("print_type"),
        has_many("categories"),
        scalar("language"),
        scalar("preview_link"),
        scalar("info_link"),
        scalar("canonical_volume_link"),
    )
    policy_overrides = GOOGLE_POLICY


class GoogleBooksVolume(BibliographicRecord):
    schema = define_schema(
        scalar("kind"),
        scalar("id"),
        scalar("etag"),
        scalar("self_link"),
        has_one("volume_info", GoogleBooksVolumeInfo),
    )
    policy_overrides = GOOGLE_POLICY

    @property
    def info(self) -> GoogleBooksVolumeInfo:
        return self.volume_info or GoogleBooksVolumeInfo()

    def full_title(self) -> str | None:
        if self.info.title and self.info.subtitle:
            return f"{self.info.title}: {self.info.subtitle}"
        return self.info.title

    def creator_list(self) -> list[str]:
        return list(self.info.authors)

    def identifier_list(self) -> list[str]:
        result = []
        for entry in self.info.industry_identifiers:
            identifier = entry.to_identifier()
            if identifier is not None:
                result.append(str(identifier))
        return list(dict.fromkeys(result))

    def subject_list(self) -> list[str]:
        return list(self.info.categories)

    def language_list(self) -> list[str]:
        return [self.info.language] if self.info.language else []

    def full_publisher(self) -> str | None:
        return self.info.publisher

    def description_list(self) -> list[str]:
        return [self.info.description] if self.info.description else []

    def publication_date(self) -> str | None:
        return self.info.published_date


class GoogleBooksVolumes(Message):
    schema = define_schema(
        scalar("kind"),
        scalar("total_items", int),
        has_many("items", GoogleBooksVolume),
    )
    policy_overrides = GOOGLE_POLICY

    def _api_records(self) -> list[Record]:
        return list(self.items)
