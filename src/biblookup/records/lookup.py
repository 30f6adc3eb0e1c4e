"""The provider-neutral item produced by every search adapter."""

from __future__ import annotations

from biblookup.records.record import Record
from biblookup.records.schema import define_schema, has_many, scalar
from biblookup.records.serializer import Format

_PLAIN_NAMES = {"render_element": "default", "render_attribute": "default"}


class LookupItem(Record):
    """Dublin Core style metadata for a single matched publication."""

    schema = define_schema(
        scalar("dc_title"),
        has_many("dc_creator"),
        has_many("dc_identifier"),
        has_many("dc_subject"),
        has_many("dc_language"),
        scalar("dc_publisher"),
        has_many("dc_description"),
        scalar("bib_series"),
        scalar("bib_series_type", wire_name="bib_seriesType"),
        scalar("bib_series_position", wire_name="bib_seriesPosition"),
        scalar("emma_publication_date", wire_name="emma_publicationDate"),
        scalar("dcterms_date_copyright", wire_name="dcterms_dateCopyright"),
    )
    policy_overrides = {fmt: _PLAIN_NAMES for fmt in (Format.HASH, Format.JSON, Format.OBJ)}
    xml_root = "item"

    def best_identifier(self) -> str | None:
        return self.dc_identifier[0] if self.dc_identifier else None
