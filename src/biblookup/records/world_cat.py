"""WorldCat records: OpenSearch Atom feeds, SRU responses and MARCXML."""

from __future__ import annotations

import re

from biblookup.identifiers import Identifier
from biblookup.records.record import BibliographicRecord, Message, Record
from biblookup.records.schema import attribute, define_schema, has_many, has_one, scalar, schema_from
from biblookup.records.serializer import Format

WORLDCAT_POLICY = {
    Format.XML: {
        "parse_element": "camelcase",
        "parse_attribute": "camelcase",
        "render_element": "camelcase",
        "render_attribute": "camelcase",
        "attributes_as_elements": False,
        "wrap_collections": False,
    }
}

BARE_NUMBER = re.compile(r"^\d[\d\s-]*[\dXx]$")
TRAILING_PUNCTUATION = " /:;,."


def fix_identifier(value: str) -> str:
    """Prefix a bare SRU identifier number with ``isbn:``.

    WorldCat returns ISBNs in ``dc:identifier`` without a type; values that
    are already typed or that are URLs are left alone.
    """
    value = value.strip()
    if ":" in value or value.lower().startswith("http"):
        return value
    if BARE_NUMBER.match(value):
        return f"isbn:{value}"
    return value


def _typed(values: list[str]) -> list[str]:
    result = []
    for value in values:
        value = value.removeprefix("urn:").removeprefix("URN:")
        if value.lower().startswith("http"):
            continue
        identifier = Identifier.parse(value)
        if identifier is not None:
            result.append(str(identifier))
    return result


class AtomAuthor(Record):
    schema = define_schema(scalar("name"))
    policy_overrides = WORLDCAT_POLICY


class AtomLink(Record):
    schema = define_schema(attribute("href"), attribute("rel"))
    policy_overrides = WORLDCAT_POLICY


class OpenSearchEntry(BibliographicRecord):
    schema = define_schema(
        has_many("author", AtomAuthor),
        scalar("title"),
        has_one("link", AtomLink),
        scalar("id"),
        scalar("updated"),
        scalar("summary"),
        scalar("content"),
        scalar("record_identifier"),
        has_many("identifier"),
    )
    policy_overrides = WORLDCAT_POLICY
    xml_root = "entry"

    def full_title(self) -> str | None:
        return self.title

    def creator_list(self) -> list[str]:
        return [author.name for author in self.author if author.name]

    def identifier_list(self) -> list[str]:
        result = [f"oclc:{self.record_identifier}"] if self.record_identifier else []
        return list(dict.fromkeys(result + _typed(self.identifier)))

    def description_list(self) -> list[str]:
        return [self.summary] if self.summary else []


class OpenSearchFeed(Message):
    schema = define_schema(
        scalar("title"),
        scalar("id"),
        scalar("updated"),
        scalar("total_results", int),
        scalar("start_index", int),
        scalar("items_per_page", int),
        has_many("entry", OpenSearchEntry),
    )
    policy_overrides = WORLDCAT_POLICY
    xml_root = "feed"

    def _api_records(self) -> list[Record]:
        return list(self.entry)


class SruDublinCore(BibliographicRecord):
    schema = define_schema(
        has_many("dc_creator", wire_name="creator"),
        has_many("dc_contributor", wire_name="contributor"),
        scalar("dc_date", wire_name="date"),
        has_many("dc_description", wire_name="description"),
        has_many("dc_format", wire_name="format"),
        has_many("dc_identifier", wire_name="identifier"),
        has_many("dc_language", wire_name="language"),
        has_many("dc_publisher", wire_name="publisher"),
        has_many("dc_subject", wire_name="subject"),
        scalar("dc_title", wire_name="title"),
        has_many("dc_type", wire_name="type"),
        scalar("record_identifier"),
    )
    policy_overrides = WORLDCAT_POLICY
    xml_root = "oclcdcs"

    def _after_load(self) -> None:
        self.dc_identifier = [fix_identifier(value) for value in self.dc_identifier]

    def full_title(self) -> str | None:
        return self.dc_title

    def creator_list(self) -> list[str]:
        return list(self.dc_creator)

    def identifier_list(self) -> list[str]:
        result = [f"oclc:{self.record_identifier}"] if self.record_identifier else []
        return list(dict.fromkeys(result + _typed(self.dc_identifier)))

    def subject_list(self) -> list[str]:
        return [subject.rstrip(TRAILING_PUNCTUATION) for subject in self.dc_subject]

    def language_list(self) -> list[str]:
        return list(self.dc_language)

    def full_publisher(self) -> str | None:
        return self.dc_publisher[0] if self.dc_publisher else None

    def description_list(self) -> list[str]:
        return list(self.dc_description)

    def publication_date(self) -> str | None:
        if not self.dc_date:
            return None
        match = re.search(r"\d{4}", self.dc_date)
        return match.group(0) if match else None


class MarcSubfield(Record):
    schema = define_schema(attribute("code"), scalar("value", text=True))
    policy_overrides = WORLDCAT_POLICY


class MarcControlField(Record):
    schema = define_schema(attribute("tag"), scalar("value", text=True))
    policy_overrides = WORLDCAT_POLICY


class MarcDataField(Record):
    schema = define_schema(
        attribute("tag"),
        attribute("ind1"),
        attribute("ind2"),
        has_many("subfield", MarcSubfield),
    )
    policy_overrides = WORLDCAT_POLICY

    def values(self, codes: str) -> list[str]:
        return [sub.value for sub in self.subfield if sub.code in codes and sub.value]


class MarcRecord(BibliographicRecord):
    schema = define_schema(
        scalar("leader"),
        has_many("controlfield", MarcControlField),
        has_many("datafield", MarcDataField),
    )
    policy_overrides = WORLDCAT_POLICY
    xml_root = "record"

    def control(self, tag: str) -> str | None:
        return next((field.value for field in self.controlfield if field.tag == tag), None)

    def data(self, tags: str | tuple[str, ...], codes: str = "a") -> list[str]:
        tags = (tags,) if isinstance(tags, str) else tags
        return [
            value.strip().rstrip(TRAILING_PUNCTUATION)
            for field in self.datafield
            if field.tag in tags
            for value in field.values(codes)
        ]

    def full_title(self) -> str | None:
        for field in self.datafield:
            if field.tag == "245":
                parts = [part.strip().rstrip(TRAILING_PUNCTUATION) for part in field.values("ab")]
                return ": ".join(part for part in parts if part) or None
        return None

    def creator_list(self) -> list[str]:
        return list(dict.fromkeys(self.data(("100", "110", "700", "710"))))

    def identifier_list(self) -> list[str]:
        result = []
        if oclc := self.control("001"):
            result.append(str(Identifier.cast(oclc, "oclc")))
        for tag, kind in (("020", "isbn"), ("022", "issn"), ("010", "lccn")):
            for value in self.data(tag):
                # Subfields often carry qualifiers after the number, e.g. "0306406152 (pbk.)".
                token = next(iter(value.split()), "")
                identifier = Identifier.cast(token, kind) if token else None
                if identifier is not None and identifier.value:
                    result.append(str(identifier))
        return list(dict.fromkeys(result))

    def subject_list(self) -> list[str]:
        return list(dict.fromkeys(self.data(("600", "650", "651"))))

    def language_list(self) -> list[str]:
        fixed = self.control("008") or ""
        languages = [fixed[35:38]] if len(fixed) >= 38 and fixed[35:38].strip() else []
        return list(dict.fromkeys(languages + self.data("041")))

    def full_publisher(self) -> str | None:
        publishers = self.data(("264", "260"), "b")
        return publishers[0] if publishers else None

    def description_list(self) -> list[str]:
        return self.data("520")

    def publication_date(self) -> str | None:
        for value in self.data(("264", "260"), "c"):
            if match := re.search(r"\d{4}", value):
                return match.group(0)
        fixed = self.control("008") or ""
        return fixed[7:11] if fixed[7:11].isdigit() else None


class WorldCatRecordMessage(Message):
    """A single MARCXML record read from the catalog content API."""

    schema = schema_from(MarcRecord)
    policy_overrides = WORLDCAT_POLICY
    xml_root = "record"

    def _api_records(self) -> list[Record]:
        return [MarcRecord.loaded(self.fields())] if self.controlfield or self.datafield else []


class SruRecordData(Record):
    schema = define_schema(
        has_one("oclcdcs", SruDublinCore),
        has_one("record", MarcRecord),
    )
    policy_overrides = WORLDCAT_POLICY


class SruRecord(Record):
    schema = define_schema(
        scalar("record_schema"),
        scalar("record_packing"),
        has_one("record_data", SruRecordData),
        scalar("record_position", int),
    )
    policy_overrides = WORLDCAT_POLICY


class SruResponse(Message):
    schema = define_schema(
        scalar("version"),
        scalar("number_of_records", int),
        has_many("record", SruRecord, wrap=True),
        scalar("next_record_position", int),
    )
    policy_overrides = WORLDCAT_POLICY
    xml_root = "searchRetrieveResponse"

    def _api_records(self) -> list[Record]:
        result: list[Record] = []
        for record in self.record:
            data = record.record_data
            if data is None:
                continue
            result.append(data.oclcdcs or data.record)
        return result
