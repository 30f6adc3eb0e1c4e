"""WorldCat Search API adapter (SRU, OpenSearch and catalog content reads)."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from biblookup.identifiers import Identifier
from biblookup.records.record import Message
from biblookup.records.serializer import Format
from biblookup.records.world_cat import OpenSearchFeed, SruResponse, WorldCatRecordMessage
from biblookup.services.base import RemoteService
from biblookup.services.request import LIMIT_PREFIX, TRAILING_DATES, LookupRequest, fix_term
from biblookup.utils import squish

SRU_PATH = "catalog/search/worldcat/sru"
OPENSEARCH_PATH = "catalog/search/worldcat/opensearch"
CONTENT_PATHS = {
    "oclc": "catalog/content/{}",
    "isbn": "catalog/content/isbn/{}",
    "issn": "catalog/content/issn/{}",
    "lccn": "catalog/content/sn/{}",
}

DUBLIN_CORE = "info:srw/schema/1/dc"
MARCXML = "info:srw/schema/1/marcxml"

# Index codes for terms that narrow a search.
LIMIT_TERMS = {
    "dewey": "dd",
    "dlc": "pc",
    "doc_type": "dt",
    "lang_code": "la",
    "lang": "ln",
    "group": "cg",
    "holdings": "li",
    "type": "mt",
    "odl": "on",
    "year": "yr",
}

# Index codes for search terms.
QUERY_TERMS = {
    "access": "am",
    "author": "au",
    "corporate": "cn",
    "govdoc": "gn",
    "isbn": "bn",
    "issn": "in",
    "keyword": "kw",
    "lc": "lc",
    "lccn": "dn",
    "music": "mt",
    "notes": "nt",
    "oclc": "no",
    "name": "pn",
    "place": "pl",
    "publisher": "pb",
    "series": "se",
    "number": "sn",
    "subject": "su",
    "title": "ti",
}

ID_TERMS = ("isbn", "oclc", "lccn", "issn")
INJECTED_TYPES = ("isbn", "lccn")
ENGLISH = "eng"

SRU_OPTIONS = ("query", "recordSchema", "startRecord", "maximumRecords", "sortKeys", "servicelevel", "frbrGrouping")
SRU_ALIASES = {"limit": "maximumRecords", "sort": "sortKeys", "start": "startRecord", "q": "query", "schema": "recordSchema"}
OPENSEARCH_OPTIONS = ("q", "format", "start", "count", "servicelevel", "frbrGrouping")
OPENSEARCH_ALIASES = {"limit": "count", "query": "q"}

PUNCTUATION = re.compile(r"[^\w\s,'-]+")


def fix_name(name: str) -> str:
    """Put a personal name in "Family, Given" order without dates."""
    name = TRAILING_DATES.sub("", squish(name)) or name
    name = squish(PUNCTUATION.sub(" ", name))
    if "," in name:
        family, given = (part.strip() for part in name.split(",", 1))
        return f"{family}, {given}" if given else family
    parts = name.split(" ")
    if len(parts) > 1:
        return f"{parts[-1]}, {' '.join(parts[:-1])}"
    return name


def query_part(code: str, value: str) -> str:
    value = value.replace('"', "")
    if " " in value:
        return f'srw.{code} exact "{value}"'
    return f'srw.{code} = "{value}"'


def _or(parts: list[str]) -> str:
    return parts[0] if len(parts) == 1 else "(" + " or ".join(parts) + ")"


class WorldCatService(RemoteService):
    """Searches the WorldCat catalog; responses are XML."""

    name = "world_cat"
    api_key_param = "wskey"

    async def get_sru_records(self, terms: Iterable[str], **opt: Any) -> SruResponse:
        terms = list(terms)
        searched = self.searched_identifiers(terms)
        params = self.options(opt, SRU_OPTIONS, SRU_ALIASES)
        schema = str(params.get("recordSchema") or "")
        params["recordSchema"] = MARCXML if "marc" in schema.lower() else (schema or DUBLIN_CORE)
        if "query" not in params:
            extra_limits = [] if searched else [f"lang_code:{ENGLISH}"]
            params["query"] = self.make_query(terms, extra_limits)
        message = await self._get(SRU_PATH, params, SruResponse, fmt=Format.XML)
        if message.ok:
            if searched:
                self.inject_identifiers(message, searched)
            else:
                self.drop_images(message)
        return message

    async def get_opensearch_records(self, terms: Iterable[str], **opt: Any) -> OpenSearchFeed:
        params = self.options(opt, OPENSEARCH_OPTIONS, OPENSEARCH_ALIASES)
        params.setdefault("format", "atom")
        if "q" not in params:
            params["q"] = " ".join(value for _, value in (fix_term(term) for term in terms))
        return await self._get(OPENSEARCH_PATH, params, OpenSearchFeed, fmt=Format.XML)

    async def get_oclc(self, oclc: str, **opt: Any) -> WorldCatRecordMessage:
        return await self._get_content("oclc", oclc, opt)

    async def get_isbn(self, isbn: str, **opt: Any) -> WorldCatRecordMessage:
        return await self._get_content("isbn", isbn, opt)

    async def get_issn(self, issn: str, **opt: Any) -> WorldCatRecordMessage:
        return await self._get_content("issn", issn, opt)

    async def get_lccn(self, lccn: str, **opt: Any) -> WorldCatRecordMessage:
        return await self._get_content("lccn", lccn, opt)

    async def _get_content(self, kind: str, value: str, opt: Mapping[str, Any]) -> WorldCatRecordMessage:
        identifier = Identifier.cast(value, kind)
        path = CONTENT_PATHS[kind].format(identifier.value)
        params = {key: value for key, value in opt.items() if key in ("servicelevel", "recordSchema")}
        return await self._get(path, params, WorldCatRecordMessage, fmt=Format.XML)

    async def fetch(self, request: LookupRequest) -> Message:
        return await self.get_sru_records(request.terms)

    def options(self, opt: Mapping[str, Any], allowed: tuple[str, ...], aliases: Mapping[str, str]) -> dict[str, Any]:
        result = {}
        for key, value in opt.items():
            key = aliases.get(key, key)
            if key not in allowed:
                self._logger.warning("world_cat.unsupported_option", option=key)
                continue
            result[key] = value
        return result

    def searched_identifiers(self, terms: Iterable[str]) -> list[Identifier]:
        result = []
        for term in terms:
            prefix, value = fix_term(term)
            if prefix in ID_TERMS:
                result.append(Identifier.cast(value, prefix))
        return result

    def make_query(self, terms: Iterable[str], extra_limits: Iterable[str] = ()) -> str:
        """Build a CQL query: identifiers OR-ed, other groups AND-ed."""
        ids: list[str] = []
        queries: dict[str, list[str]] = {}
        limits: dict[str, list[str]] = {}
        for term in [*terms, *(f"{LIMIT_PREFIX}:{limit}" for limit in extra_limits)]:
            prefix, value = fix_term(term)
            if prefix == LIMIT_PREFIX:
                prefix, value = fix_term(value)
                if prefix in LIMIT_TERMS:
                    limits.setdefault(LIMIT_TERMS[prefix], []).append(value)
                else:
                    self._logger.warning("world_cat.unsupported_limit", term=term)
            elif prefix in ID_TERMS:
                ids.append(query_part(QUERY_TERMS[prefix], Identifier.cast(value, prefix).value))
            elif prefix in QUERY_TERMS:
                if prefix == "author":
                    value = fix_name(value)
                queries.setdefault(QUERY_TERMS[prefix], []).append(value)
            elif prefix in LIMIT_TERMS:
                limits.setdefault(LIMIT_TERMS[prefix], []).append(value)
            else:
                self._logger.warning("world_cat.unsupported_term", term=term)
        groups = [_or(ids)] if ids else []
        for code, values in queries.items():
            groups.append(_or([query_part(code, value) for value in values]))
        for code, values in limits.items():
            groups.append(_or([query_part(code, value) for value in values]))
        return " and ".join(groups)

    def drop_images(self, message: SruResponse) -> None:
        kept = []
        for record in message.record:
            dublin_core = record.record_data.oclcdcs if record.record_data else None
            if dublin_core is not None and any(kind.lower() == "image" for kind in dublin_core.dc_type):
                continue
            kept.append(record)
        if len(kept) != len(message.record):
            self._logger.debug("world_cat.images_dropped", count=len(message.record) - len(kept))
        message.record = kept

    def inject_identifiers(self, message: SruResponse, searched: list[Identifier]) -> None:
        """Make sure each Dublin Core record lists the ISBNs and LCCNs searched for."""
        wanted = [str(identifier) for identifier in searched if identifier.kind in INJECTED_TYPES]
        if not wanted:
            return
        for record in message.record:
            dublin_core = record.record_data.oclcdcs if record.record_data else None
            if dublin_core is None:
                continue
            missing = [value for value in wanted if value not in dublin_core.dc_identifier]
            dublin_core.dc_identifier = missing + dublin_core.dc_identifier
