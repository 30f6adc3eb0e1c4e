"""Crossref REST API adapter (https://api.crossref.org)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote

from biblookup.identifiers import IDENTIFIER_TYPES
from biblookup.records.crossref import CrossrefWorkListMessage, CrossrefWorkMessage
from biblookup.records.record import Message
from biblookup.services.base import RemoteService
from biblookup.services.request import DEFAULT_QUERY, LookupRequest, fix_term
from biblookup.utils import deep_freeze

# Field names accepted by the ``select`` parameter of /works.
SELECT_ELEMENTS = (
    "abstract", "URL", "member", "posted", "score", "created", "degree",
    "update-policy", "short-title", "license", "ISSN", "container-title",
    "issued", "update-to", "issue", "prefix", "approved", "indexed",
    "article-number", "clinical-trial-number", "accepted", "author",
    "group-title", "DOI", "is-referenced-by-count", "updated-by", "event",
    "chair", "standards-body", "original-title", "funder", "translator",
    "archive", "published-print", "alternative-id", "subject", "subtitle",
    "published-online", "publisher-location", "content-domain", "reference",
    "title", "link", "type", "publisher", "volume", "references-count",
    "ISBN", "issn-type", "assertion", "deposited", "page", "content-created",
    "short-container-title", "relation", "editor",
)
SELECT_LOOKUP = {element.lower(): element for element in SELECT_ELEMENTS}

# Search prefixes (and their aliases) mapped to ``query.<field>`` names.
QUERY_PREFIX = deep_freeze({
    "affiliation": "affiliation",
    "author": "author",
    "bibliographic": "bibliographic",
    "chair": "chair",
    "container-title": "container-title",
    "container_title": "container-title",
    "journal_title": "container-title",
    "journal": "container-title",
    "contributor": "contributor",
    "degree": "degree",
    "description": "description",
    "abstract": "description",
    "editor": "editor",
    "event-acronym": "event-acronym",
    "event_acronym": "event-acronym",
    "event-location": "event-location",
    "event_location": "event-location",
    "event-name": "event-name",
    "event_name": "event-name",
    "event-sponsor": "event-sponsor",
    "event_sponsor": "event-sponsor",
    "event-theme": "event-theme",
    "event_theme": "event-theme",
    "funder-name": "funder-name",
    "funder_name": "funder-name",
    "funder": "funder-name",
    "publisher-location": "publisher-location",
    "publisher_location": "publisher-location",
    "publisher-name": "publisher-name",
    "publisher_name": "publisher-name",
    "publisher": "publisher-name",
    "standards-body-acronym": "standards-body-acronym",
    "standards_body_acronym": "standards-body-acronym",
    "standards-body-name": "standards-body-name",
    "standards_body": "standards-body-name",
    "title": "title",
    "translator": "translator",
})

FILTER_TYPES = ("doi", "isbn", "issn")
WORK_LIST_OPTIONS = (
    "cursor", "facet", "filter", "mailto", "offset", "order",
    "query", "rows", "sample", "select", "sort",
)
OPTION_ALIASES = {"q": "query", "fields": "select", "limit": "rows"}


class CrossrefService(RemoteService):
    """Works lookups by DOI and bibliographic search."""

    name = "crossref"

    def api_options(self, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        options = super().api_options(params)
        if self._settings.crossref_mailto:
            options.setdefault("mailto", self._settings.crossref_mailto)
        return options

    async def get_work(self, doi: str) -> CrossrefWorkMessage:
        return await self._get(f"works/{quote(doi, safe='/')}", None, CrossrefWorkMessage)

    async def get_work_list(self, terms: Iterable[str] = (), **opt: Any) -> CrossrefWorkListMessage:
        params = self.query_terms(terms)
        params.update(self.work_list_options(opt, params))
        return await self._get("works", params, CrossrefWorkListMessage)

    async def fetch(self, request: LookupRequest) -> Message:
        dois = request.values_for("doi")
        if len(dois) == 1 and len(request.ids) == 1 and not request.query:
            return await self.get_work(dois[0])
        return await self.get_work_list(request.terms)

    def query_terms(self, terms: Iterable[str]) -> dict[str, Any]:
        """Translate lookup terms into ``query``, ``query.<field>`` and ``filter``."""
        queries: dict[str, list[str]] = {}
        filters: list[str] = []
        for term in terms:
            prefix, value = fix_term(term)
            if prefix in FILTER_TYPES:
                filters.append(f"{prefix}:{value}")
            elif prefix in IDENTIFIER_TYPES:
                self._logger.warning("crossref.unsupported_identifier", term=term)
            elif prefix == DEFAULT_QUERY:
                queries.setdefault("query", []).append(value)
            elif prefix in QUERY_PREFIX:
                queries.setdefault(f"query.{QUERY_PREFIX[prefix]}", []).append(value)
            else:
                self._logger.warning("crossref.unsupported_term", term=term)
        params: dict[str, Any] = {key: " ".join(values) for key, values in queries.items()}
        if filters:
            params["filter"] = ",".join(filters)
        return params

    def work_list_options(self, opt: Mapping[str, Any], params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in opt.items():
            key = OPTION_ALIASES.get(key, key).replace("_", "-")
            if key not in WORK_LIST_OPTIONS:
                self._logger.warning("crossref.unsupported_option", option=key)
                continue
            if key == "select":
                value = self.select_option(value)
            elif key == "filter":
                value = self._merge_filters((params or {}).get("filter"), value)
            elif key == "query" and (params or {}).get("query"):
                value = f"{params['query']} {value}"
            if value is not None:
                result[key] = value
        return result

    def select_option(self, value: Any) -> str | None:
        """Validate ``select`` against :data:`SELECT_ELEMENTS`."""
        if value is True:
            return ",".join(SELECT_ELEMENTS)
        if not value:
            return None
        if isinstance(value, str):
            value = value.split(",")
        selected = []
        for entry in value:
            element = SELECT_LOOKUP.get(str(entry).strip().lower().replace("_", "-"))
            if element is None:
                self._logger.warning("crossref.invalid_select", field=str(entry))
                continue
            if element not in selected:
                selected.append(element)
        return ",".join(selected) or None

    @staticmethod
    def _merge_filters(current: str | None, extra: Any) -> str:
        if isinstance(extra, Mapping):
            extra = ",".join(f"{key}:{value}" for key, value in extra.items())
        elif not isinstance(extra, str):
            extra = ",".join(str(entry) for entry in extra)
        return ",".join(part for part in (current, extra) if part)


