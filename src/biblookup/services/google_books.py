"""Google Books volumes API adapter."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from biblookup.identifiers import IDENTIFIER_TYPES, Identifier
from biblookup.records.google_books import GoogleBooksIdentifier, GoogleBooksVolumes
from biblookup.records.record import Message
from biblookup.services.base import RemoteService
from biblookup.services.request import DEFAULT_QUERY, LookupRequest, fix_term

QUERY_PREFIX = {
    "author": "inauthor",
    "isbn": "isbn",
    "lccn": "lccn",
    "oclc": "oclc",
    "publisher": "inpublisher",
    "subject": "subject",
    "title": "intitle",
}

VOLUME_OPTIONS = (
    "download", "filter", "langRestrict", "libraryRestrict",
    "maxAllowedMaturityRating", "maxResults", "orderBy", "partner",
    "printType", "projection", "showPreorders", "source", "startIndex",
    "volumeId",
)
OPTION_ALIASES = {"language": "langRestrict", "sort": "orderBy", "limit": "maxResults"}
DEFAULT_LANGUAGE = "en"


class GoogleBooksService(RemoteService):
    """Volume searches against https://www.googleapis.com/books/v1."""

    name = "google_books"
    api_key_param = "key"

    async def get_volumes(self, terms: Iterable[str], *, foreign: bool | None = None, **opt: Any) -> GoogleBooksVolumes:
        terms = list(terms)
        query, searched = self.query_string(terms)
        params: dict[str, Any] = {"q": query}
        # General searches stay in English unless foreign results are wanted.
        if foreign is None:
            foreign = bool(searched)
        if not foreign:
            params["langRestrict"] = DEFAULT_LANGUAGE
        params.update(self.volume_options(opt))
        message = await self._get("volumes", params, GoogleBooksVolumes)
        if message.ok:
            lccns = [identifier.value for identifier in searched if identifier.kind == "lccn"]
            self.inject_lccns(message, lccns)
        return message

    async def fetch(self, request: LookupRequest) -> Message:
        return await self.get_volumes(request.terms)

    def query_string(self, terms: Iterable[str]) -> tuple[str, list[Identifier]]:
        """Build the ``q`` parameter; also return the identifiers searched for."""
        tokens: list[str] = []
        searched: list[Identifier] = []
        for term in terms:
            prefix, value = fix_term(term)
            if prefix == DEFAULT_QUERY:
                tokens.append(value)
            elif prefix in QUERY_PREFIX:
                if prefix in IDENTIFIER_TYPES:
                    identifier = Identifier.cast(value, prefix)
                    searched.append(identifier)
                    value = identifier.value
                tokens.append(f"{QUERY_PREFIX[prefix]}:{value}")
            else:
                self._logger.warning("google_books.unsupported_term", term=term)
        return " ".join(tokens), searched

    def volume_options(self, opt: Mapping[str, Any]) -> dict[str, Any]:
        result = {}
        for key, value in opt.items():
            key = OPTION_ALIASES.get(key, key)
            if key not in VOLUME_OPTIONS:
                self._logger.warning("google_books.unsupported_option", option=key)
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            result[key] = value
        return result

    def inject_lccns(self, message: GoogleBooksVolumes, lccns: list[str]) -> None:
        """Put searched LCCNs back into each volume's identifier list.

        Google Books matches on LCCN but does not return it among the
        ``industryIdentifiers``, so missing ones are inserted at the front.
        """
        if not lccns:
            return
        for volume in message.items:
            info = volume.volume_info
            if info is None:
                continue
            returned = [entry.to_identifier() for entry in info.industry_identifiers]
            present = {identifier.value for identifier in returned if identifier and identifier.kind == "lccn"}
            first = returned[0] if returned else None
            if first is not None and first.kind == "lccn" and first.value in lccns:
                continue
            missing = [
                GoogleBooksIdentifier(type="OTHER", identifier=f"LCCN:{lccn}") for lccn in lccns if lccn not in present
            ]
            if missing:
                info.industry_identifiers = missing + info.industry_identifiers
                self._logger.debug("google_books.lccn_injected", volume=volume.id, lccns=lccns)
