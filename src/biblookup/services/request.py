"""Normalized, provider-agnostic lookup requests."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field as ModelField, ValidationError, field_validator

from biblookup.errors import InvalidRequestError
from biblookup.identifiers import IDENTIFIER_TYPES, Identifier
from biblookup.utils import deep_copy, squish

DEFAULT_QUERY = "keyword"
LIMIT_PREFIX = "limit"

TERM_PREFIX = re.compile(r"^([a-z][a-z_-]*):\s*(.*)$", flags=re.IGNORECASE | re.DOTALL)
TRAILING_DATES = re.compile(r"\s*,?\s*(\[.*\]|\(.*\)|\d+.*\d+|\d+-?)$")
QUOTES = "\"'"
URL_SCHEMES = {"http", "https", "ftp", "urn"}
AUTHOR_TYPES = ("author", "contributor", "editor", "translator")


def fix_term(term: str) -> tuple[str, str]:
    """Split ``prefix:value`` and normalize the value for its prefix."""
    text = squish(term)
    if len(text) > 1 and text[0] in QUOTES and text[-1] == text[0]:
        text = text[1:-1].strip()
    prefix = DEFAULT_QUERY
    match = TERM_PREFIX.match(text)
    if match and match.group(1).lower() not in URL_SCHEMES:
        prefix, text = match.group(1).lower(), match.group(2).strip()
        if len(text) > 1 and text[0] in QUOTES and text[-1] == text[0]:
            text = text[1:-1].strip()
    if prefix in AUTHOR_TYPES:
        text = TRAILING_DATES.sub("", text) or text
    return prefix, text


@dataclass(slots=True)
class LookupRequest:
    """Search terms grouped as ``ids``, ``query`` and ``limit``."""

    ids: list[str] = field(default_factory=list)
    query: list[str] = field(default_factory=list)
    limit: list[str] = field(default_factory=list)
    timeout: float | None = None
    services: list[str] | None = None

    @classmethod
    def from_terms(
        cls,
        terms: str | Iterable[str],
        *,
        timeout: float | None = None,
        services: Iterable[str] | None = None,
    ) -> "LookupRequest":
        request = cls(timeout=timeout, services=list(services) if services else None)
        if isinstance(terms, str):
            terms = terms.splitlines()
        for term in terms:
            if term and term.strip():
                request.add_term(*fix_term(term))
        return request

    @classmethod
    def from_envelope(cls, envelope: Mapping[str, Any]) -> "LookupRequest":
        """Build a request from a channel envelope ``{terms, options}``."""
        return LookupJob.parse(envelope).to_request()

    def add_term(self, prefix: str, value: str) -> None:
        prefix = (prefix or DEFAULT_QUERY).lower()
        value = value.strip()
        if not value:
            return
        if prefix in IDENTIFIER_TYPES:
            target, term = self.ids, str(Identifier.cast(value, prefix))
        elif prefix == LIMIT_PREFIX:
            target, term = self.limit, value
        elif prefix == DEFAULT_QUERY and (identifier := Identifier.guess(value)) is not None:
            target, term = self.ids, str(identifier)
        else:
            target, term = self.query, f"{prefix}:{value}"
        if term not in target:
            target.append(term)

    @property
    def identifiers(self) -> list[Identifier]:
        result = []
        for term in self.ids:
            kind, _, value = term.partition(":")
            result.append(Identifier(kind=kind, value=value))
        return result

    @property
    def id_types(self) -> list[str]:
        return list(dict.fromkeys(identifier.kind for identifier in self.identifiers))

    @property
    def terms(self) -> list[str]:
        return [*self.ids, *self.query, *(f"{LIMIT_PREFIX}:{value}" for value in self.limit)]

    @property
    def empty(self) -> bool:
        return not (self.ids or self.query)

    def values_for(self, kind: str) -> list[str]:
        return [identifier.value for identifier in self.identifiers if identifier.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        return deep_copy({"ids": self.ids, "query": self.query, "limit": self.limit})


class LookupOptions(BaseModel):
    services: Optional[list[str]] = ModelField(default=None, validation_alias=AliasChoices("services", "service"))
    timeout: Optional[float] = ModelField(default=None, gt=0)

    @field_validator("services", mode="before")
    @classmethod
    def single_service(cls, value: Any) -> Any:
        return [value] if isinstance(value, str) else value


class LookupJob(BaseModel):
    """Inbound ``{terms, options, job_id, user}`` message from a lookup client."""

    terms: list[str] = ModelField(default_factory=list)
    options: LookupOptions = ModelField(default_factory=LookupOptions)
    job_id: Optional[str] = None
    user: Optional[str] = None

    @field_validator("terms", mode="before")
    @classmethod
    def single_term(cls, value: Any) -> Any:
        if value is None:
            return []
        return value.splitlines() if isinstance(value, str) else value

    @field_validator("options", mode="before")
    @classmethod
    def default_options(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def parse(cls, envelope: Any) -> "LookupJob":
        if not isinstance(envelope, Mapping):
            raise InvalidRequestError("request envelope must be an object")
        try:
            return cls.model_validate(envelope)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'envelope'}: {error['msg']}"
                for error in exc.errors()
            )
            raise InvalidRequestError(f"invalid lookup request: {problems}") from exc

    def to_request(self) -> LookupRequest:
        return LookupRequest.from_terms(
            self.terms,
            timeout=self.options.timeout,
            services=self.options.services,
        )
