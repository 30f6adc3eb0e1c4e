"""Utility helpers for identifier normalization, naming and value copying."""

from __future__ import annotations

import copy
import re
import unicodedata
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

DOI_PATTERN = re.compile(r"(10\.\d{4,9}/[\w.;()/:+-]+)", flags=re.IGNORECASE)
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
NON_WORD = re.compile(r"[^\w]+")
WHITESPACE = re.compile(r"\s+")


def extract_doi(identifier: str) -> str | None:
    """Return a normalized DOI if the identifier contains one."""
    if not identifier:
        return None
    match = DOI_PATTERN.search(identifier.strip())
    if not match:
        return None
    doi = match.group(1)
    return doi.lower()


def slugify(value: str, max_length: int = 80) -> str:
    """Create a filesystem-safe slug."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    value = value.lower()
    value = SLUG_PATTERN.sub("-", value).strip("-")
    if not value:
        value = "item"
    return value[:max_length]


def squish(value: str) -> str:
    return WHITESPACE.sub(" ", value).strip()


def normalized(value: str) -> str:
    """Reduce text to lowercase word characters for loose comparisons."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    return NON_WORD.sub("", value.lower()).replace("_", "")


def underscore(name: str) -> str:
    return CAMEL_BOUNDARY.sub("_", name).replace("-", "_").lower()


def camelize(name: str, *, upper_first: bool = False) -> str:
    head, *rest = underscore(name).split("_")
    first = head.capitalize() if upper_first else head
    return first + "".join(part.capitalize() for part in rest)


def pluralize(word: str) -> str:
    if not word or word.endswith("s"):
        return word
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("x", "ch", "sh")):
        return word + "es"
    return word + "s"


def deep_freeze(value: Any) -> Any:
    """Return an immutable view of nested mappings, lists and sets."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: deep_freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(deep_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(deep_freeze(item) for item in value)
    return value


def deep_copy(value: Any) -> Any:
    """Return a mutable copy of nested mappings, sequences and sets."""
    if isinstance(value, Mapping):
        return {key: deep_copy(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [deep_copy(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return {deep_copy(item) for item in value}
    if isinstance(value, (str, bytes, int, float, bool)) or value is None:
        return value
    return copy.deepcopy(value)
