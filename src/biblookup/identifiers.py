"""Typed standard publication identifiers (ISBN, ISSN, OCLC, LCCN, UPC, DOI)."""

from __future__ import annotations

import re
from dataclasses import dataclass

from biblookup.utils import extract_doi

IDENTIFIER_TYPES = ("isbn", "issn", "oclc", "lccn", "upc", "doi")

PREFIX_PATTERN = re.compile(r"^\s*([a-z]+)[\x20:]\s*", flags=re.IGNORECASE)
SEPARATORS = re.compile(r"[\s!-/:-@\[-`{-~]")
OCLC_PREFIX = re.compile(r"^(\(ocolc\)|ocm|ocn|on)\s*", flags=re.IGNORECASE)
ISSN_PATTERN = re.compile(r"^\d{4}-\d{3}[\dX]$", flags=re.IGNORECASE)
LCCN_PATTERN = re.compile(r"^[a-z]{0,3}\d{8}(\d{2})?$")


@dataclass(frozen=True, slots=True)
class Identifier:
    """A normalized identifier; equality is by ``(kind, value)``."""

    kind: str
    value: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"

    @property
    def valid(self) -> bool:
        return _VALIDATORS[self.kind](self.value)

    @classmethod
    def cast(cls, value: str, kind: str) -> "Identifier":
        """Normalize ``value`` as an identifier of the given kind."""
        kind = kind.lower()
        if kind not in IDENTIFIER_TYPES:
            raise ValueError(f"unknown identifier type {kind!r}")
        return cls(kind=kind, value=_NORMALIZERS[kind](remove_prefix(value, kind)))

    @classmethod
    def parse(cls, text: str, kind: str | None = None) -> "Identifier | None":
        """Parse ``text`` as a typed identifier.

        An explicit ``kind`` or a ``kind:`` prefix is trusted; otherwise the
        kind is guessed and only a value that validates is accepted.
        """
        if not text or not text.strip():
            return None
        if kind:
            return cls.cast(text, kind)
        match = PREFIX_PATTERN.match(text)
        if match and match.group(1).lower() in IDENTIFIER_TYPES:
            return cls.cast(text[match.end():], match.group(1))
        return cls.guess(text)

    @classmethod
    def guess(cls, text: str) -> "Identifier | None":
        text = text.strip()
        doi = extract_doi(text)
        if doi and text.lower().endswith(doi):
            return cls(kind="doi", value=doi)
        if ISSN_PATTERN.match(text) and issn_valid(strip_separators(text)):
            return cls(kind="issn", value=normalize_issn(text))
        digits = strip_separators(text).upper()
        if isbn_valid(digits):
            return cls(kind="isbn", value=digits)
        if len(digits) == 12 and digits.isdigit() and upc_valid(digits):
            return cls(kind="upc", value=digits)
        if digits.isdigit() and len(digits) == 10:
            # A ten digit number could be an OCLC or an LCCN.
            kind = "lccn" if digits.startswith(("1", "20")) else "oclc"
            return cls(kind=kind, value=digits)
        if digits.isdigit() and 8 <= len(digits) <= 10:
            return cls(kind="oclc", value=digits)
        lowered = digits.lower()
        if LCCN_PATTERN.match(lowered) and not lowered.isdigit():
            return cls(kind="lccn", value=lowered)
        return None

    def isbn13(self) -> str | None:
        if self.kind != "isbn":
            return None
        return to_isbn13(self.value)

    def isbn10(self) -> str | None:
        if self.kind != "isbn":
            return None
        return to_isbn10(self.value)


def remove_prefix(value: str, kind: str | None = None) -> str:
    match = PREFIX_PATTERN.match(value)
    if match and (kind is None or match.group(1).lower() == kind):
        return value[match.end():]
    return value.strip()


def strip_separators(value: str) -> str:
    return SEPARATORS.sub("", value)


def isbn10_checksum(digits: str) -> str:
    total = sum(int(digit) * (index + 1) for index, digit in enumerate(digits[:9]))
    remainder = total % 11
    return "X" if remainder == 10 else str(remainder)


def isbn13_checksum(digits: str) -> str:
    total = sum(int(digit) * (3 if index % 2 else 1) for index, digit in enumerate(digits[:12]))
    return str((10 - total % 10) % 10)


def isbn_valid(value: str) -> bool:
    value = value.upper()
    if len(value) == 10 and value[:9].isdigit() and (value[9].isdigit() or value[9] == "X"):
        return isbn10_checksum(value) == value[9]
    if len(value) == 13 and value.isdigit():
        return isbn13_checksum(value) == value[12]
    return False


def to_isbn13(value: str) -> str | None:
    if len(value) == 13:
        return value if isbn_valid(value) else None
    if len(value) != 10 or not isbn_valid(value):
        return None
    body = "978" + value[:9]
    return body + isbn13_checksum(body)


def to_isbn10(value: str) -> str | None:
    if len(value) == 10:
        return value if isbn_valid(value) else None
    if len(value) != 13 or not value.startswith("978") or not isbn_valid(value):
        return None
    body = value[3:12]
    return body + isbn10_checksum(body)


def issn_checksum(digits: str) -> str:
    total = sum(int(digit) * (8 - index) for index, digit in enumerate(digits[:7]))
    check = (11 - total % 11) % 11
    return "X" if check == 10 else str(check)


def issn_valid(value: str) -> bool:
    value = value.upper()
    if len(value) != 8 or not value[:7].isdigit():
        return False
    return issn_checksum(value) == value[7]


def normalize_issn(value: str) -> str:
    digits = strip_separators(value).upper()
    return f"{digits[:4]}-{digits[4:]}" if len(digits) == 8 else digits


def upc_valid(value: str) -> bool:
    if len(value) != 12 or not value.isdigit():
        return False
    total = sum(int(digit) * (3 if index % 2 == 0 else 1) for index, digit in enumerate(value[:11]))
    return str((10 - total % 10) % 10) == value[11]


def normalize_lccn(value: str) -> str:
    """Normalize an LCCN following the Library of Congress rules."""
    value = re.sub(r"\s+", "", value).split("/")[0].lower()
    if "-" in value:
        prefix, serial = value.split("-", 1)
        value = prefix + serial.rjust(6, "0")
    return value


def normalize_oclc(value: str) -> str:
    return OCLC_PREFIX.sub("", value.strip()).lstrip("0") or "0"


def normalize_doi(value: str) -> str:
    return extract_doi(value) or value.strip()


_NORMALIZERS = {
    "isbn": lambda value: strip_separators(value).upper(),
    "issn": normalize_issn,
    "oclc": normalize_oclc,
    "lccn": normalize_lccn,
    "upc": strip_separators,
    "doi": normalize_doi,
}

_VALIDATORS = {
    "isbn": isbn_valid,
    "issn": lambda value: issn_valid(strip_separators(value)),
    "oclc": lambda value: value.isdigit(),
    "lccn": lambda value: bool(LCCN_PATTERN.match(value)),
    "upc": upc_valid,
    "doi": lambda value: extract_doi(value) is not None,
}
