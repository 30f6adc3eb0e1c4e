"""Combine lookup items from several providers into blended records."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

import structlog

from biblookup.records.lookup import LookupItem
from biblookup.services.data import LookupData, LookupResponse
from biblookup.services.request import LookupRequest
from biblookup.utils import deep_copy, normalized, squish

logger = structlog.get_logger(__name__)

FAMILY_NAME_GIVEN_NAME_DATES = re.compile(r"^([^,]+),\s*(.*?)[\s,;]+(\[.*\]|\(.*\)|\d+.*\d+|\d+-?)$")
FAMILY_NAME_GIVEN_NAME = re.compile(r"^([^,]+),\s*(.*)$")

SUBSTRING_FIELDS = ("dc_creator", "dc_subject", "dc_description")


def fix_name(name: str) -> str:
    """Turn "Family, Given" into "Given Family", keeping any dates."""
    name = squish(name)
    if match := FAMILY_NAME_GIVEN_NAME_DATES.match(name):
        return f"{match.group(2)} {match.group(1)}, {match.group(3)}".strip()
    if match := FAMILY_NAME_GIVEN_NAME.match(name):
        return f"{match.group(2)} {match.group(1)}".strip()
    return name


def fix_names(names: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(fix_name(name) for name in names if name))


def eliminate_substrings(values: Iterable[str]) -> list[str]:
    """Drop values whose normalized text is contained in another value."""
    unique = list(dict.fromkeys(value for value in values if value))
    keys = [normalized(value) for value in unique]
    result = []
    for index, value in enumerate(unique):
        key = keys[index]
        covered = any(
            other != key and key in other or (other == key and other_index < index)
            for other_index, other in enumerate(keys)
            if other_index != index
        )
        if not covered:
            result.append(value)
    return result


def normalize_dates(item: LookupItem) -> LookupItem:
    """Reconcile the publication date with the copyright year."""
    published = item.emma_publication_date
    copyright_year = item.dcterms_date_copyright
    if published and published.endswith("-01-01"):
        year = published[:4]
        copyright_year = copyright_year or year
        if copyright_year == year:
            published = None
    elif published and copyright_year and published[:4] == copyright_year:
        copyright_year = None
    item.update(emma_publication_date=published, dcterms_date_copyright=copyright_year)
    return item


def blend_data(items: Iterable[LookupItem]) -> LookupItem:
    """Blend items describing the same work; earlier items take precedence."""
    blended = LookupItem()
    for item in items:
        for field in LookupItem.schema:
            current = getattr(blended, field.name)
            value = getattr(item, field.name)
            if field.collection:
                setattr(blended, field.name, list(dict.fromkeys([*current, *value])))
            elif current in (None, "") and value not in (None, ""):
                setattr(blended, field.name, value)
    blended.dc_creator = fix_names(blended.dc_creator)
    for name in SUBSTRING_FIELDS:
        setattr(blended, name, eliminate_substrings(getattr(blended, name)))
    blended.dc_subject = sorted(blended.dc_subject, key=str.lower)
    return normalize_dates(blended)


def merge_data(responses: Iterable[LookupResponse], request: LookupRequest | None = None) -> LookupData:
    """Blend completed responses, given in priority order, by shared identifiers."""
    items: list[LookupItem] = [
        deep_copy(item) for response in responses if response.completed for item in response.data.all_items()
    ]
    wanted = set(request.ids) if request else set()
    counts = Counter(identifier for item in items for identifier in set(item.dc_identifier))
    wanted |= {identifier for identifier, count in counts.items() if count > 1}
    selected = [item for item in items if wanted.intersection(item.dc_identifier)]
    if not selected:
        selected = items

    clusters: list[tuple[set[str], list[LookupItem]]] = []
    for item in selected:
        ids = set(item.dc_identifier)
        joined = [cluster for cluster in clusters if ids and cluster[0] & ids]
        merged_ids, merged_items = set(ids), []
        for cluster in joined:
            clusters.remove(cluster)
            merged_ids |= cluster[0]
            merged_items.extend(cluster[1])
        merged_items.append(item)
        clusters.append((merged_ids, merged_items))

    data = LookupData()
    for index, (_, members) in enumerate(clusters):
        blended = blend_data(members)
        data.add(blended.best_identifier() or f"item-{index + 1}", blended)
    logger.debug("merge.complete", items=len(items), selected=len(selected), clusters=len(clusters))
    return data
