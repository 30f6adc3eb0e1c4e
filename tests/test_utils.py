from types import MappingProxyType

import pytest

from biblookup.utils import camelize, deep_copy, deep_freeze, extract_doi, pluralize, slugify, underscore


def test_extract_doi_from_url() -> None:
    identifier = "https://doi.org/10.1234/Some.Article-Title"
    assert extract_doi(identifier) == "10.1234/some.article-title"


def test_slugify_basic() -> None:
    assert slugify("Neuro Imaging & Behavior") == "neuro-imaging-behavior"
    assert slugify("!!!") == "item"


def test_name_inflections() -> None:
    assert underscore("totalItems") == "total_items"
    assert underscore("container-title") == "container_title"
    assert camelize("total_items") == "totalItems"
    assert camelize("self_link", upper_first=True) == "SelfLink"
    assert pluralize("entry") == "entries"
    assert pluralize("box") == "boxes"
    assert pluralize("records") == "records"


def test_deep_freeze_and_copy() -> None:
    frozen = deep_freeze({"a": [1, {"b": {2, 3}}]})
    assert isinstance(frozen, MappingProxyType)
    assert frozen["a"][1]["b"] == frozenset({2, 3})
    with pytest.raises(TypeError):
        frozen["c"] = 1  # type: ignore[index]

    thawed = deep_copy(frozen)
    thawed["a"].append(4)
    assert thawed == {"a": [1, {"b": {2, 3}}, 4]}
    assert len(frozen["a"]) == 2
