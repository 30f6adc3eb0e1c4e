from biblookup.records.lookup import LookupItem
from biblookup.services.data import LookupData, LookupResponse
from biblookup.services.merge import blend_data, eliminate_substrings, fix_name, merge_data, normalize_dates
from biblookup.services.request import LookupRequest

ISBN = "isbn:9780306406157"


def response(service: str, *items: LookupItem) -> LookupResponse:
    data = LookupData()
    for item in items:
        data.add(item.best_identifier(), item)
    return LookupResponse(service=service, status="completed", duration=0.1, data=data)


def test_fix_name_reorders_family_given() -> None:
    assert fix_name("Herbert, Frank") == "Frank Herbert"
    assert fix_name("Herbert, Frank, 1920-1986") == "Frank Herbert, 1920-1986"
    assert fix_name("Frank  Herbert") == "Frank Herbert"


def test_eliminate_substrings() -> None:
    values = ["Science fiction", "science fiction.", "Fiction", "Deserts"]
    assert eliminate_substrings(values) == ["Science fiction", "Deserts"]


def test_normalize_dates() -> None:
    january = normalize_dates(LookupItem(emma_publication_date="1965-01-01"))
    assert january.emma_publication_date is None
    assert january.dcterms_date_copyright == "1965"

    exact = normalize_dates(LookupItem(emma_publication_date="1965-08-01", dcterms_date_copyright="1965"))
    assert exact.emma_publication_date == "1965-08-01"
    assert exact.dcterms_date_copyright is None


def test_blend_prefers_earlier_items() -> None:
    first = LookupItem(dc_title="Dune", dc_identifier=[ISBN])
    second = LookupItem(dc_title="Dune (novel)", dc_publisher="Chilton", dc_identifier=[ISBN, "oclc:123"])
    blended = blend_data([first, second])
    assert blended.dc_title == "Dune"
    assert blended.dc_publisher == "Chilton"
    assert blended.dc_identifier == [ISBN, "oclc:123"]


def test_merge_clusters_items_sharing_identifiers() -> None:
    crossref = LookupItem(
        dc_title="Dune",
        dc_identifier=[ISBN],
        dc_creator=["Herbert, Frank"],
        dc_subject=["Science fiction"],
    )
    google = LookupItem(
        dc_title="Dune (novel)",
        dc_identifier=[ISBN, "oclc:123"],
        dc_creator=["Frank Herbert"],
        dc_subject=["Deserts", "science fiction"],
        emma_publication_date="1965-08-01",
    )
    unrelated = LookupItem(dc_title="Other", dc_identifier=["oclc:999"])
    responses = [
        response("crossref", crossref),
        response("google_books", google),
        response("world_cat", unrelated),
        LookupResponse.failed("broken", "boom"),
    ]

    merged = merge_data(responses, LookupRequest.from_terms([ISBN]))

    assert list(merged.items) == [ISBN]
    item = merged.items[ISBN][0]
    assert item.dc_title == "Dune"
    assert item.dc_creator == ["Frank Herbert"]
    assert item.dc_identifier == [ISBN, "oclc:123"]
    assert item.dc_subject == ["Deserts", "Science fiction"]
    assert item.emma_publication_date == "1965-08-01"
    assert crossref.dc_creator == ["Herbert, Frank"]


def test_merge_without_shared_identifiers_keeps_everything() -> None:
    first = LookupItem(dc_title="A", dc_identifier=["oclc:1"])
    second = LookupItem(dc_title="B")
    merged = merge_data([response("one", first), response("two", second)])
    assert merged.count == 2
    assert set(merged.items) == {"oclc:1", "item-2"}
