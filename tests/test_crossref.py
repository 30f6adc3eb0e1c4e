import httpx
import pytest
from structlog.testing import capture_logs

from biblookup.records.crossref import CrossrefWorkMessage
from biblookup.services.crossref import SELECT_ELEMENTS, CrossrefService
from biblookup.services.request import LookupRequest

WORK = {
    "status": "ok",
    "message-type": "work",
    "message-version": "1.0.0",
    "message": {
        "DOI": "10.1000/XYZ",
        "title": ["Dune"],
        "subtitle": ["A Novel"],
        "author": [
            {"given": "Frank", "family": "Herbert", "sequence": "first"},
            {"name": "Analog Editors", "sequence": "additional"},
        ],
        "container-title": ["Analog"],
        "ISBN": ["978-0-306-40615-7"],
        "issued": {"date-parts": [[1965, 8, 1]]},
        "publisher": "Chilton",
        "type": "book-chapter",
        "volume": "3",
        "subject": ["Fiction"],
    },
}


def test_transliterated_work_message() -> None:
    message = CrossrefWorkMessage(WORK, format="hash")
    work = message.message
    assert message.api_status == "ok"
    assert message.message_type == "work"
    assert work.doi == "10.1000/XYZ"
    assert work.issued.date_parts == [1965, 8, 1]
    assert work.full_title() == "Dune: A Novel"
    assert work.creator_list() == ["Herbert, Frank", "Analog Editors"]
    assert work.identifier_list() == ["doi:10.1000/xyz", "isbn:9780306406157"]
    assert work.publication_year() == "1965"
    assert work.series_type() == "book"
    assert work.series_position() == "v. 3"


def test_select_true_requests_every_element(settings, mock_client) -> None:
    service = CrossrefService(mock_client(lambda request: httpx.Response(200)), settings)
    assert service.select_option(True) == ",".join(SELECT_ELEMENTS)


def test_select_drops_invalid_fields_with_warning(settings, mock_client) -> None:
    with capture_logs() as logs:
        service = CrossrefService(mock_client(lambda request: httpx.Response(200)), settings)
        selected = service.select_option(["doi", "bogus_field"])
    assert selected == "DOI"
    warnings = [entry for entry in logs if entry["event"] == "crossref.invalid_select"]
    assert warnings == [
        {"event": "crossref.invalid_select", "field": "bogus_field", "service": "crossref", "log_level": "warning"}
    ]


def test_query_terms_split_filters_and_queries(settings, mock_client) -> None:
    with capture_logs() as logs:
        service = CrossrefService(mock_client(lambda request: httpx.Response(200)), settings)
        params = service.query_terms(
            ["doi:10.1000/xyz", "title:Dune", "keyword:spice", "isbn:9780306406157", "oclc:123", "color:blue"]
        )
    assert params == {
        "filter": "doi:10.1000/xyz,isbn:9780306406157",
        "query.title": "Dune",
        "query": "spice",
    }
    events = [entry["event"] for entry in logs if entry["log_level"] == "warning"]
    assert events == ["crossref.unsupported_identifier", "crossref.unsupported_term"]


def test_work_list_options(settings, mock_client) -> None:
    service = CrossrefService(mock_client(lambda request: httpx.Response(200)), settings)
    options = service.work_list_options(
        {"limit": 5, "filter": {"from-pub-date": "1960"}, "fields": "title,doi"},
        {"filter": "isbn:9780306406157"},
    )
    assert options == {
        "rows": 5,
        "filter": "isbn:9780306406157,from-pub-date:1960",
        "select": "title,DOI",
    }


@pytest.mark.asyncio
async def test_single_doi_lookup(settings, mock_client) -> None:
    settings.crossref_mailto = "lookup@example.org"
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=WORK)

    async with mock_client(handler) as client:
        service = CrossrefService(client, settings)
        response = await service.lookup_metadata(LookupRequest.from_terms(["doi:10.1000/XYZ"]))

    assert seen[0].url.path == "/works/10.1000/xyz"
    assert seen[0].url.params["mailto"] == "lookup@example.org"
    assert response.completed
    item = response.data.items["doi:10.1000/xyz"][0]
    assert item.dc_title == "Dune: A Novel"
    assert item.bib_series == "Analog"
    assert item.emma_publication_date == "1965-08-01"
    assert item.dcterms_date_copyright == "1965"


@pytest.mark.asyncio
async def test_search_uses_work_list(settings, mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/works"
        assert request.url.params["query.title"] == "Dune"
        body = {
            "status": "ok",
            "message-type": "work-list",
            "message": {"total-results": 1, "items": [WORK["message"]]},
        }
        return httpx.Response(200, json=body)

    async with mock_client(handler) as client:
        response = await CrossrefService(client, settings).lookup_metadata(
            LookupRequest.from_terms(["title:Dune"])
        )
    assert response.count == 1


@pytest.mark.asyncio
async def test_http_error_becomes_failed_response(settings, mock_client) -> None:
    async with mock_client(lambda request: httpx.Response(503)) as client:
        response = await CrossrefService(client, settings).lookup_metadata(
            LookupRequest.from_terms(["doi:10.1000/xyz"])
        )
    assert not response.completed
    assert response.error == "HTTP 503 from crossref"


@pytest.mark.asyncio
async def test_malformed_body_becomes_failed_response(settings, mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="{oops", headers={"content-type": "application/json"})

    async with mock_client(handler) as client:
        response = await CrossrefService(client, settings).lookup_metadata(
            LookupRequest.from_terms(["doi:10.1000/xyz"])
        )
    assert response.status == "failed"
    assert "malformed json" in response.error
