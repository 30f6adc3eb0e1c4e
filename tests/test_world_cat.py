import httpx
import pytest

from biblookup.records.world_cat import MarcRecord, SruResponse, WorldCatRecordMessage, fix_identifier
from biblookup.services.request import LookupRequest
from biblookup.services.world_cat import DUBLIN_CORE, MARCXML, WorldCatService

SRU = """<?xml version="1.0" encoding="UTF-8"?>
<searchRetrieveResponse xmlns="http://www.loc.gov/zing/srw/"
    xmlns:dc="http://purl.org/dc/elements/1.1/"
    xmlns:oclcterms="http://purl.org/oclc/terms/">
  <version>1.1</version>
  <numberOfRecords>2</numberOfRecords>
  <records>
    <record>
      <recordSchema>info:srw/schema/1/dc</recordSchema>
      <recordPacking>xml</recordPacking>
      <recordData>
        <oclcdcs>
          <dc:creator>Herbert, Frank.</dc:creator>
          <dc:date>c1965.</dc:date>
          <dc:identifier>9780306406157</dc:identifier>
          <dc:identifier>http://example.org/dune</dc:identifier>
          <dc:subject>Science fiction.</dc:subject>
          <dc:title>Dune</dc:title>
          <dc:type>Text</dc:type>
          <oclcterms:recordIdentifier>123456</oclcterms:recordIdentifier>
        </oclcdcs>
      </recordData>
      <recordPosition>1</recordPosition>
    </record>
    <record>
      <recordSchema>info:srw/schema/1/dc</recordSchema>
      <recordData>
        <oclcdcs>
          <dc:title>Dune (poster)</dc:title>
          <dc:type>Image</dc:type>
          <oclcterms:recordIdentifier>654321</oclcterms:recordIdentifier>
        </oclcdcs>
      </recordData>
      <recordPosition>2</recordPosition>
    </record>
  </records>
</searchRetrieveResponse>
"""

MARC = """<record xmlns="http://www.loc.gov/MARC21/slim">
  <leader>00000cam a2200000 a 4500</leader>
  <controlfield tag="001">42</controlfield>
  <controlfield tag="008">650801s1965    pau           000 1 eng  </controlfield>
  <datafield tag="020" ind1=" " ind2=" "><subfield code="a">0306406152 (pbk.)</subfield></datafield>
  <datafield tag="100" ind1="1" ind2=" "><subfield code="a">Herbert, Frank.</subfield></datafield>
  <datafield tag="245" ind1="1" ind2="0">
    <subfield code="a">Dune /</subfield>
    <subfield code="c">Frank Herbert.</subfield>
  </datafield>
  <datafield tag="260" ind1=" " ind2=" ">
    <subfield code="b">Chilton,</subfield>
    <subfield code="c">1965.</subfield>
  </datafield>
</record>
"""


def test_fix_identifier_prefixes_bare_numbers() -> None:
    assert fix_identifier("9780306406157") == "isbn:9780306406157"
    assert fix_identifier("0-306-40615-X") == "isbn:0-306-40615-X"
    assert fix_identifier("oclc:123") == "oclc:123"
    assert fix_identifier("http://example.org/1234") == "http://example.org/1234"
    assert fix_identifier("Dune") == "Dune"


def test_sru_dublin_core_identifiers() -> None:
    response = SruResponse(SRU, format="xml")
    assert response.number_of_records == 2
    dublin_core = response.record[0].record_data.oclcdcs
    assert dublin_core.dc_identifier == ["isbn:9780306406157", "http://example.org/dune"]
    assert dublin_core.identifier_list() == ["oclc:123456", "isbn:9780306406157"]
    assert dublin_core.subject_list() == ["Science fiction"]
    assert dublin_core.publication_date() == "1965"
    assert len(response.api_records()) == 2


def test_marc_record_accessors() -> None:
    record = MarcRecord(MARC, format="xml")
    assert record.control("001") == "42"
    assert record.full_title() == "Dune"
    assert record.creator_list() == ["Herbert, Frank"]
    assert record.identifier_list() == ["oclc:42", "isbn:0306406152"]
    assert record.full_publisher() == "Chilton"
    assert record.publication_date() == "1965"
    assert record.language_list() == ["eng"]

    message = WorldCatRecordMessage(MARC, format="xml")
    assert message.api_records() == [record]


def test_make_query(settings, mock_client) -> None:
    service = WorldCatService(mock_client(lambda request: httpx.Response(200)), settings)
    query = service.make_query(
        ["isbn:9780306406157", "oclc:123", "title:Dune", "author:Frank Herbert"],
        ["lang_code:eng"],
    )
    assert query == (
        '(srw.bn = "9780306406157" or srw.no = "123") and srw.ti = "Dune" '
        'and srw.au exact "Herbert, Frank" and srw.la = "eng"'
    )


@pytest.mark.asyncio
async def test_identifier_search_injects_searched_ids(settings, mock_client) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, text=SRU, headers={"content-type": "text/xml"})

    async with mock_client(handler) as client:
        service = WorldCatService(client, settings, api_key="wc-key")
        response = await service.lookup_metadata(LookupRequest.from_terms(["lccn:2001012345"]))

    params = captured[0].url.params
    assert captured[0].url.path == "/webservices/catalog/search/worldcat/sru"
    assert params["query"] == 'srw.dn = "2001012345"'
    assert params["recordSchema"] == DUBLIN_CORE
    assert params["wskey"] == "wc-key"
    assert response.completed
    assert response.count == 2
    for items in response.data.items.values():
        assert "lccn:2001012345" in items[0].dc_identifier


@pytest.mark.asyncio
async def test_keyword_search_drops_images(settings, mock_client) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, text=SRU, headers={"content-type": "text/xml"})

    async with mock_client(handler) as client:
        service = WorldCatService(client, settings)
        message = await service.get_sru_records(["title:Dune"], schema="marc")

    assert captured[0].url.params["query"] == 'srw.ti = "Dune" and srw.la = "eng"'
    assert captured[0].url.params["recordSchema"] == MARCXML
    assert [record.record_position for record in message.record] == [1]


def test_marc_identifiers_skip_blank_subfields() -> None:
    marc = MARC.replace(
        '<datafield tag="100"',
        '<datafield tag="020" ind1=" " ind2=" "><subfield code="a"> : </subfield></datafield>\n'
        '  <datafield tag="010" ind1=" " ind2=" "><subfield code="a">   </subfield></datafield>\n'
        '  <datafield tag="022" ind1=" " ind2=" "><subfield code="a">-</subfield></datafield>\n'
        '  <datafield tag="100"',
    )
    assert MarcRecord(marc, format="xml").identifier_list() == ["oclc:42", "isbn:0306406152"]


ATOM = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom"
    xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/"
    xmlns:dc="http://purl.org/dc/elements/1.1/"
    xmlns:oclcterms="http://purl.org/oclc/terms/">
  <title>OCLC Worldcat Search: Dune Herbert</title>
  <id>http://worldcat.org/webservices/catalog/search/opensearch?q=Dune+Herbert</id>
  <updated>2024-01-01T00:00:00Z</updated>
  <opensearch:totalResults>1</opensearch:totalResults>
  <opensearch:startIndex>1</opensearch:startIndex>
  <opensearch:itemsPerPage>10</opensearch:itemsPerPage>
  <entry>
    <author><name>Herbert, Frank.</name></author>
    <title>Dune</title>
    <link href="http://worldcat.org/oclc/123456"/>
    <id>http://worldcat.org/oclc/123456</id>
    <updated>2023-12-01T00:00:00Z</updated>
    <summary>Desert planet.</summary>
    <dc:identifier>urn:ISBN:9780306406157</dc:identifier>
    <oclcterms:recordIdentifier>123456</oclcterms:recordIdentifier>
  </entry>
</feed>
"""


@pytest.mark.asyncio
async def test_opensearch_feed(settings, mock_client) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, text=ATOM, headers={"content-type": "application/atom+xml"})

    async with mock_client(handler) as client:
        service = WorldCatService(client, settings, api_key="wc-key")
        feed = await service.get_opensearch_records(["title:Dune", "author:Herbert"])

    params = captured[0].url.params
    assert captured[0].url.path == "/webservices/catalog/search/worldcat/opensearch"
    assert params["q"] == "Dune Herbert"
    assert params["format"] == "atom"
    assert params["wskey"] == "wc-key"
    assert feed.ok
    assert feed.total_results == 1
    assert feed.items_per_page == 10
    entry = feed.api_records()[0]
    assert entry.full_title() == "Dune"
    assert entry.creator_list() == ["Herbert, Frank."]
    assert entry.link.href == "http://worldcat.org/oclc/123456"
    assert entry.identifier_list() == ["oclc:123456", "isbn:9780306406157"]
    assert entry.description_list() == ["Desert planet."]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "value", "path"),
    [
        ("get_oclc", "ocm00042", "/webservices/catalog/content/42"),
        ("get_isbn", "978-0-306-40615-7", "/webservices/catalog/content/isbn/9780306406157"),
        ("get_issn", "03784371", "/webservices/catalog/content/issn/0378-4371"),
        ("get_lccn", "2001-12345", "/webservices/catalog/content/sn/2001012345"),
    ],
)
async def test_catalog_content_reads_marcxml(settings, mock_client, method, value, path) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, text=MARC, headers={"content-type": "application/xml"})

    async with mock_client(handler) as client:
        message = await getattr(WorldCatService(client, settings), method)(value, servicelevel="full", bogus=1)

    assert captured[0].url.path == path
    assert captured[0].url.params["servicelevel"] == "full"
    assert "bogus" not in captured[0].url.params
    assert message.ok
    assert isinstance(message, WorldCatRecordMessage)
    [record] = message.api_records()
    assert record.full_title() == "Dune"
    assert record.identifier_list() == ["oclc:42", "isbn:0306406152"]


@pytest.mark.asyncio
async def test_catalog_content_http_error_is_captured(settings, mock_client) -> None:
    async with mock_client(lambda request: httpx.Response(404, text="<diagnostics/>")) as client:
        message = await WorldCatService(client, settings).get_oclc("42")
    assert not message.ok
    assert message.api_records() == []
