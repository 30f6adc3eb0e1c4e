import pytest

from biblookup.identifiers import Identifier, isbn_valid, issn_valid, normalize_lccn


def test_guess_isbn13_with_hyphens() -> None:
    assert Identifier.guess("978-0-306-40615-7") == Identifier("isbn", "9780306406157")


def test_guess_recognizes_each_kind() -> None:
    assert Identifier.guess("10.1000/XYZ123") == Identifier("doi", "10.1000/xyz123")
    assert Identifier.guess("0378-5955") == Identifier("issn", "0378-5955")
    assert Identifier.guess("036000291452") == Identifier("upc", "036000291452")
    assert Identifier.guess("2001012345") == Identifier("lccn", "2001012345")
    assert Identifier.guess("12345678") == Identifier("oclc", "12345678")
    assert Identifier.guess("n79021164") == Identifier("lccn", "n79021164")
    assert Identifier.guess("dune messiah") is None


def test_parse_trusts_prefix() -> None:
    identifier = Identifier.parse("doi:10.1000/ABC")
    assert identifier == Identifier("doi", "10.1000/abc")
    assert str(identifier) == "doi:10.1000/abc"
    assert Identifier.parse("   ") is None


def test_cast_normalizes_values() -> None:
    assert Identifier.cast("(OCoLC)00012345", "oclc").value == "12345"
    assert Identifier.cast("n 79-21164", "lccn").value == "n79021164"
    assert Identifier.cast("isbn:0-306-40615-2", "isbn").value == "0306406152"
    with pytest.raises(ValueError):
        Identifier.cast("123", "ean")


def test_isbn_conversions() -> None:
    isbn = Identifier.cast("0306406152", "isbn")
    assert isbn.isbn13() == "9780306406157"
    assert Identifier.cast("9780306406157", "isbn").isbn10() == "0306406152"
    assert Identifier("oclc", "1").isbn13() is None


def test_checksums() -> None:
    assert isbn_valid("9780306406157")
    assert not isbn_valid("9780306406158")
    assert issn_valid("03785955")
    assert not Identifier("isbn", "9780306406158").valid
    assert normalize_lccn("85-2 ") == "85000002"
