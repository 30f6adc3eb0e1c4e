import io

import pytest
from botocore.exceptions import ClientError

from biblookup.errors import ConfigurationError, TransportError
from biblookup.services.aws_s3 import AwsS3Service, S3Location


class StubS3Client:
    def __init__(self, objects: dict) -> None:
        self.objects = objects
        self.calls: list[tuple[str, str]] = []
        self.bodies: list[io.BytesIO] = []

    def get_object(self, *, Bucket: str, Key: str) -> dict:
        self.calls.append((Bucket, Key))
        if (Bucket, Key) not in self.objects:
            raise ClientError(
                {
                    "Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."},
                    "ResponseMetadata": {"HTTPStatusCode": 404},
                },
                "GetObject",
            )
        body, extra = self.objects[(Bucket, Key)]
        self.bodies.append(io.BytesIO(body))
        return {
            "Body": self.bodies[-1],
            "ContentLength": len(body),
            "ResponseMetadata": {"HTTPStatusCode": 200},
            **extra,
        }


@pytest.mark.parametrize(
    ("item", "expected"),
    [
        ("s3://vault/books/dune.epub", S3Location("vault", "books/dune.epub")),
        ("https://vault.s3.us-east-1.amazonaws.com/books/dune.epub", S3Location("vault", "books/dune.epub")),
        ("https://bibliovault.s3.amazonaws.com/a/b.pdf", S3Location("bibliovault", "a/b.pdf")),
        ("https://s3.amazonaws.com/vault/books/dune.epub", S3Location("vault", "books/dune.epub")),
        ("/books/dune.epub", S3Location("default-bucket", "books/dune.epub")),
    ],
)
def test_locate(settings, item, expected) -> None:
    settings.s3_bucket = "default-bucket"
    assert AwsS3Service(settings, client=StubS3Client({})).locate(item) == expected


def test_locate_without_default_bucket(settings) -> None:
    with pytest.raises(ConfigurationError):
        AwsS3Service(settings, client=StubS3Client({})).locate("books/dune.epub")


@pytest.mark.asyncio
async def test_fetch_reads_object(settings) -> None:
    client = StubS3Client(
        {
            ("vault", "books/dune.epub"): (
                b"epub-bytes",
                {
                    "ContentType": "application/epub+zip",
                    "ContentDisposition": 'attachment; filename="Dune.epub"',
                },
            )
        }
    )
    message = await AwsS3Service(settings, client=client).fetch("s3://vault/books/dune.epub")

    assert message.ok
    assert message.body == b"epub-bytes"
    assert message.filename == "Dune.epub"
    assert message.content_type == "application/epub+zip"
    assert message.content_length == 10
    assert message.api_records() == [message]
    assert client.calls == [("vault", "books/dune.epub")]
    assert client.bodies[0].closed


@pytest.mark.asyncio
async def test_fetch_without_disposition_uses_key_name(settings) -> None:
    client = StubS3Client({("vault", "books/dune.pdf"): (b"pdf", {})})
    message = await AwsS3Service(settings, client=client).fetch("s3://vault/books/dune.pdf")
    assert message.filename == "dune.pdf"


@pytest.mark.asyncio
async def test_missing_object_is_captured_on_message(settings) -> None:
    message = await AwsS3Service(settings, client=StubS3Client({})).fetch("s3://vault/missing.pdf")
    assert not message.ok
    assert isinstance(message.exception, TransportError)
    assert message.exception.status == 404
    assert message.status == 404
    assert message.body is None
    assert message.api_records() == []


@pytest.mark.asyncio
async def test_stream_yields_chunks(settings) -> None:
    client = StubS3Client({("vault", "big.bin"): (b"abcdefghij", {})})
    service = AwsS3Service(settings, client=client)
    chunks = [chunk async for chunk in service.stream("s3://vault/big.bin", chunk_size=4)]
    assert chunks == [b"abcd", b"efgh", b"ij"]


@pytest.mark.asyncio
async def test_stream_raises_on_missing_object(settings) -> None:
    service = AwsS3Service(settings, client=StubS3Client({}))
    with pytest.raises(TransportError):
        async for _ in service.stream("s3://vault/missing.bin"):
            pass


@pytest.mark.asyncio
async def test_fetch_strips_directories_from_disposition(settings) -> None:
    client = StubS3Client(
        {("vault", "books/dune.pdf"): (b"pdf", {"ContentDisposition": "attachment; filename=\"../../etc/dune.pdf\""})}
    )
    message = await AwsS3Service(settings, client=client).fetch("s3://vault/books/dune.pdf")
    assert message.filename == "dune.pdf"
