from __future__ import annotations

import httpx
import pytest

from src.tokenmedia.transport.media_fetcher import MediaFetcher
from src.tokenmedia.transport.transport_errors import (
    TransportNotFoundError,
    TransportPermanentError,
    TransportTransientError,
    UnsupportedURIError,
    error_from_httpx,
)
from src.tokenmedia.transport.transport_http import HttpTransport
from tests.mocks.http import PNG_BYTES, MockRoutes

pytestmark = pytest.mark.unit

CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
GATEWAY = "https://gateway.test"


def _fetcher(routes: MockRoutes) -> MediaFetcher:
    return MediaFetcher(http=HttpTransport(routes.client()), ipfs_url=GATEWAY, arweave_url="https://arweave.test")


@pytest.mark.asyncio
async def test_open_http_streams_body_with_headers() -> None:
    routes = MockRoutes().add("https://origin.test/a.png", PNG_BYTES, content_type="image/png")

    stream = await _fetcher(routes).open("https://origin.test/a.png")
    async with stream:
        body = await stream.read()

    assert body == PNG_BYTES
    assert stream.content_type == "image/png"
    assert stream.content_length == len(PNG_BYTES)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "error"),
    [(404, TransportNotFoundError), (503, TransportTransientError), (429, TransportTransientError), (403, TransportPermanentError)],
)
async def test_http_status_maps_to_transport_errors(status_code: int, error: type[Exception]) -> None:
    routes = MockRoutes().add("https://origin.test/a", status_code=status_code)

    with pytest.raises(error) as info:
        await _fetcher(routes).open("https://origin.test/a")

    assert info.value.status_code == status_code


@pytest.mark.asyncio
async def test_ipfs_uri_is_read_through_configured_gateway() -> None:
    routes = MockRoutes().add(f"{GATEWAY}/ipfs/{CID}/1.png", PNG_BYTES)
    fetcher = _fetcher(routes)

    assert fetcher.resolve_url(f"ipfs://{CID}/1.png") == f"{GATEWAY}/ipfs/{CID}/1.png"
    assert await fetcher.read(f"ipfs://{CID}/1.png") == PNG_BYTES


@pytest.mark.asyncio
async def test_arweave_uri_resolves_to_gateway() -> None:
    routes = MockRoutes().add("https://arweave.test/tx123", b"payload")

    assert await _fetcher(routes).read("ar://tx123") == b"payload"


@pytest.mark.asyncio
async def test_gateway_url_falls_back_to_original_host() -> None:
    original = f"https://slow-gateway.test/ipfs/{CID}"
    routes = (
        MockRoutes()
        .add(f"{GATEWAY}/ipfs/{CID}", status_code=502)
        .add(original, b"from-original")
    )

    assert await _fetcher(routes).read(original) == b"from-original"
    assert routes.requested("GET", f"{GATEWAY}/ipfs/{CID}") == 1


@pytest.mark.asyncio
async def test_gateway_not_found_is_not_retried_on_original_host() -> None:
    original = f"https://slow-gateway.test/ipfs/{CID}"
    routes = MockRoutes().add(f"{GATEWAY}/ipfs/{CID}", status_code=404).add(original, b"never")

    with pytest.raises(TransportNotFoundError):
        await _fetcher(routes).read(original)
    assert routes.requested("GET", original) == 0


@pytest.mark.asyncio
async def test_read_honours_limit() -> None:
    routes = MockRoutes().add("https://origin.test/big", b"x" * 1000)

    assert await _fetcher(routes).read("https://origin.test/big", limit=10) == b"x" * 10


@pytest.mark.asyncio
async def test_headers_fall_back_to_get_when_head_is_refused() -> None:
    routes = (
        MockRoutes()
        .add("https://origin.test/v", method="HEAD", status_code=405)
        .add("https://origin.test/v", b"\x00" * 8, content_type="video/mp4")
    )

    headers = await _fetcher(routes).headers("https://origin.test/v")

    assert headers.content_type == "video/mp4"
    assert headers.content_length == 8


@pytest.mark.asyncio
async def test_inline_headers_are_decoded_locally() -> None:
    routes = MockRoutes()

    headers = await _fetcher(routes).headers("data:application/json;base64,e30=")

    assert headers.content_type == "application/json"
    assert headers.content_length == 2
    assert routes.requests == []


@pytest.mark.asyncio
async def test_unknown_uri_is_unsupported() -> None:
    with pytest.raises(UnsupportedURIError):
        await _fetcher(MockRoutes()).open("mailto:someone")


def test_dns_failures_are_not_found() -> None:
    error = error_from_httpx(httpx.ConnectError("[Errno -2] Name or service not known"), "https://gone.test")

    assert isinstance(error, TransportNotFoundError)


def test_connection_resets_are_transient() -> None:
    error = error_from_httpx(httpx.ConnectError("connection reset by peer"), "https://flaky.test")

    assert isinstance(error, TransportTransientError)
