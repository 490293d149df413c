from __future__ import annotations

import itertools

import pytest

from src.tokenmedia.domain.media import MediaType
from src.tokenmedia.media.media_classifier import (
    MediaClassifier,
    media_type_from_content_type,
    media_type_from_extension,
    raw_format_to_media_type,
    should_swap,
    sniff_media_type,
)
from src.tokenmedia.transport.media_fetcher import MediaFetcher
from src.tokenmedia.transport.transport_http import HttpTransport
from tests.mocks.http import GIF_BYTES, HTML_DOCUMENT, PNG_BYTES, SVG_DOCUMENT, MockRoutes

pytestmark = pytest.mark.unit


def _classifier(routes: MockRoutes) -> MediaClassifier:
    return MediaClassifier(MediaFetcher(http=HttpTransport(routes.client()), ipfs_url="https://gateway.test"))


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        (b"\xff\xd8\xff\xe0rest", (MediaType.IMAGE, "image/jpeg")),
        (PNG_BYTES, (MediaType.IMAGE, "image/png")),
        (GIF_BYTES, (MediaType.GIF, "image/gif")),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", (MediaType.IMAGE, "image/webp")),
        (b"\x00\x00\x00\x18ftypmp42", (MediaType.VIDEO, "video/mp4")),
        (b"\x1a\x45\xdf\xa3more", (MediaType.VIDEO, "video/webm")),
        (b"ID3\x03\x00", (MediaType.AUDIO, "audio/mpeg")),
        (b"%PDF-1.7", (MediaType.PDF, "application/pdf")),
        (b"glTF\x02\x00\x00\x00", (MediaType.ANIMATION, "model/gltf-binary")),
        (b"\xef\xbb\xbf  " + SVG_DOCUMENT, (MediaType.SVG, "image/svg+xml")),
        (b'<?xml version="1.0"?><svg></svg>', (MediaType.SVG, "image/svg+xml")),
        (HTML_DOCUMENT, (MediaType.HTML, "text/html")),
        (b'{"asset": {"version": "2.0"}, "scenes": []}', (MediaType.ANIMATION, "model/gltf+json")),
        (b'{"name": "token"}', (MediaType.JSON, "application/json")),
        (b"plain words", (MediaType.TEXT, "text/plain")),
        (b"\x00\x01\x02\xfe\xff\x80\x81", (MediaType.UNKNOWN, "application/octet-stream")),
        (b"", (MediaType.UNKNOWN, "application/octet-stream")),
    ],
)
def test_sniff_media_type(payload: bytes, expected: tuple[MediaType, str]) -> None:
    assert sniff_media_type(payload) == expected


def test_truncated_utf8_at_sniff_boundary_is_text() -> None:
    payload = ("é" * 10).encode("utf-8")[:-1]

    assert sniff_media_type(payload)[0] is MediaType.TEXT


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://x.test/a.PNG", MediaType.IMAGE),
        ("https://x.test/a.gif?size=2", MediaType.GIF),
        ("ipfs://cid/model.glb", MediaType.ANIMATION),
        ("https://x.test/index.html", MediaType.HTML),
        ("https://x.test/movie.webm", MediaType.VIDEO),
    ],
)
def test_media_type_from_extension(url: str, expected: MediaType) -> None:
    hinted = media_type_from_extension(url)

    assert hinted is not None and hinted[0] is expected


def test_extension_hint_ignores_inline_and_extensionless_urls() -> None:
    assert media_type_from_extension("data:image/png;base64,AAAA") is None
    assert media_type_from_extension("https://x.test/token/1") is None
    assert media_type_from_extension("https://x.test/a.unknownext") is None


def test_content_type_mapping() -> None:
    assert media_type_from_content_type("image/svg+xml; charset=utf-8") is MediaType.SVG
    assert media_type_from_content_type("IMAGE/GIF") is MediaType.GIF
    assert media_type_from_content_type("model/gltf-binary") is MediaType.ANIMATION
    assert media_type_from_content_type("application/ld+json") is MediaType.JSON
    assert media_type_from_content_type("text/markdown") is MediaType.TEXT
    assert media_type_from_content_type(None) is MediaType.UNKNOWN


def test_raw_format_values() -> None:
    assert raw_format_to_media_type("MP4") is MediaType.VIDEO
    assert raw_format_to_media_type("video/mp4") is MediaType.VIDEO
    assert raw_format_to_media_type("gif") is MediaType.GIF
    assert raw_format_to_media_type("hologram") is MediaType.UNKNOWN
    assert raw_format_to_media_type(12) is MediaType.UNKNOWN


def test_should_swap_is_involutive() -> None:
    """Swapping twice never happens: if (a, b) swaps then (b, a) does not."""

    for image_type, video_type in itertools.product(MediaType, repeat=2):
        if should_swap(image_type, video_type):
            assert not should_swap(video_type, image_type), (image_type, video_type)


def test_should_swap_cases() -> None:
    assert should_swap(MediaType.VIDEO, MediaType.IMAGE)
    assert should_swap(MediaType.HTML, MediaType.UNKNOWN)
    assert should_swap(MediaType.GIF, MediaType.IMAGE)
    assert not should_swap(MediaType.IMAGE, MediaType.VIDEO)
    assert not should_swap(MediaType.IMAGE, MediaType.INVALID)


@pytest.mark.asyncio
async def test_predict_prefers_extension_without_network() -> None:
    routes = MockRoutes()

    prediction = await _classifier(routes).predict("https://x.test/clip.mp4")

    assert prediction.media_type is MediaType.VIDEO
    assert prediction.content_type == "video/mp4"
    assert routes.requests == []


@pytest.mark.asyncio
async def test_predict_uses_head_for_remote_urls() -> None:
    routes = MockRoutes().add("https://x.test/token/1", method="HEAD", content_type="text/html; charset=utf-8")

    prediction = await _classifier(routes).predict("https://x.test/token/1")

    assert prediction.media_type is MediaType.HTML


@pytest.mark.asyncio
async def test_predict_inline_values() -> None:
    classifier = _classifier(MockRoutes())

    assert (await classifier.predict("data:image/bmp;base64,Qk0=")).media_type is MediaType.BASE64BMP
    assert (await classifier.predict("<svg/>")).media_type is MediaType.SVG
    assert (await classifier.predict("data:image/png;base64,AAAA")).media_type is MediaType.IMAGE
    assert (await classifier.predict("")).media_type is MediaType.UNKNOWN


@pytest.mark.asyncio
async def test_predict_true_urls_swaps_misused_slots() -> None:
    classifier = _classifier(MockRoutes())

    image, video = await classifier.predict_true_urls("https://x.test/a.mp4", "https://x.test/b.png")

    assert (image, video) == ("https://x.test/b.png", "https://x.test/a.mp4")


@pytest.mark.asyncio
async def test_predict_true_urls_keeps_order_when_prediction_fails() -> None:
    routes = MockRoutes().add("https://x.test/token/2", method="HEAD", status_code=503)

    image, video = await _classifier(routes).predict_true_urls("https://x.test/token/2", "https://x.test/b.png")

    assert (image, video) == ("https://x.test/token/2", "https://x.test/b.png")


@pytest.mark.asyncio
async def test_predict_true_urls_with_single_url_is_untouched() -> None:
    classifier = _classifier(MockRoutes())

    assert await classifier.predict_true_urls("https://x.test/a.mp4", "") == ("https://x.test/a.mp4", "")
