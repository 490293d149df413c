from __future__ import annotations

import pytest

from src.tokenmedia.domain.tokens import Chain
from src.tokenmedia.media.media_discovery import Keywords, find_image_and_animation_urls, find_keyword_value

pytestmark = pytest.mark.unit

DEFAULT = Keywords.for_chain(Chain.ETHEREUM)


def test_default_keywords_come_from_chain() -> None:
    assert DEFAULT == Keywords(image=("image",), animation=("animation", "video"))
    assert Keywords.for_chain(Chain.BASE, ["thumb"], None).image == ("thumb",)


def test_exact_key_beats_prefixed_key() -> None:
    metadata = {"image_url": "https://x.test/prefixed.png", "image": "https://x.test/exact.png"}

    assert find_keyword_value(metadata, "image") == "https://x.test/exact.png"


def test_prefixed_key_is_used_when_exact_missing() -> None:
    assert find_keyword_value({"animation_url": " ipfs://cid/a.mp4 "}, "animation") == "ipfs://cid/a.mp4"


def test_top_level_wins_over_nested_values() -> None:
    metadata = {"properties": {"image": "nested"}, "image_data": "top-prefixed"}

    assert find_keyword_value(metadata, "image") == "top-prefixed"


def test_nested_values_are_found_breadth_first() -> None:
    metadata = {"properties": {"image": "https://x.test/nested.png"}}

    assert find_keyword_value(metadata, "image") == "https://x.test/nested.png"
    assert find_keyword_value({"a": {"b": {"image": "deep"}}}, "image") == ""


def test_non_string_values_are_skipped() -> None:
    assert find_keyword_value({"image": {"url": "x"}, "image_url": "y"}, "image") == "y"
    assert find_keyword_value({"image": 5}, "image") == ""


def test_media_object_decides_slot_by_mime_type() -> None:
    image, animation = find_image_and_animation_urls(
        {"media": {"uri": "ipfs://cid/1.png", "mimeType": "image/png"}, "animation_url": "https://x.test/a.mp4"},
        DEFAULT,
    )

    assert (image, animation) == ("ipfs://cid/1.png", "https://x.test/a.mp4")


def test_media_object_with_video_mime_fills_animation_slot() -> None:
    image, animation = find_image_and_animation_urls(
        {"media": {"uri": "ipfs://cid/1.mp4", "mimeType": "video/mp4"}, "image": "https://x.test/t.png"},
        DEFAULT,
    )

    assert (image, animation) == ("https://x.test/t.png", "ipfs://cid/1.mp4")


def test_animation_equal_to_image_is_dropped() -> None:
    image, animation = find_image_and_animation_urls(
        {"image": "https://x.test/a.gif", "animation_url": "https://x.test/a.gif"},
        DEFAULT,
    )

    assert (image, animation) == ("https://x.test/a.gif", "")


def test_placeholder_used_only_without_image() -> None:
    assert find_image_and_animation_urls({}, DEFAULT, "https://x.test/placeholder.png") == (
        "https://x.test/placeholder.png",
        "",
    )
    assert find_image_and_animation_urls({"image": "i"}, DEFAULT, "p") == ("i", "")


def test_custom_keywords() -> None:
    keywords = Keywords.for_chain(Chain.ETHEREUM, ["preview"], ["render"])

    image, animation = find_image_and_animation_urls(
        {"preview_image": "https://x.test/p.png", "render": "https://x.test/r.html", "image": "ignored"},
        keywords,
    )

    assert (image, animation) == ("https://x.test/p.png", "https://x.test/r.html")
