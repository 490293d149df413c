"""Discovery of the image and animation URLs inside token metadata."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from ..domain.tokens import DEFAULT_SEARCH_DEPTH, Chain
from .media_classifier import media_type_from_content_type


@dataclass(frozen=True, slots=True)
class Keywords:
    image: tuple[str, ...] = ("image",)
    animation: tuple[str, ...] = ("animation", "video")

    @classmethod
    def for_chain(
        cls,
        chain: Chain,
        image: Iterable[str] | None = None,
        animation: Iterable[str] | None = None,
    ) -> "Keywords":
        default_image, default_animation = chain.base_keywords()
        return cls(
            image=tuple(image) if image else tuple(default_image),
            animation=tuple(animation) if animation else tuple(default_animation),
        )


def _matches(key: str, keyword: str) -> bool:
    key = key.lower()
    keyword = keyword.lower()
    return key == keyword or key.startswith(f"{keyword}_")


def _string_value(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def find_keyword_value(metadata: Mapping[str, Any], keyword: str, depth: int = DEFAULT_SEARCH_DEPTH) -> str:
    """First non-empty string under a key named ``keyword`` or ``keyword_*``.

    Exact matches win over prefixed ones at each level; nested objects are
    searched breadth-first down to ``depth`` levels.
    """

    level: list[Mapping[str, Any]] = [metadata]
    for _ in range(max(depth, 1)):
        nested: list[Mapping[str, Any]] = []
        for mapping in level:
            exact = _string_value(mapping.get(keyword)) if keyword in mapping else ""
            if exact:
                return exact
        for mapping in level:
            for key, value in mapping.items():
                if isinstance(value, Mapping):
                    nested.append(value)
                    continue
                if key != keyword and _matches(str(key), keyword):
                    found = _string_value(value)
                    if found:
                        return found
        level = nested
        if not level:
            break
    return ""


def _scan(metadata: Mapping[str, Any], keywords: Iterable[str]) -> str:
    for keyword in keywords:
        found = find_keyword_value(metadata, keyword)
        if found:
            return found
    return ""


def find_image_and_animation_urls(
    metadata: Mapping[str, Any] | None,
    keywords: Keywords,
    placeholder_image_url: str | None = None,
) -> tuple[str, str]:
    """Return the candidate ``(image_url, animation_url)`` pair before swapping."""

    image_url = ""
    animation_url = ""
    metadata = metadata or {}

    media = metadata.get("media")
    if isinstance(media, Mapping):
        uri = _string_value(media.get("uri"))
        if uri:
            if media_type_from_content_type(_string_value(media.get("mimeType"))).is_image_like():
                image_url = uri
            else:
                animation_url = uri

    if not image_url:
        image_url = _scan(metadata, keywords.image)
    if not animation_url:
        animation_url = _scan(metadata, keywords.animation)
        if animation_url == image_url:
            animation_url = ""
    if not image_url and placeholder_image_url:
        image_url = placeholder_image_url
    return image_url, animation_url


__all__ = ["Keywords", "find_image_and_animation_urls", "find_keyword_value"]
