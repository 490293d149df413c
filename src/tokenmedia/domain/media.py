"""Media type taxonomy and the materialised media record of a token."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Mapping


class MediaType(StrEnum):
    UNKNOWN = "unknown"
    INVALID = "invalid"
    IMAGE = "image"
    GIF = "gif"
    VIDEO = "video"
    AUDIO = "audio"
    ANIMATION = "animation"
    HTML = "html"
    SVG = "svg"
    PDF = "pdf"
    JSON = "json"
    TEXT = "text"
    BASE64BMP = "base64bmp"
    SYNCING = "syncing"

    def is_animation_like(self) -> bool:
        return self in _ANIMATION_LIKE

    def is_image_like(self) -> bool:
        return self in _IMAGE_LIKE

    def is_valid(self) -> bool:
        return self not in _NOT_VALID

    def priority(self) -> int:
        """Rank used when two candidates both classify; higher wins."""

        try:
            return len(_PRIORITY) - _PRIORITY.index(self)
        except ValueError:
            return 0

    def is_more_priority_than(self, other: "MediaType") -> bool:
        return self.priority() > other.priority()


_ANIMATION_LIKE = frozenset({MediaType.VIDEO, MediaType.ANIMATION, MediaType.HTML})
_IMAGE_LIKE = frozenset({MediaType.IMAGE, MediaType.GIF, MediaType.SVG})
_NOT_VALID = frozenset({MediaType.UNKNOWN, MediaType.INVALID, MediaType.SYNCING})
_PRIORITY = (
    MediaType.ANIMATION,
    MediaType.HTML,
    MediaType.VIDEO,
    MediaType.GIF,
    MediaType.SVG,
    MediaType.IMAGE,
    MediaType.AUDIO,
    MediaType.TEXT,
    MediaType.PDF,
    MediaType.JSON,
    MediaType.UNKNOWN,
)


@dataclass(slots=True)
class Dimensions:
    width: int = 0
    height: int = 0

    @property
    def valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(slots=True)
class Media:
    """What the UI renders for a token after a pipeline run."""

    media_type: MediaType = MediaType.UNKNOWN
    media_url: str = ""
    thumbnail_url: str = ""
    live_preview_url: str = ""
    profile_image_url: str = ""
    dimensions: Dimensions = field(default_factory=Dimensions)

    def is_servable(self) -> bool:
        return self.media_type.is_valid() and bool(self.media_url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "media_type": self.media_type.value,
            "media_url": self.media_url,
            "thumbnail_url": self.thumbnail_url,
            "live_preview_url": self.live_preview_url,
            "profile_image_url": self.profile_image_url,
            "dimensions": self.dimensions.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "Media":
        if not payload:
            return cls()
        dimensions = payload.get("dimensions") or {}
        try:
            media_type = MediaType(payload.get("media_type") or MediaType.UNKNOWN)
        except ValueError:
            media_type = MediaType.UNKNOWN
        return cls(
            media_type=media_type,
            media_url=payload.get("media_url") or "",
            thumbnail_url=payload.get("thumbnail_url") or "",
            live_preview_url=payload.get("live_preview_url") or "",
            profile_image_url=payload.get("profile_image_url") or "",
            dimensions=Dimensions(
                width=int(dimensions.get("width") or 0),
                height=int(dimensions.get("height") or 0),
            ),
        )


__all__ = ["Dimensions", "Media", "MediaType"]
