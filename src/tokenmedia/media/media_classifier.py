"""Media type prediction: extension table, declared headers, then byte sniffing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

from ..domain.media import MediaType
from ..transport.media_fetcher import MediaFetcher
from ..transport.transport_errors import TransportError
from ..transport.transport_inline import decode_data_uri
from ..transport.transport_models import URIType, classify_uri

logger = logging.getLogger(__name__)

EXTENSION_MEDIA_TYPES: dict[str, tuple[MediaType, str]] = {
    "jpg": (MediaType.IMAGE, "image/jpeg"),
    "jpeg": (MediaType.IMAGE, "image/jpeg"),
    "png": (MediaType.IMAGE, "image/png"),
    "webp": (MediaType.IMAGE, "image/webp"),
    "gif": (MediaType.GIF, "image/gif"),
    "mp4": (MediaType.VIDEO, "video/mp4"),
    "webm": (MediaType.VIDEO, "video/webm"),
    "glb": (MediaType.ANIMATION, "model/gltf-binary"),
    "gltf": (MediaType.ANIMATION, "model/gltf+json"),
    "svg": (MediaType.SVG, "image/svg+xml"),
    "pdf": (MediaType.PDF, "application/pdf"),
    "html": (MediaType.HTML, "text/html"),
}

_RAW_FORMATS: dict[str, MediaType] = {
    "animation": MediaType.ANIMATION,
    "audio": MediaType.AUDIO,
    "gif": MediaType.GIF,
    "glb": MediaType.ANIMATION,
    "gltf": MediaType.ANIMATION,
    "html": MediaType.HTML,
    "image": MediaType.IMAGE,
    "jpeg": MediaType.IMAGE,
    "jpg": MediaType.IMAGE,
    "json": MediaType.JSON,
    "mp3": MediaType.AUDIO,
    "mp4": MediaType.VIDEO,
    "pdf": MediaType.PDF,
    "png": MediaType.IMAGE,
    "svg": MediaType.SVG,
    "text": MediaType.TEXT,
    "video": MediaType.VIDEO,
    "wav": MediaType.AUDIO,
    "webm": MediaType.VIDEO,
    "webp": MediaType.IMAGE,
}


def media_type_from_extension(url: str) -> tuple[MediaType, str] | None:
    if classify_uri(url).is_inline():
        return None
    path = urlparse(url.strip()).path if "://" in url else url.strip()
    last = path.rsplit("/", 1)[-1]
    if "." not in last:
        return None
    extension = last.rsplit(".", 1)[-1].lower()
    return EXTENSION_MEDIA_TYPES.get(extension)


def media_type_from_content_type(content_type: str | None) -> MediaType:
    if not content_type:
        return MediaType.UNKNOWN
    value = content_type.split(";", 1)[0].strip().lower()
    if value.startswith("image/svg"):
        return MediaType.SVG
    if value == "image/gif":
        return MediaType.GIF
    if value.startswith("image/"):
        return MediaType.IMAGE
    if value.startswith("video/"):
        return MediaType.VIDEO
    if value.startswith("audio/"):
        return MediaType.AUDIO
    if value.startswith("model/gltf"):
        return MediaType.ANIMATION
    if value == "text/html":
        return MediaType.HTML
    if value.startswith("text/"):
        return MediaType.TEXT
    if value == "application/pdf":
        return MediaType.PDF
    if value == "application/json" or value.endswith("+json"):
        return MediaType.JSON
    return MediaType.UNKNOWN


def raw_format_to_media_type(value: object) -> MediaType:
    """Map free-form ``media_type``/``format`` metadata values to a media type."""

    if not isinstance(value, str) or not value.strip():
        return MediaType.UNKNOWN
    text = value.strip().lower()
    if "/" in text:
        return media_type_from_content_type(text)
    try:
        return MediaType(text)
    except ValueError:
        return _RAW_FORMATS.get(text, MediaType.UNKNOWN)


def _strip_leading(buf: bytes) -> bytes:
    if buf.startswith(b"\xef\xbb\xbf"):
        buf = buf[3:]
    return buf.lstrip()


def sniff_media_type(buf: bytes) -> tuple[MediaType, str]:
    """Detect the media type from the first bytes of a payload."""

    if not buf:
        return MediaType.UNKNOWN, "application/octet-stream"
    if buf.startswith(b"\xff\xd8\xff"):
        return MediaType.IMAGE, "image/jpeg"
    if buf.startswith(b"\x89PNG\r\n\x1a\n"):
        return MediaType.IMAGE, "image/png"
    if buf.startswith((b"GIF87a", b"GIF89a")):
        return MediaType.GIF, "image/gif"
    if buf[:4] == b"RIFF" and buf[8:12] == b"WEBP":
        return MediaType.IMAGE, "image/webp"
    if buf[:4] == b"RIFF" and buf[8:12] == b"WAVE":
        return MediaType.AUDIO, "audio/wav"
    if buf.startswith(b"BM") and len(buf) >= 14:
        return MediaType.IMAGE, "image/bmp"
    if buf.startswith(b"glTF"):
        return MediaType.ANIMATION, "model/gltf-binary"
    if buf.startswith(b"%PDF-"):
        return MediaType.PDF, "application/pdf"
    if buf[4:8] == b"ftyp":
        if buf[8:10] == b"qt":
            return MediaType.VIDEO, "video/quicktime"
        if buf[8:11] == b"M4A":
            return MediaType.AUDIO, "audio/mp4"
        return MediaType.VIDEO, "video/mp4"
    if buf.startswith(b"\x1a\x45\xdf\xa3"):
        return MediaType.VIDEO, "video/webm"
    if buf.startswith(b"ID3") or buf[:2] in (b"\xff\xfb", b"\xff\xf3", b"\xff\xf2"):
        return MediaType.AUDIO, "audio/mpeg"
    if buf.startswith(b"OggS"):
        return MediaType.AUDIO, "audio/ogg"

    text = _strip_leading(buf)
    lowered = text[:512].lower()
    if lowered.startswith(b"<svg") or (lowered.startswith(b"<?xml") and b"<svg" in lowered):
        return MediaType.SVG, "image/svg+xml"
    if lowered.startswith((b"<!doctype html", b"<html", b"<head", b"<body", b"<iframe", b"<script")):
        return MediaType.HTML, "text/html"
    if text.startswith((b"{", b"[")):
        if b'"asset"' in text and any(marker in text for marker in (b'"scenes"', b'"nodes"', b'"meshes"')):
            return MediaType.ANIMATION, "model/gltf+json"
        return MediaType.JSON, "application/json"
    try:
        buf.decode("utf-8")
    except UnicodeDecodeError:
        # a truncated multi-byte sequence at the sniff boundary is still text
        try:
            buf[:-3].decode("utf-8")
        except UnicodeDecodeError:
            return MediaType.UNKNOWN, "application/octet-stream"
    return MediaType.TEXT, "text/plain"


@dataclass(slots=True)
class Prediction:
    media_type: MediaType = MediaType.UNKNOWN
    content_type: str | None = None
    content_length: int | None = None


def should_swap(image_type: MediaType, video_type: MediaType) -> bool:
    if image_type.is_animation_like() and not video_type.is_animation_like():
        return True
    return image_type.is_valid() and video_type.is_valid() and image_type.is_more_priority_than(video_type)


@dataclass(slots=True)
class MediaClassifier:
    fetcher: MediaFetcher
    log: logging.Logger = field(default_factory=lambda: logger)

    async def predict(self, uri: str) -> Prediction:
        """Predict the media type of ``uri`` without downloading its body.

        Raises :class:`TransportError` when the headers of a remote resource
        cannot be read.
        """

        if not uri or not uri.strip():
            return Prediction()
        hinted = media_type_from_extension(uri)
        if hinted is not None:
            return Prediction(media_type=hinted[0], content_type=hinted[1])

        uri_type = classify_uri(uri)
        if uri_type in (URIType.BASE64_JSON, URIType.JSON):
            return Prediction(MediaType.JSON, "application/json")
        if uri_type in (URIType.BASE64_SVG, URIType.SVG):
            return Prediction(MediaType.SVG, "image/svg+xml")
        if uri_type == URIType.BASE64_BMP:
            return Prediction(MediaType.BASE64BMP, "image/bmp")
        if uri_type == URIType.BASE64:
            _, content_type = decode_data_uri(uri)
            return Prediction(media_type_from_content_type(content_type), content_type)
        if uri_type.is_remote():
            headers = await self.fetcher.headers(uri)
            return Prediction(
                media_type=media_type_from_content_type(headers.content_type),
                content_type=headers.content_type,
                content_length=headers.content_length,
            )
        return Prediction()

    async def predict_media_type(self, uri: str) -> MediaType:
        return (await self.predict(uri)).media_type

    async def predict_true_urls(self, image_url: str, video_url: str) -> tuple[str, str]:
        """Return ``(image_url, video_url)``, swapped when the slots are misused."""

        if not image_url or not video_url:
            return image_url, video_url
        try:
            image_type = await self.predict_media_type(image_url)
            video_type = await self.predict_media_type(video_url)
        except TransportError as exc:
            self.log.info(
                "media.classify.predict_failed",
                extra={"image_url": image_url, "video_url": video_url, "error": str(exc)},
            )
            return image_url, video_url
        if should_swap(image_type, video_type):
            self.log.debug(
                "media.classify.swapped",
                extra={"image_type": image_type.value, "video_type": video_type.value},
            )
            return video_url, image_url
        return image_url, video_url


__all__ = [
    "EXTENSION_MEDIA_TYPES",
    "MediaClassifier",
    "Prediction",
    "media_type_from_content_type",
    "media_type_from_extension",
    "raw_format_to_media_type",
    "should_swap",
    "sniff_media_type",
]
