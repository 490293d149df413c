"""URI classification and the streaming reader returned by the fetcher."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import AsyncIterator, Awaitable, Callable
from urllib.parse import parse_qs, urlparse

SNIFF_SIZE = 512

_CID_PATTERN = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{58,})(/.*)?$")


class URIType(StrEnum):
    IPFS = "ipfs"
    IPFS_GATEWAY = "ipfs-gateway"
    IPFS_API = "ipfs-api"
    ARWEAVE = "arweave"
    HTTP = "http"
    BASE64_JSON = "base64json"
    JSON = "json"
    BASE64_SVG = "base64svg"
    SVG = "svg"
    BASE64_BMP = "base64bmp"
    BASE64 = "base64"
    NONE = "none"
    UNKNOWN = "unknown"

    def is_inline(self) -> bool:
        return self in _INLINE_TYPES

    def is_remote(self) -> bool:
        return self in _REMOTE_TYPES


_INLINE_TYPES = frozenset(
    {
        URIType.BASE64_JSON,
        URIType.JSON,
        URIType.BASE64_SVG,
        URIType.SVG,
        URIType.BASE64_BMP,
        URIType.BASE64,
    }
)
_REMOTE_TYPES = frozenset(
    {URIType.IPFS, URIType.IPFS_GATEWAY, URIType.IPFS_API, URIType.ARWEAVE, URIType.HTTP}
)


def classify_uri(uri: str) -> URIType:
    text = (uri or "").strip()
    if not text:
        return URIType.NONE
    lower = text.lower()
    if lower.startswith("data:"):
        header = lower.split(",", 1)[0]
        if header.startswith("data:application/json"):
            return URIType.BASE64_JSON if ";base64" in header else URIType.JSON
        if header.startswith("data:image/svg"):
            return URIType.BASE64_SVG if ";base64" in header else URIType.SVG
        if header.startswith("data:image/bmp"):
            return URIType.BASE64_BMP
        return URIType.BASE64
    if lower.startswith("<svg") or (lower.startswith("<?xml") and "<svg" in lower):
        return URIType.SVG
    if text.startswith("{"):
        return URIType.JSON
    if lower.startswith("ipfs://"):
        return URIType.IPFS
    if lower.startswith("ar://"):
        return URIType.ARWEAVE
    if lower.startswith("http://") or lower.startswith("https://"):
        parsed = urlparse(text)
        if parsed.path.startswith("/api/v0/"):
            return URIType.IPFS_API
        if "/ipfs/" in parsed.path or parsed.netloc.endswith(".ipfs.dweb.link"):
            return URIType.IPFS_GATEWAY
        return URIType.HTTP
    if _CID_PATTERN.match(text):
        return URIType.IPFS
    return URIType.UNKNOWN


def uri_path(uri: str, uri_type: URIType | None = None) -> str:
    """Content path of an IPFS or Arweave URI (``CID[/path]`` or ``hash``)."""

    text = uri.strip()
    uri_type = uri_type or classify_uri(text)
    if uri_type == URIType.IPFS:
        path = text[len("ipfs://"):] if text.lower().startswith("ipfs://") else text
        if path.startswith("ipfs/"):
            path = path[len("ipfs/"):]
        return path
    if uri_type == URIType.IPFS_GATEWAY:
        parsed = urlparse(text)
        if "/ipfs/" in parsed.path:
            return parsed.path.split("/ipfs/", 1)[1]
        cid = parsed.netloc.split(".", 1)[0]
        return f"{cid}{parsed.path}"
    if uri_type == URIType.IPFS_API:
        args = parse_qs(urlparse(text).query).get("arg") or [""]
        return args[0]
    if uri_type == URIType.ARWEAVE:
        return text[len("ar://"):]
    return text


def is_renderable_url(url: str) -> bool:
    """URLs a browser can render directly as a thumbnail."""

    uri_type = classify_uri(url)
    if uri_type in (URIType.HTTP, URIType.IPFS_GATEWAY):
        return True
    return uri_type in (URIType.BASE64_SVG, URIType.SVG, URIType.BASE64_BMP) or url.lower().startswith("data:image/")


@dataclass(slots=True)
class ResourceHeaders:
    content_type: str | None = None
    content_length: int | None = None


class MediaStream:
    """Single-pass byte stream with a small look-ahead buffer for sniffing."""

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        *,
        content_type: str | None = None,
        content_length: int | None = None,
        closer: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.content_type = content_type
        self.content_length = content_length
        self._chunks = chunks
        self._closer = closer
        self._head = bytearray()
        self._exhausted = False
        self._consumed = False
        self._closed = False

    @classmethod
    def from_bytes(cls, data: bytes, content_type: str | None = None) -> "MediaStream":
        async def _single() -> AsyncIterator[bytes]:
            if data:
                yield data

        return cls(_single(), content_type=content_type, content_length=len(data))

    async def peek(self, size: int = SNIFF_SIZE) -> bytes:
        if self._consumed:
            raise RuntimeError("stream already consumed")
        size = min(size, SNIFF_SIZE)
        while len(self._head) < size and not self._exhausted:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                break
            self._head.extend(chunk)
        return bytes(self._head[:size])

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("stream already consumed")
        self._consumed = True
        if self._head:
            head = bytes(self._head)
            self._head.clear()
            yield head
        if self._exhausted:
            return
        async for chunk in self._chunks:
            if chunk:
                yield chunk

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_bytes()

    async def read(self, limit: int | None = None) -> bytes:
        buffer = bytearray()
        async for chunk in self.iter_bytes():
            buffer.extend(chunk)
            if limit is not None and len(buffer) >= limit:
                return bytes(buffer[:limit])
        return bytes(buffer)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        if self._closer is not None:
            await self._closer()

    async def __aenter__(self) -> "MediaStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = [
    "MediaStream",
    "ResourceHeaders",
    "SNIFF_SIZE",
    "URIType",
    "classify_uri",
    "is_renderable_url",
    "uri_path",
]
