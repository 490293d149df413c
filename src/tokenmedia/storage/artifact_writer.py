"""Single write path for cached media artifacts and their coherency rules."""

from __future__ import annotations

import asyncio
import logging
import zlib
from dataclasses import dataclass, field
from enum import StrEnum
from typing import AsyncIterator

from ..domain.media import MediaType
from ..exceptions import StorageError
from .object_store import ObjectStore

logger = logging.getLogger(__name__)

CACHE_CONTROL = "no-cache, no-store"
GZIP_CONTENT_TYPE = "application/octet-stream"
DEFAULT_DELETE_TIMEOUT = 10.0
MAX_PARALLEL_DELETES = 4


class ArtifactKind(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    SVG = "svg"
    THUMBNAIL = "thumbnail"
    LIVE_RENDER = "liverender"
    PROFILE_IMAGE = "profile-image"


def artifact_key(kind: ArtifactKind | str, name: str) -> str:
    return f"{ArtifactKind(kind).value}-{name}"


@dataclass(slots=True)
class CacheResult:
    """Outcome of downloading one candidate URL into the store."""

    media_type: MediaType = MediaType.UNKNOWN
    cached: bool = False
    error: Exception | None = None
    content_type: str | None = None
    key: str | None = None


async def gzip_chunks(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    compressor = zlib.compressobj(wbits=31)
    async for chunk in chunks:
        data = compressor.compress(chunk)
        if data:
            yield data
    yield compressor.flush()


def coherency_deletions(name: str, image: CacheResult, video: CacheResult) -> list[str]:
    """Keys that must be removed so the artifact set matches what this run cached."""

    keys: list[str] = []

    def add(kind: ArtifactKind) -> None:
        key = artifact_key(kind, name)
        if key not in keys:
            keys.append(key)

    if not image.cached and image.media_type.is_image_like():
        add(ArtifactKind.IMAGE)
    if not image.cached and image.media_type.is_animation_like():
        add(ArtifactKind.LIVE_RENDER)
    if not video.cached and video.media_type.is_animation_like():
        add(ArtifactKind.VIDEO)
        add(ArtifactKind.LIVE_RENDER)
    anything_animated = image.media_type.is_animation_like() or video.media_type.is_animation_like()
    if (image.cached or video.cached) and not anything_animated:
        add(ArtifactKind.THUMBNAIL)
        add(ArtifactKind.LIVE_RENDER)
    return keys


@dataclass(slots=True)
class ArtifactWriter:
    store: ObjectStore
    delete_timeout: float = DEFAULT_DELETE_TIMEOUT
    max_parallel_deletes: int = MAX_PARALLEL_DELETES
    log: logging.Logger = field(default_factory=lambda: logger)

    async def write(
        self,
        kind: ArtifactKind,
        name: str,
        chunks: AsyncIterator[bytes],
        *,
        content_type: str,
        gzip_encode: bool = False,
    ) -> str:
        key = artifact_key(kind, name)
        body = gzip_chunks(chunks) if gzip_encode else chunks
        size = await self.store.write(
            key,
            body,
            content_type=GZIP_CONTENT_TYPE if gzip_encode else content_type,
            cache_control=CACHE_CONTROL,
            content_encoding="gzip" if gzip_encode else None,
        )
        self.log.info(
            "storage.artifact.written",
            extra={"key": key, "size": size, "content_type": content_type, "gzip": gzip_encode},
        )
        await self._purge(key)
        return key

    async def _purge(self, key: str) -> None:
        try:
            await self.store.purge(key)
        except StorageError as exc:
            self.log.warning("storage.artifact.purge_failed", extra={"key": key, "error": str(exc)})

    async def exists(self, kind: ArtifactKind, name: str) -> bool:
        return await self.store.exists(artifact_key(kind, name))

    async def serving_url(self, kind: ArtifactKind, name: str) -> str:
        """Public URL of the artifact, or an empty string when it is not cached."""

        key = artifact_key(kind, name)
        if await self.store.exists(key):
            return self.store.public_url(key)
        return ""

    async def delete(self, key: str) -> None:
        await asyncio.wait_for(self.store.delete(key), timeout=self.delete_timeout)
        await self._purge(key)

    async def apply_coherency(self, name: str, image: CacheResult, video: CacheResult) -> list[str]:
        """Run the deletion rules in parallel; returns the keys that were removed."""

        keys = coherency_deletions(name, image, video)
        if not keys:
            return []
        semaphore = asyncio.Semaphore(self.max_parallel_deletes)

        async def _delete(key: str) -> str | None:
            async with semaphore:
                try:
                    await self.delete(key)
                except (StorageError, asyncio.TimeoutError) as exc:
                    self.log.warning("storage.coherency.delete_failed", extra={"key": key, "error": str(exc)})
                    return None
                return key

        results = await asyncio.gather(*(_delete(key) for key in keys))
        deleted = [key for key in results if key]
        self.log.info("storage.coherency.applied", extra={"artifact_name": name, "deleted": deleted})
        return deleted


__all__ = [
    "ArtifactKind",
    "ArtifactWriter",
    "CACHE_CONTROL",
    "CacheResult",
    "artifact_key",
    "coherency_deletions",
    "gzip_chunks",
]
