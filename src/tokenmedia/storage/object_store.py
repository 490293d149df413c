"""Object store contract and the filesystem implementation used locally."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator

from ..exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Bucket-like store for cached media artifacts."""

    @abstractmethod
    async def write(
        self,
        key: str,
        chunks: AsyncIterator[bytes],
        *,
        content_type: str,
        cache_control: str,
        content_encoding: str | None = None,
    ) -> int:
        """Store ``chunks`` under ``key`` atomically and return the byte count."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing object is not an error."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` when ``key`` is present."""

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public serving URL of ``key``."""

    async def purge(self, key: str) -> None:
        """Invalidate CDN copies of ``key``; stores without a CDN do nothing."""


@dataclass(slots=True)
class LocalObjectStore(ObjectStore):
    """Filesystem store: ``<root>/<bucket>/<key>`` plus a ``.meta.json`` sidecar."""

    root: Path
    bucket: str
    public_base_url: str = "http://localhost:6500/media"
    log: logging.Logger = field(default_factory=lambda: logger)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self._bucket_dir().mkdir(parents=True, exist_ok=True)

    def _bucket_dir(self) -> Path:
        return self.root / self.bucket

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise StorageError(f"invalid object key '{key}'", key=key)
        return self._bucket_dir() / key

    def _meta_path(self, key: str) -> Path:
        return self._bucket_dir() / f".{key}.meta.json"

    async def write(
        self,
        key: str,
        chunks: AsyncIterator[bytes],
        *,
        content_type: str,
        cache_control: str,
        content_encoding: str | None = None,
    ) -> int:
        target = self._path(key)
        temp_path = target.with_name(f".{key}.{uuid.uuid4().hex}.part")
        size = 0
        meta = {"content_type": content_type, "cache_control": cache_control, "content_encoding": content_encoding}
        try:
            handle = await asyncio.to_thread(temp_path.open, "wb")
            try:
                async for chunk in chunks:
                    await asyncio.to_thread(handle.write, chunk)
                    size += len(chunk)
            finally:
                await asyncio.to_thread(handle.close)
            await asyncio.to_thread(self._commit, key, temp_path, target, {**meta, "size": size})
        except OSError as exc:
            raise StorageError(f"failed to write '{key}': {exc}", key=key) from exc
        finally:
            await asyncio.to_thread(temp_path.unlink, missing_ok=True)
        return size

    def _commit(self, key: str, temp_path: Path, target: Path, meta: dict[str, Any]) -> None:
        self._meta_path(key).write_text(json.dumps(meta), encoding="utf-8")
        os.replace(temp_path, target)

    def _remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
        self._meta_path(key).unlink(missing_ok=True)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._remove, key)
        except OSError as exc:
            raise StorageError(f"failed to delete '{key}': {exc}", key=key) from exc

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._path(key).exists)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{self.bucket}/{key}"

    async def purge(self, key: str) -> None:
        self.log.debug("storage.purge.skipped", extra={"key": key, "reason": "local store has no cdn"})

    def read(self, key: str) -> bytes:
        return self._path(key).read_bytes()

    def metadata(self, key: str) -> dict[str, Any]:
        meta_path = self._meta_path(key)
        if not meta_path.exists():
            return {}
        return json.loads(meta_path.read_text(encoding="utf-8"))


__all__ = ["LocalObjectStore", "ObjectStore"]
