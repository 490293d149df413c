"""In-memory object store used by pipeline and storage tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from src.tokenmedia.exceptions import StorageError
from src.tokenmedia.storage.object_store import ObjectStore

PUBLIC_HOST = "https://cdn.tokenmedia.test"


@dataclass(slots=True)
class StoredObject:
    data: bytes
    content_type: str
    cache_control: str
    content_encoding: str | None = None


@dataclass(slots=True)
class InMemoryObjectStore(ObjectStore):
    bucket: str = "test-bucket"
    objects: dict[str, StoredObject] = field(default_factory=dict)
    deleted: list[str] = field(default_factory=list)
    purged: list[str] = field(default_factory=list)
    fail_writes: bool = False

    async def write(
        self,
        key: str,
        chunks: AsyncIterator[bytes],
        *,
        content_type: str,
        cache_control: str,
        content_encoding: str | None = None,
    ) -> int:
        buffer = bytearray()
        async for chunk in chunks:
            buffer.extend(chunk)
        if self.fail_writes:
            raise StorageError(f"write of '{key}' rejected", key=key, status_code=503)
        self.objects[key] = StoredObject(bytes(buffer), content_type, cache_control, content_encoding)
        return len(buffer)

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self.objects

    def public_url(self, key: str) -> str:
        return f"{PUBLIC_HOST}/{self.bucket}/{key}"

    async def purge(self, key: str) -> None:
        self.purged.append(key)

    def put(self, key: str, data: bytes = b"x", content_type: str = "application/octet-stream") -> None:
        """Seed an object as if a previous run had cached it."""

        self.objects[key] = StoredObject(data, content_type, "no-cache, no-store")

    def keys(self) -> set[str]:
        return set(self.objects)

    def describe(self, key: str) -> dict[str, Any]:
        stored = self.objects[key]
        return {
            "content_type": stored.content_type,
            "cache_control": stored.cache_control,
            "content_encoding": stored.content_encoding,
            "size": len(stored.data),
        }
