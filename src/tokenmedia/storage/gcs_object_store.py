"""Google Cloud Storage backend over the JSON API."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator
from urllib.parse import quote

import httpx

from ..exceptions import StorageError
from .object_store import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://storage.googleapis.com"
DEFAULT_PUBLIC_HOST = "https://storage.googleapis.com"
MAX_REWRITE_CALLS = 32


@dataclass(slots=True)
class GcsObjectStore(ObjectStore):
    """Uploads go to a temporary object that is rewritten onto the final key.

    Readers of the final key therefore see either the previous object or the
    complete new one, never a partial upload.
    """

    client: httpx.AsyncClient
    bucket: str
    access_token: str | None = None
    api_url: str = DEFAULT_API_URL
    public_host: str = DEFAULT_PUBLIC_HOST
    log: logging.Logger = field(default_factory=lambda: logger)

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def _object_url(self, key: str) -> str:
        return f"{self.api_url.rstrip('/')}/storage/v1/b/{self.bucket}/o/{quote(key, safe='')}"

    async def write(
        self,
        key: str,
        chunks: AsyncIterator[bytes],
        *,
        content_type: str,
        cache_control: str,
        content_encoding: str | None = None,
    ) -> int:
        temp_key = f".uploads/{key}.{uuid.uuid4().hex}"
        counter = _ByteCounter(chunks)
        try:
            response = await self.client.post(
                f"{self.api_url.rstrip('/')}/upload/storage/v1/b/{self.bucket}/o",
                params={"uploadType": "media", "name": temp_key},
                content=counter.iterate(),
                headers={**self._headers(), "Content-Type": content_type},
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"upload of '{key}' failed: {exc}", key=key) from exc
        if response.status_code >= 400:
            raise StorageError(
                f"upload of '{key}' rejected with {response.status_code}",
                key=key,
                status_code=response.status_code,
            )

        destination = {"contentType": content_type, "cacheControl": cache_control}
        if content_encoding:
            destination["contentEncoding"] = content_encoding
        try:
            await self._rewrite(temp_key, key, destination)
        finally:
            try:
                await self.delete(temp_key)
            except StorageError as exc:
                self.log.warning("storage.gcs.temp_cleanup_failed", extra={"key": temp_key, "error": str(exc)})
        return counter.total

    async def _rewrite(self, source: str, target: str, destination: dict[str, str]) -> None:
        url = f"{self._object_url(source)}/rewriteTo/b/{self.bucket}/o/{quote(target, safe='')}"
        params: dict[str, str] = {}
        for _ in range(MAX_REWRITE_CALLS):
            try:
                response = await self.client.post(url, params=params, json=destination, headers=self._headers())
            except httpx.HTTPError as exc:
                raise StorageError(f"commit of '{target}' failed: {exc}", key=target) from exc
            if response.status_code >= 400:
                raise StorageError(
                    f"commit of '{target}' rejected with {response.status_code}",
                    key=target,
                    status_code=response.status_code,
                )
            payload = response.json()
            if payload.get("done", True):
                return
            params = {"rewriteToken": payload["rewriteToken"]}
        raise StorageError(f"commit of '{target}' did not finish", key=target)

    async def delete(self, key: str) -> None:
        try:
            response = await self.client.delete(self._object_url(key), headers=self._headers())
        except httpx.HTTPError as exc:
            raise StorageError(f"delete of '{key}' failed: {exc}", key=key) from exc
        if response.status_code == 404:
            return
        if response.status_code >= 400:
            raise StorageError(
                f"delete of '{key}' rejected with {response.status_code}",
                key=key,
                status_code=response.status_code,
            )

    async def exists(self, key: str) -> bool:
        try:
            response = await self.client.get(self._object_url(key), params={"fields": "name"}, headers=self._headers())
        except httpx.HTTPError as exc:
            raise StorageError(f"lookup of '{key}' failed: {exc}", key=key) from exc
        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            raise StorageError(
                f"lookup of '{key}' rejected with {response.status_code}",
                key=key,
                status_code=response.status_code,
            )
        return True

    def public_url(self, key: str) -> str:
        return f"{self.public_host.rstrip('/')}/{self.bucket}/{key}"

    async def purge(self, key: str) -> None:
        url = self.public_url(key)
        try:
            response = await self.client.request("PURGE", url)
        except httpx.HTTPError as exc:
            raise StorageError(f"purge of '{url}' failed: {exc}", key=key) from exc
        if response.status_code >= 400:
            raise StorageError(
                f"purge of '{url}' rejected with {response.status_code}",
                key=key,
                status_code=response.status_code,
            )


class _ByteCounter:
    def __init__(self, chunks: AsyncIterator[bytes]) -> None:
        self._chunks = chunks
        self.total = 0

    async def iterate(self) -> AsyncIterator[bytes]:
        async for chunk in self._chunks:
            self.total += len(chunk)
            yield chunk


__all__ = ["GcsObjectStore"]
