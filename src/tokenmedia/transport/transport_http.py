"""HTTP reader built on the shared ``httpx.AsyncClient``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

import httpx

from .transport_errors import TransportTransientError, error_for_status, error_from_httpx
from .transport_models import MediaStream, ResourceHeaders

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 300.0


def _parse_length(value: str | None) -> int | None:
    if not value:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None


@dataclass(slots=True)
class HttpTransport:
    client: httpx.AsyncClient
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    log: logging.Logger = field(default_factory=lambda: logger)

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.connect_timeout, read=self.read_timeout)

    async def open(self, url: str, headers: dict[str, str] | None = None) -> MediaStream:
        request = self.client.build_request("GET", url, headers=headers, timeout=self._timeout())
        try:
            response = await self.client.send(request, stream=True, follow_redirects=True)
        except httpx.HTTPError as exc:
            self.log.info("transport.http.open.failed", extra={"uri": url, "error": str(exc)})
            raise error_from_httpx(exc, url) from exc
        if response.status_code >= 400:
            await response.aclose()
            raise error_for_status(response.status_code, url)
        return MediaStream(
            self._iter_response(response, url),
            content_type=response.headers.get("content-type"),
            content_length=_parse_length(response.headers.get("content-length")),
            closer=response.aclose,
        )

    async def headers(self, url: str) -> ResourceHeaders:
        try:
            response = await self.client.head(url, timeout=self._timeout(), follow_redirects=True)
        except httpx.HTTPError as exc:
            raise error_from_httpx(exc, url) from exc
        if response.status_code in (405, 501):
            # some origins refuse HEAD; read only the response headers of a GET
            stream = await self.open(url)
            await stream.aclose()
            return ResourceHeaders(content_type=stream.content_type, content_length=stream.content_length)
        if response.status_code >= 400:
            raise error_for_status(response.status_code, url)
        return ResourceHeaders(
            content_type=response.headers.get("content-type"),
            content_length=_parse_length(response.headers.get("content-length")),
        )

    async def _iter_response(self, response: httpx.Response, url: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise TransportTransientError(f"read failed: {exc}", uri=url) from exc


__all__ = ["HttpTransport"]
