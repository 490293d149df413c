"""Scheme dispatch from a metadata URI to a byte stream."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .transport_errors import TransportError, TransportNotFoundError, UnsupportedURIError
from .transport_http import HttpTransport
from .transport_inline import decode_inline, open_inline
from .transport_models import MediaStream, ResourceHeaders, URIType, classify_uri, uri_path

logger = logging.getLogger(__name__)

DEFAULT_IPFS_URL = "https://ipfs.io"
DEFAULT_ARWEAVE_URL = "https://arweave.net"


@dataclass(slots=True)
class MediaFetcher:
    """Resolves ipfs, arweave, http and inline URIs.

    IPFS content is read through the configured gateway. Gateway URLs found
    in metadata are rewritten to that gateway first and fall back to the
    original host when the configured gateway fails.
    """

    http: HttpTransport
    ipfs_url: str = DEFAULT_IPFS_URL
    arweave_url: str = DEFAULT_ARWEAVE_URL
    log: logging.Logger = field(default_factory=lambda: logger)

    def resolve_url(self, uri: str) -> str:
        """Public http(s) URL for ``uri``; inline and plain http values are returned as-is."""

        uri_type = classify_uri(uri)
        if uri_type in (URIType.IPFS, URIType.IPFS_API):
            return f"{self.ipfs_url.rstrip('/')}/ipfs/{uri_path(uri, uri_type)}"
        if uri_type == URIType.ARWEAVE:
            return f"{self.arweave_url.rstrip('/')}/{uri_path(uri, uri_type)}"
        return uri.strip()

    def _gateway_url(self, uri: str, uri_type: URIType) -> str:
        return f"{self.ipfs_url.rstrip('/')}/ipfs/{uri_path(uri, uri_type)}"

    async def open(self, uri: str) -> MediaStream:
        uri_type = classify_uri(uri)
        if uri_type.is_inline():
            return open_inline(uri)
        if uri_type == URIType.IPFS_GATEWAY:
            gateway_url = self._gateway_url(uri, uri_type)
            if gateway_url != uri.strip():
                try:
                    return await self.http.open(gateway_url)
                except TransportNotFoundError:
                    raise
                except TransportError as exc:
                    self.log.info(
                        "transport.ipfs.gateway_fallback",
                        extra={"uri": uri, "gateway": gateway_url, "error": str(exc)},
                    )
            return await self.http.open(uri.strip())
        if uri_type.is_remote():
            return await self.http.open(self.resolve_url(uri))
        raise UnsupportedURIError(f"unsupported uri type '{uri_type}'", uri=uri[:128])

    async def headers(self, uri: str) -> ResourceHeaders:
        uri_type = classify_uri(uri)
        if uri_type.is_inline():
            data, content_type = decode_inline(uri)
            return ResourceHeaders(content_type=content_type, content_length=len(data))
        if uri_type.is_remote():
            return await self.http.headers(self.resolve_url(uri))
        raise UnsupportedURIError(f"unsupported uri type '{uri_type}'", uri=uri[:128])

    async def read(self, uri: str, limit: int | None = None) -> bytes:
        stream = await self.open(uri)
        async with stream:
            return await stream.read(limit)


__all__ = ["DEFAULT_ARWEAVE_URL", "DEFAULT_IPFS_URL", "MediaFetcher"]
