"""Transport failure taxonomy used to decide between retry and skip."""

from __future__ import annotations

import httpx

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "no address associated",
    "temporary failure in name resolution",
    "nxdomain",
)


class TransportError(Exception):
    """Base class for failures while reading a media URI."""

    def __init__(self, message: str, *, uri: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.uri = uri
        self.status_code = status_code


class TransportNotFoundError(TransportError):
    """Resource does not exist (HTTP 404 or unresolvable host)."""


class TransportTransientError(TransportError):
    """5xx, network or timeout failure; worth retrying later."""


class TransportPermanentError(TransportError):
    """Other 4xx responses and undecodable payloads."""


class UnsupportedURIError(TransportPermanentError):
    """URI scheme the fetcher cannot read."""


def error_for_status(status_code: int, uri: str) -> TransportError:
    message = f"unexpected status {status_code} for {uri}"
    if status_code == 404:
        return TransportNotFoundError(message, uri=uri, status_code=status_code)
    if status_code >= 500 or status_code == 429:
        return TransportTransientError(message, uri=uri, status_code=status_code)
    return TransportPermanentError(message, uri=uri, status_code=status_code)


def error_from_httpx(exc: httpx.HTTPError, uri: str) -> TransportError:
    message = f"{type(exc).__name__}: {exc}"
    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if any(marker in text for marker in _DNS_FAILURE_MARKERS):
            return TransportNotFoundError(message, uri=uri)
        return TransportTransientError(message, uri=uri)
    if isinstance(exc, httpx.DecodingError):
        return TransportPermanentError(message, uri=uri)
    if isinstance(exc, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
        return UnsupportedURIError(message, uri=uri)
    if isinstance(exc, httpx.HTTPStatusError):
        return error_for_status(exc.response.status_code, uri)
    return TransportTransientError(message, uri=uri)


__all__ = [
    "TransportError",
    "TransportNotFoundError",
    "TransportPermanentError",
    "TransportTransientError",
    "UnsupportedURIError",
    "error_for_status",
    "error_from_httpx",
]
