"""Readers that turn metadata URIs into byte streams."""

from .media_fetcher import MediaFetcher
from .transport_errors import (
    TransportError,
    TransportNotFoundError,
    TransportPermanentError,
    TransportTransientError,
    UnsupportedURIError,
)
from .transport_http import HttpTransport
from .transport_models import MediaStream, ResourceHeaders, URIType, classify_uri

__all__ = [
    "HttpTransport",
    "MediaFetcher",
    "MediaStream",
    "ResourceHeaders",
    "TransportError",
    "TransportNotFoundError",
    "TransportPermanentError",
    "TransportTransientError",
    "URIType",
    "UnsupportedURIError",
    "classify_uri",
]
