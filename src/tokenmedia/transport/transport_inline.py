"""Readers for media embedded directly in metadata (data URIs, SVG and JSON literals)."""

from __future__ import annotations

import base64
import binascii
from urllib.parse import unquote_to_bytes

from .transport_errors import TransportPermanentError, UnsupportedURIError
from .transport_models import MediaStream, URIType, classify_uri


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    """Decode ``data:[<mediatype>][;base64],<data>`` into bytes and its media type."""

    if not uri.lower().startswith("data:") or "," not in uri:
        raise TransportPermanentError("malformed data uri", uri=uri[:64])
    header, payload = uri[len("data:"):].split(",", 1)
    parts = [part.strip() for part in header.split(";")]
    content_type = parts[0] or "text/plain"
    if "base64" in (part.lower() for part in parts[1:]):
        try:
            data = base64.b64decode(payload + "=" * (-len(payload) % 4), validate=False)
        except (binascii.Error, ValueError) as exc:
            raise TransportPermanentError(f"invalid base64 payload: {exc}", uri=uri[:64]) from exc
    else:
        data = unquote_to_bytes(payload)
    return data, content_type


def decode_inline(uri: str) -> tuple[bytes, str]:
    uri_type = classify_uri(uri)
    if uri_type in (URIType.BASE64_JSON, URIType.BASE64_SVG, URIType.BASE64_BMP, URIType.BASE64):
        return decode_data_uri(uri)
    if uri_type == URIType.JSON:
        if uri.lower().startswith("data:"):
            return decode_data_uri(uri)
        return uri.encode("utf-8"), "application/json"
    if uri_type == URIType.SVG:
        if uri.lower().startswith("data:"):
            data, _ = decode_data_uri(uri)
            return data, "image/svg+xml"
        return uri.strip().encode("utf-8"), "image/svg+xml"
    raise UnsupportedURIError(f"not an inline uri: {uri_type}", uri=uri[:64])


def open_inline(uri: str) -> MediaStream:
    data, content_type = decode_inline(uri)
    return MediaStream.from_bytes(data, content_type)


__all__ = ["decode_data_uri", "decode_inline", "open_inline"]
