"""Fixed-secret basic auth shared by webhook and task routes."""

from __future__ import annotations

import base64
import binascii
import hmac
from typing import Iterable


class WebhookAuthError(Exception):
    """The request carried no valid secret."""


def parse_basic_auth(header: str | None) -> tuple[str, str] | None:
    """Return ``(username, password)`` from a ``Basic`` header, or ``None``."""

    if not header:
        return None
    scheme, _, value = header.strip().partition(" ")
    if scheme.lower() != "basic" or not value:
        return None
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, separator, password = decoded.partition(":")
    if not separator:
        return None
    return username, password


def verify_basic_auth(header: str | None, secrets: Iterable[str]) -> bool:
    """``True`` when the header's username or password matches one of ``secrets``.

    Secrets travel as ``base64(secret:)``; the password half is accepted too.
    """

    credentials = parse_basic_auth(header)
    if credentials is None:
        return False
    candidates = [part.encode("utf-8") for part in credentials if part]
    for secret in secrets:
        if not secret:
            continue
        expected = secret.encode("utf-8")
        if any(hmac.compare_digest(candidate, expected) for candidate in candidates):
            return True
    return False


def require_basic_auth(header: str | None, secrets: Iterable[str]) -> None:
    if not verify_basic_auth(header, secrets):
        raise WebhookAuthError("invalid or missing authorization")


__all__ = ["WebhookAuthError", "parse_basic_auth", "require_basic_auth", "verify_basic_auth"]
