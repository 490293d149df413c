"""Webhook ingress."""

from .webhook_auth import WebhookAuthError, parse_basic_auth, require_basic_auth, verify_basic_auth
from .webhook_schemas import AddressActivityWebhook, SuccessResponse

__all__ = [
    "AddressActivityWebhook",
    "SuccessResponse",
    "WebhookAuthError",
    "parse_basic_auth",
    "require_basic_auth",
    "verify_basic_auth",
]
