"""Resolves token metadata through the provider of the token's chain."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping

from ..domain.tokens import Chain, TokenIdentifier, TokenMetadata
from .providers_base import Provider
from .providers_errors import CapabilityNotSupportedError, ProviderFailedError

logger = logging.getLogger(__name__)

DEFAULT_METADATA_TIMEOUT = 60.0


@dataclass(slots=True)
class MetadataFinder:
    providers: Mapping[Chain, Provider]
    timeout_seconds: float = DEFAULT_METADATA_TIMEOUT
    log: logging.Logger = field(default_factory=lambda: logger)

    async def get_metadata(self, token: TokenIdentifier) -> TokenMetadata:
        provider = self.providers.get(token.chain)
        if provider is None:
            raise ProviderFailedError(f"no provider configured for chain {token.chain.name}", transient=False)
        try:
            fetch = provider.require("token_metadata_by_identifiers")
        except CapabilityNotSupportedError as exc:
            raise ProviderFailedError(str(exc), transient=False) from exc
        try:
            metadata = await asyncio.wait_for(fetch(token), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise ProviderFailedError(f"metadata lookup timed out after {self.timeout_seconds}s") from exc
        self.log.debug(
            "providers.metadata.found",
            extra={"token": token.key(), "provider": provider.name, "keys": sorted(metadata)[:20]},
        )
        return metadata


__all__ = ["MetadataFinder"]
