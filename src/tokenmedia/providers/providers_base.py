"""Capability record describing what a chain data provider can do.

A provider is not a class hierarchy: it is a record whose slots hold the
callables it supplies. Missing capabilities are ``None``. Combinators in
:mod:`providers_fallback` build new records out of existing ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, AsyncIterator, Awaitable, Callable

from ..domain.tokens import Chain, ContractIdentifier, TokenIdentifier, TokenMetadata
from .providers_errors import CapabilityNotSupportedError


@dataclass(slots=True)
class ProviderToken:
    """Chain-agnostic token as reported by a provider."""

    identifier: TokenIdentifier
    owner_address: str = ""
    name: str = ""
    description: str = ""
    quantity: str = "1"
    metadata: TokenMetadata = field(default_factory=dict)
    descriptors: dict[str, Any] = field(default_factory=dict)
    media_url: str = ""
    image_url: str = ""
    animation_url: str = ""
    is_spam: bool | None = None


SUBSTITUTABLE_FIELDS = ("metadata", "descriptors", "media_url", "image_url", "animation_url")

TokensByOwner = Callable[[str], Awaitable[list[ProviderToken]]]
TokensIncrementalByOwner = Callable[[str], AsyncIterator[list[ProviderToken]]]
TokensByContract = Callable[[ContractIdentifier, int, int], Awaitable[list[ProviderToken]]]
TokensByContractAndOwner = Callable[[ContractIdentifier, str, int, int], Awaitable[list[ProviderToken]]]
TokenByIdentifiersAndOwner = Callable[[TokenIdentifier, str], Awaitable[ProviderToken]]
TokenMetadataByIdentifiers = Callable[[TokenIdentifier], Awaitable[TokenMetadata]]
TokenDescriptorsByIdentifiers = Callable[[TokenIdentifier], Awaitable[dict[str, Any]]]
NameResolver = Callable[[str], Awaitable[str]]
SignatureVerifier = Callable[[str, str, str], Awaitable[bool]]


@dataclass(slots=True)
class Provider:
    name: str
    chain: Chain
    tokens_by_owner: TokensByOwner | None = None
    tokens_incremental_by_owner: TokensIncrementalByOwner | None = None
    tokens_by_contract: TokensByContract | None = None
    tokens_by_contract_and_owner: TokensByContractAndOwner | None = None
    token_by_identifiers_and_owner: TokenByIdentifiersAndOwner | None = None
    token_metadata_by_identifiers: TokenMetadataByIdentifiers | None = None
    token_descriptors_by_identifiers: TokenDescriptorsByIdentifiers | None = None
    resolve_name: NameResolver | None = None
    verify_signature: SignatureVerifier | None = None

    def capabilities(self) -> tuple[str, ...]:
        return tuple(name for name in CAPABILITIES if getattr(self, name) is not None)

    def supports(self, capability: str) -> bool:
        if capability not in CAPABILITIES:
            raise ValueError(f"unknown capability '{capability}'")
        return getattr(self, capability) is not None

    def require(self, capability: str) -> Callable[..., Any]:
        if not self.supports(capability):
            raise CapabilityNotSupportedError(f"provider '{self.name}' does not support {capability}")
        return getattr(self, capability)


CAPABILITIES = tuple(item.name for item in fields(Provider) if item.name not in ("name", "chain"))
STREAMING_CAPABILITIES = frozenset({"tokens_incremental_by_owner"})
TOKEN_LIST_CAPABILITIES = frozenset({"tokens_by_owner", "tokens_by_contract", "tokens_by_contract_and_owner"})


__all__ = [
    "CAPABILITIES",
    "Provider",
    "ProviderToken",
    "STREAMING_CAPABILITIES",
    "SUBSTITUTABLE_FIELDS",
    "TOKEN_LIST_CAPABILITIES",
]
