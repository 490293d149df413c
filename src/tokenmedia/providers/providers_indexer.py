"""Provider backed by the internal indexer service (``INDEXER_HOST``)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..domain.tokens import Chain, TokenIdentifier, TokenMetadata, find_name_and_description
from .providers_base import Provider, ProviderToken
from .providers_errors import ProviderContractNotFoundError, ProviderFailedError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexerProvider:
    client: httpx.AsyncClient
    host: str
    chain: Chain
    log: logging.Logger = field(default_factory=lambda: logger)

    async def token_metadata_by_identifiers(self, token: TokenIdentifier) -> TokenMetadata:
        url = f"{self.host.rstrip('/')}/tokens/metadata"
        params = {
            "contract_address": token.contract_address,
            "token_id": token.token_id,
            "chain": int(token.chain),
        }
        try:
            response = await self.client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ProviderFailedError(f"indexer request failed: {exc}") from exc
        if response.status_code == 404:
            raise ProviderContractNotFoundError(
                f"indexer does not know contract {token.contract_address}",
                chain=int(token.chain),
                contract_address=token.contract_address,
            )
        if response.status_code >= 400:
            raise ProviderFailedError(
                f"indexer failed with status {response.status_code}",
                status_code=response.status_code,
                transient=response.status_code >= 500,
            )
        body: Any = response.json()
        metadata = body.get("metadata") if isinstance(body, dict) else None
        return metadata if isinstance(metadata, dict) else {}

    async def token_descriptors_by_identifiers(self, token: TokenIdentifier) -> dict[str, Any]:
        name, description = find_name_and_description(await self.token_metadata_by_identifiers(token))
        return {"name": name, "description": description}

    async def token_by_identifiers_and_owner(self, token: TokenIdentifier, owner_address: str) -> ProviderToken:
        metadata = await self.token_metadata_by_identifiers(token)
        name, description = find_name_and_description(metadata)
        image = metadata.get("image")
        animation = metadata.get("animation_url")
        return ProviderToken(
            identifier=token,
            owner_address=owner_address.lower(),
            name=name,
            description=description,
            metadata=metadata,
            descriptors={"name": name, "description": description},
            image_url=image if isinstance(image, str) else "",
            animation_url=animation if isinstance(animation, str) else "",
        )

    def as_provider(self) -> Provider:
        return Provider(
            name=f"indexer-{self.chain.name.lower()}",
            chain=self.chain,
            token_by_identifiers_and_owner=self.token_by_identifiers_and_owner,
            token_metadata_by_identifiers=self.token_metadata_by_identifiers,
            token_descriptors_by_identifiers=self.token_descriptors_by_identifiers,
        )


__all__ = ["IndexerProvider"]
