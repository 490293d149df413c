"""Factory assembling the per-chain provider records."""

from __future__ import annotations

from typing import Mapping

import httpx

from ..domain.tokens import Chain
from .providers_alchemy import AlchemyProvider
from .providers_base import Provider, ProviderToken
from .providers_fallback import eval_fallback, failure_fallback
from .providers_indexer import IndexerProvider


def has_media(token: ProviderToken) -> bool:
    """A token is usable as-is when it carries metadata and at least one media URL."""

    return bool(token.metadata) and bool(token.media_url or token.image_url or token.animation_url)


def create_chain_provider(
    chain: Chain,
    client: httpx.AsyncClient,
    *,
    alchemy_api_url: str | None = None,
    indexer_host: str | None = None,
) -> Provider:
    """Alchemy first with the indexer as backup; either alone when only one is configured."""

    alchemy = AlchemyProvider(client=client, api_url=alchemy_api_url, chain=chain).as_provider() if alchemy_api_url else None
    indexer = IndexerProvider(client=client, host=indexer_host, chain=chain).as_provider() if indexer_host else None
    if alchemy and indexer:
        return eval_fallback(failure_fallback(alchemy, indexer), indexer, has_media)
    if alchemy:
        return alchemy
    if indexer:
        return indexer
    raise ValueError(f"no provider configured for chain {chain.name}")


def create_providers(
    client: httpx.AsyncClient,
    *,
    alchemy_api_urls: Mapping[Chain, str],
    indexer_host: str | None = None,
) -> dict[Chain, Provider]:
    providers: dict[Chain, Provider] = {}
    for chain in Chain:
        api_url = alchemy_api_urls.get(chain)
        if not api_url and not indexer_host:
            continue
        providers[chain] = create_chain_provider(chain, client, alchemy_api_url=api_url, indexer_host=indexer_host)
    return providers


__all__ = ["create_chain_provider", "create_providers", "has_media"]
