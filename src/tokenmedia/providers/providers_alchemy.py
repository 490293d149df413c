"""Alchemy NFT API (v3) provider."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import httpx

from ..domain.tokens import Chain, ContractIdentifier, TokenIdentifier, TokenMetadata
from .providers_base import Provider, ProviderToken
from .providers_errors import ProviderContractNotFoundError, ProviderFailedError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
METADATA_TIMEOUT_MS = 20_000


def _metadata_from(raw: Any) -> TokenMetadata:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip().startswith("{"):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _url_from(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("originalUrl") or value.get("cachedUrl") or ""
    if isinstance(value, str):
        return value
    return ""


def token_from_alchemy(chain: Chain, payload: dict[str, Any], owner_address: str = "") -> ProviderToken:
    contract = payload.get("contract") or {}
    raw = payload.get("raw") or {}
    metadata = _metadata_from(raw.get("metadata"))
    token_id = payload.get("tokenId") or "0"
    if not contract.get("address"):
        raise ProviderFailedError(f"alchemy token {token_id} has no contract address", transient=False)
    identifier = TokenIdentifier.from_decimal(chain, contract["address"], token_id)
    image_url = metadata.get("image") if isinstance(metadata.get("image"), str) else ""
    animation_url = metadata.get("animation_url") if isinstance(metadata.get("animation_url"), str) else ""
    return ProviderToken(
        identifier=identifier,
        owner_address=owner_address.lower(),
        name=payload.get("name") or "",
        description=payload.get("description") or "",
        quantity=str(payload.get("balance") or "1"),
        metadata=metadata,
        descriptors={"name": payload.get("name") or "", "description": payload.get("description") or ""},
        media_url=_url_from(payload.get("animation")) or _url_from(payload.get("image")),
        image_url=image_url or _url_from(payload.get("image")),
        animation_url=animation_url or _url_from(payload.get("animation")),
        is_spam=contract.get("isSpam"),
    )


@dataclass(slots=True)
class AlchemyProvider:
    client: httpx.AsyncClient
    api_url: str
    chain: Chain
    page_size: int = DEFAULT_PAGE_SIZE
    log: logging.Logger = field(default_factory=lambda: logger)

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.api_url.rstrip('/')}/{endpoint}"
        try:
            response = await self.client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ProviderFailedError(f"alchemy {endpoint} request failed: {exc}") from exc
        if response.status_code == 404:
            raise ProviderContractNotFoundError(
                f"alchemy {endpoint}: not found",
                chain=int(self.chain),
                contract_address=params.get("contractAddress"),
            )
        if response.status_code >= 400:
            raise ProviderFailedError(
                f"alchemy {endpoint} failed with status {response.status_code}",
                status_code=response.status_code,
                transient=response.status_code >= 500 or response.status_code == 429,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderFailedError(f"alchemy {endpoint} returned invalid json", transient=False) from exc

    async def tokens_incremental_by_owner(self, owner_address: str) -> AsyncIterator[list[ProviderToken]]:
        page_key: str | None = None
        while True:
            params: dict[str, Any] = {"owner": owner_address, "withMetadata": "true", "pageSize": self.page_size}
            if page_key:
                params["pageKey"] = page_key
            body = await self._get("getNFTsForOwner", params)
            page = self._tokens_from(body.get("ownedNfts") or [], owner_address)
            if page:
                yield page
            page_key = body.get("pageKey")
            if not page_key:
                return

    async def tokens_by_owner(self, owner_address: str) -> list[ProviderToken]:
        tokens: list[ProviderToken] = []
        async for page in self.tokens_incremental_by_owner(owner_address):
            tokens.extend(page)
        return tokens

    async def _paginate(
        self, endpoint: str, params: dict[str, Any], items_key: str, size_param: str, wanted: int | None
    ) -> list[dict[str, Any]]:
        """Follow ``pageKey`` until ``wanted`` items are collected or the listing ends."""
        items: list[dict[str, Any]] = []
        page_key: str | None = None
        while True:
            page_params = {**params, size_param: self.page_size}
            if page_key:
                page_params["pageKey"] = page_key
            body = await self._get(endpoint, page_params)
            items.extend(body.get(items_key) or [])
            page_key = body.get("pageKey")
            if not page_key or (wanted is not None and len(items) >= wanted):
                return items

    def _tokens_from(self, items: list[dict[str, Any]], owner_address: str = "") -> list[ProviderToken]:
        tokens: list[ProviderToken] = []
        for item in items:
            if not (item.get("contract") or {}).get("address"):
                self.log.warning(
                    "providers.alchemy.item_without_contract",
                    extra={"chain": int(self.chain), "token_id": item.get("tokenId")},
                )
                continue
            tokens.append(token_from_alchemy(self.chain, item, owner_address))
        return tokens

    @staticmethod
    def _window(items: list[dict[str, Any]], limit: int, offset: int) -> list[dict[str, Any]]:
        return items[offset : offset + limit] if limit else items[offset:]

    async def tokens_by_contract(self, contract: ContractIdentifier, limit: int, offset: int) -> list[ProviderToken]:
        params: dict[str, Any] = {"contractAddress": contract.contract_address, "withMetadata": "true"}
        wanted = offset + limit if limit else None
        nfts = await self._paginate("getNFTsForContract", params, "nfts", "limit", wanted)
        if not nfts and not offset:
            raise ProviderContractNotFoundError(
                f"alchemy has no tokens for contract {contract.contract_address}",
                chain=int(self.chain),
                contract_address=contract.contract_address,
            )
        return self._tokens_from(self._window(nfts, limit, offset))

    async def tokens_by_contract_and_owner(
        self, contract: ContractIdentifier, owner_address: str, limit: int, offset: int
    ) -> list[ProviderToken]:
        params: dict[str, Any] = {
            "owner": owner_address,
            "contractAddresses[]": contract.contract_address,
            "withMetadata": "true",
        }
        wanted = offset + limit if limit else None
        items = await self._paginate("getNFTsForOwner", params, "ownedNfts", "pageSize", wanted)
        return self._tokens_from(self._window(items, limit, offset), owner_address)

    async def _token_payload(self, token: TokenIdentifier, *, refresh: bool = False) -> dict[str, Any]:
        params: dict[str, Any] = {
            "contractAddress": token.contract_address,
            "tokenId": token.to_decimal(),
            "tokenUriTimeoutInMs": METADATA_TIMEOUT_MS,
        }
        if refresh:
            params["refreshCache"] = "true"
        return await self._get("getNFTMetadata", params)

    async def token_by_identifiers_and_owner(self, token: TokenIdentifier, owner_address: str) -> ProviderToken:
        return token_from_alchemy(self.chain, await self._token_payload(token), owner_address)

    async def token_metadata_by_identifiers(self, token: TokenIdentifier) -> TokenMetadata:
        payload = await self._token_payload(token)
        metadata = _metadata_from((payload.get("raw") or {}).get("metadata"))
        if not metadata.get("image") and not metadata.get("animation_url"):
            self.log.info("providers.alchemy.metadata_refresh", extra={"token": token.key()})
            payload = await self._token_payload(token, refresh=True)
            metadata = _metadata_from((payload.get("raw") or {}).get("metadata")) or metadata
        return metadata

    async def token_descriptors_by_identifiers(self, token: TokenIdentifier) -> dict[str, Any]:
        payload = await self._token_payload(token)
        contract = payload.get("contract") or {}
        return {
            "name": payload.get("name") or "",
            "description": payload.get("description") or "",
            "contract_name": contract.get("name") or "",
            "contract_symbol": contract.get("symbol") or "",
        }

    def as_provider(self) -> Provider:
        return Provider(
            name=f"alchemy-{self.chain.name.lower()}",
            chain=self.chain,
            tokens_by_owner=self.tokens_by_owner,
            tokens_incremental_by_owner=self.tokens_incremental_by_owner,
            tokens_by_contract=self.tokens_by_contract,
            tokens_by_contract_and_owner=self.tokens_by_contract_and_owner,
            token_by_identifiers_and_owner=self.token_by_identifiers_and_owner,
            token_metadata_by_identifiers=self.token_metadata_by_identifiers,
            token_descriptors_by_identifiers=self.token_descriptors_by_identifiers,
        )


__all__ = ["AlchemyProvider", "token_from_alchemy"]
