"""Provider combinators: failure fallback and evaluation fallback."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, AsyncIterator, Callable

from .providers_base import (
    CAPABILITIES,
    STREAMING_CAPABILITIES,
    SUBSTITUTABLE_FIELDS,
    TOKEN_LIST_CAPABILITIES,
    Provider,
    ProviderToken,
)

logger = logging.getLogger(__name__)

EVAL_FALLBACK_CONCURRENCY = 16

TokenEval = Callable[[ProviderToken], bool]


def _fallback_call(capability: str, primary: Callable[..., Any], secondary: Callable[..., Any]) -> Callable[..., Any]:
    async def call(*args: Any, **kwargs: Any) -> Any:
        try:
            return await primary(*args, **kwargs)
        except Exception as exc:
            logger.warning(
                "providers.fallback.primary_failed",
                extra={"capability": capability, "error": str(exc), "error_type": type(exc).__name__},
            )
            return await secondary(*args, **kwargs)

    return call


def _fallback_stream(
    primary: Callable[..., AsyncIterator[Any]],
    secondary: Callable[..., AsyncIterator[Any]],
) -> Callable[..., AsyncIterator[Any]]:
    async def stream(*args: Any, **kwargs: Any) -> AsyncIterator[Any]:
        try:
            async for page in primary(*args, **kwargs):
                yield page
            return
        except Exception as exc:
            logger.warning(
                "providers.fallback.stream_switched",
                extra={"capability": "tokens_incremental_by_owner", "error": str(exc)},
            )
        # pages already forwarded from the primary are not replayed
        async for page in secondary(*args, **kwargs):
            yield page

    return stream


def failure_fallback(primary: Provider, secondary: Provider) -> Provider:
    """Call ``primary`` and retry the same capability on ``secondary`` when it raises."""

    combined = Provider(name=f"failure-fallback({primary.name},{secondary.name})", chain=primary.chain)
    for capability in CAPABILITIES:
        first = getattr(primary, capability)
        second = getattr(secondary, capability)
        if first is None or second is None:
            setattr(combined, capability, first or second)
        elif capability in STREAMING_CAPABILITIES:
            setattr(combined, capability, _fallback_stream(first, second))
        else:
            setattr(combined, capability, _fallback_call(capability, first, second))
    return combined


def substitute_fields(token: ProviderToken, replacement: ProviderToken) -> ProviderToken:
    """Copy the non-empty allow-listed fields of ``replacement`` onto ``token``."""

    updates = {
        name: getattr(replacement, name)
        for name in SUBSTITUTABLE_FIELDS
        if getattr(replacement, name)
    }
    if not updates:
        return token
    return dataclasses.replace(token, **updates)


class _Resolver:
    def __init__(self, secondary: Provider, evaluate: TokenEval, concurrency: int) -> None:
        self._secondary = secondary
        self._evaluate = evaluate
        self._concurrency = concurrency

    async def _replacement(self, token: ProviderToken, semaphore: asyncio.Semaphore) -> ProviderToken:
        async with semaphore:
            try:
                if self._secondary.token_by_identifiers_and_owner is not None:
                    backup = await self._secondary.token_by_identifiers_and_owner(
                        token.identifier, token.owner_address
                    )
                    return substitute_fields(token, backup)
                if self._secondary.token_metadata_by_identifiers is not None:
                    metadata = await self._secondary.token_metadata_by_identifiers(token.identifier)
                    return dataclasses.replace(token, metadata=metadata) if metadata else token
            except Exception as exc:
                logger.info(
                    "providers.eval_fallback.replacement_failed",
                    extra={"token": token.identifier.key(), "error": str(exc)},
                )
            return token

    async def resolve(self, tokens: list[ProviderToken]) -> list[ProviderToken]:
        semaphore = asyncio.Semaphore(self._concurrency)
        pending = {
            index: asyncio.ensure_future(self._replacement(token, semaphore))
            for index, token in enumerate(tokens)
            if not self._evaluate(token)
        }
        if not pending:
            return tokens
        await asyncio.gather(*pending.values())
        return [pending[index].result() if index in pending else token for index, token in enumerate(tokens)]


def eval_fallback(
    primary: Provider,
    secondary: Provider,
    evaluate: TokenEval,
    *,
    concurrency: int = EVAL_FALLBACK_CONCURRENCY,
) -> Provider:
    """Serve ``primary`` and patch tokens that fail ``evaluate`` from ``secondary``."""

    resolver = _Resolver(secondary, evaluate, concurrency)
    combined = dataclasses.replace(primary, name=f"eval-fallback({primary.name},{secondary.name})")

    for capability in TOKEN_LIST_CAPABILITIES:
        call = getattr(primary, capability)
        if call is not None:
            setattr(combined, capability, _resolving_list(call, resolver))

    if primary.tokens_incremental_by_owner is not None:
        setattr(combined, "tokens_incremental_by_owner", _resolving_stream(primary.tokens_incremental_by_owner, resolver))

    if primary.token_by_identifiers_and_owner is not None:
        single = primary.token_by_identifiers_and_owner

        async def token_by_identifiers_and_owner(*args: Any, **kwargs: Any) -> ProviderToken:
            token = await single(*args, **kwargs)
            return (await resolver.resolve([token]))[0]

        combined.token_by_identifiers_and_owner = token_by_identifiers_and_owner
    return combined


def _resolving_list(call: Callable[..., Any], resolver: _Resolver) -> Callable[..., Any]:
    async def resolved(*args: Any, **kwargs: Any) -> list[ProviderToken]:
        return await resolver.resolve(await call(*args, **kwargs))

    return resolved


def _resolving_stream(call: Callable[..., AsyncIterator[list[ProviderToken]]], resolver: _Resolver) -> Callable[..., Any]:
    async def resolved(*args: Any, **kwargs: Any) -> AsyncIterator[list[ProviderToken]]:
        async for page in call(*args, **kwargs):
            yield await resolver.resolve(page)

    return resolved


__all__ = ["EVAL_FALLBACK_CONCURRENCY", "eval_fallback", "failure_fallback", "substitute_fields"]
