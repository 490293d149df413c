"""Per-token throttle lock so at most one run per token is in flight."""

from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .pipeline_errors import BusyDuplicateError, TransientError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL = 30 * 60.0
LOCK_PREFIX = "tokenprocessing:throttle:"


class LockBackend(ABC):
    @abstractmethod
    async def acquire(self, key: str, ttl_seconds: float) -> bool:
        """Take ``key`` without waiting; ``False`` when someone else holds it."""

    @abstractmethod
    async def release(self, key: str) -> None:
        """Release ``key`` if this backend still owns it."""


class InMemoryLockBackend(LockBackend):
    """Process-local locks for ``ENV=local`` and tests."""

    def __init__(self) -> None:
        self._expires: dict[str, float] = {}

    async def acquire(self, key: str, ttl_seconds: float) -> bool:
        now = time.monotonic()
        expires_at = self._expires.get(key)
        if expires_at is not None and expires_at > now:
            return False
        self._expires[key] = now + ttl_seconds
        return True

    async def release(self, key: str) -> None:
        self._expires.pop(key, None)

    def held(self, key: str) -> bool:
        expires_at = self._expires.get(key)
        return expires_at is not None and expires_at > time.monotonic()


class RedisLockBackend(LockBackend):
    """``SET NX PX`` lock; each holder stores a random token so it only releases its own lock."""

    def __init__(self, redis: Redis, *, prefix: str = LOCK_PREFIX) -> None:
        self._redis = redis
        self._prefix = prefix
        self._tokens: dict[str, str] = {}

    async def acquire(self, key: str, ttl_seconds: float) -> bool:
        token = uuid.uuid4().hex
        try:
            acquired = await self._redis.set(self._prefix + key, token, nx=True, px=int(ttl_seconds * 1000))
        except RedisError as exc:
            raise TransientError(f"lock service unavailable: {exc}") from exc
        if not acquired:
            return False
        self._tokens[key] = token
        return True

    async def release(self, key: str) -> None:
        token = self._tokens.pop(key, None)
        if token is None:
            return
        try:
            current = await self._redis.get(self._prefix + key)
            if current is not None and (current.decode() if isinstance(current, bytes) else current) == token:
                await self._redis.delete(self._prefix + key)
        except RedisError as exc:
            logger.warning("pipeline.lock.release_failed", extra={"lock_key": key, "error": str(exc)})


@dataclass(slots=True)
class ThrottleLocker:
    backend: LockBackend
    ttl_seconds: float = DEFAULT_LOCK_TTL
    log: logging.Logger = field(default_factory=lambda: logger)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key``; raises :class:`BusyDuplicateError` without waiting."""

        if not await self.backend.acquire(key, self.ttl_seconds):
            self.log.info("pipeline.lock.busy", extra={"lock_key": key})
            raise BusyDuplicateError(key)
        try:
            yield
        finally:
            await self.backend.release(key)


__all__ = [
    "DEFAULT_LOCK_TTL",
    "InMemoryLockBackend",
    "LockBackend",
    "RedisLockBackend",
    "ThrottleLocker",
]
