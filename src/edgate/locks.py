"""Per-key mutual exclusion.

Mutations on one content record, or on one (user, content) access record, are
serialized on a key scoped to that entity; unrelated keys never wait on each
other, even while a holder is blocked on a slow ledger call.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from redis.exceptions import LockError

from edgate.errors import ConflictError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()


def content_key(content_id: str) -> str:
    return f"content:{content_id}"


def access_key(user_id: str, content_id: str) -> str:
    return f"access:{user_id}:{content_id}"


class KeyedLock(ABC):
    """Provides ``async with locks.hold(key): ...``."""

    @abstractmethod
    def hold(self, key: str) -> AbstractAsyncContextManager[None]:
        ...


class LocalKeyedLock(KeyedLock):
    """asyncio locks, one per active key, dropped once nobody holds or waits on them.

    Only valid inside a single event loop / process.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @property
    def active_keys(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class RedisKeyedLock(KeyedLock):
    """Cross-process locks on Redis.

    ``timeout_seconds`` bounds how long a crashed holder can keep a key and must
    exceed the slowest expected ledger call.
    """

    def __init__(
        self,
        redis: Redis,
        timeout_seconds: float = 30.0,
        blocking_timeout_seconds: float = 10.0,
        prefix: str = "edgate:lock:",
    ) -> None:
        self._redis = redis
        self._timeout = timeout_seconds
        self._blocking_timeout = blocking_timeout_seconds
        self._prefix = prefix

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"{self._prefix}{key}",
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        if not await lock.acquire():
            raise ConflictError(f"Timed out waiting for lock on {key}", lock_key=key)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; another worker may already own the key.
                logger.warning("lock_expired_before_release", lock_key=key)
