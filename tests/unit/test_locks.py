"""Keyed lock tests: local asyncio locks and Redis-backed locks."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import LockError

from edgate.errors import ConflictError
from edgate.locks import LocalKeyedLock, RedisKeyedLock, access_key, content_key


def test_key_helpers():
    assert content_key("c1") == "content:c1"
    assert access_key("u1", "c1") == "access:u1:c1"


class TestLocalKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = LocalKeyedLock()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("content:c1"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert events == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = LocalKeyedLock()
        release = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("content:c1"):
                await release.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0)
        async with asyncio.timeout(1):
            async with locks.hold("content:c2"):
                pass
        release.set()
        await task

    @pytest.mark.asyncio
    async def test_idle_keys_are_dropped(self):
        locks = LocalKeyedLock()
        async with locks.hold("content:c1"):
            assert locks.active_keys == 1
        assert locks.active_keys == 0

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = LocalKeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.hold("content:c1"):
                raise RuntimeError("boom")
        assert locks.active_keys == 0


def _redis_with_lock(acquired: bool) -> tuple[MagicMock, MagicMock]:
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired)
    lock.release = AsyncMock()
    redis = MagicMock()
    redis.lock.return_value = lock
    return redis, lock


class TestRedisKeyedLock:
    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        redis, lock = _redis_with_lock(acquired=True)
        locks = RedisKeyedLock(redis, timeout_seconds=20, blocking_timeout_seconds=5)

        async with locks.hold("content:c1"):
            lock.release.assert_not_awaited()

        redis.lock.assert_called_once_with("edgate:lock:content:c1", timeout=20, blocking_timeout=5)
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_acquire_timeout_is_a_conflict(self):
        redis, lock = _redis_with_lock(acquired=False)
        locks = RedisKeyedLock(redis)

        with pytest.raises(ConflictError) as exc_info:
            async with locks.hold("content:c1"):
                pytest.fail("lock body must not run")

        assert exc_info.value.retryable is True
        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_lock_release_is_tolerated(self):
        redis, lock = _redis_with_lock(acquired=True)
        lock.release.side_effect = LockError("Cannot release an unlocked lock")
        locks = RedisKeyedLock(redis)

        async with locks.hold("access:u1:c1"):
            pass
