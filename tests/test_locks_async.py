from __future__ import annotations

import asyncio
import re
import time

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from redlocker import AsyncLock, AsyncRedlocker, LockState, LockStateError, LockTimeout


@pytest.mark.asyncio
async def test_acquires_and_releases_the_lock(async_redis):
    locker = AsyncRedlocker(async_redis, namespace="jobs")

    async def body():
        token = await async_redis.get("jobs:redlocker:nightly")
        pttl = await async_redis.pttl("jobs:redlocker:nightly")
        return token, pttl

    token, pttl = await locker.with_lock("nightly", body, timeout=3)

    assert re.fullmatch(r"[0-9a-f]{32}", token)
    assert 4900 <= pttl <= 5000
    assert await async_redis.exists("jobs:redlocker:nightly") == 0


@pytest.mark.asyncio
async def test_releases_the_lock_when_the_block_raises(async_redis):
    locker = AsyncRedlocker(async_redis)

    with pytest.raises(RuntimeError):
        async with locker.lock("some_lock", timeout=3):
            raise RuntimeError("error")

    assert await locker.locked("some_lock") is False


@pytest.mark.asyncio
async def test_heartbeat_refreshes_the_expiry(async_redis, monkeypatch):
    calls = []
    original = async_redis.expire

    async def expire(key, ttl):
        calls.append((key, ttl))
        return await original(key, ttl)

    monkeypatch.setattr(async_redis, "expire", expire)

    async with AsyncRedlocker(async_redis).lock("some_lock", timeout=3):
        await asyncio.sleep(2.5)
        pttl = await async_redis.pttl("redlocker:some_lock")

    assert calls == [("redlocker:some_lock", 5)] * 2
    assert 4400 <= pttl <= 4600


@pytest.mark.asyncio
async def test_heartbeat_survives_store_errors(async_redis, monkeypatch):
    failing = {"on": True}
    calls = []
    original = async_redis.expire

    async def expire(key, ttl):
        calls.append((key, ttl))
        if failing["on"]:
            raise RedisConnectionError("store unavailable")
        return await original(key, ttl)

    monkeypatch.setattr(async_redis, "expire", expire)

    async with AsyncRedlocker(async_redis).lock("some_lock", timeout=3) as held:
        await asyncio.sleep(2.5)
        failing["on"] = False
        await asyncio.sleep(1)
        assert await held.owned() is True
        pttl = await async_redis.pttl("redlocker:some_lock")

    assert len(calls) == 3
    assert 4400 <= pttl <= 4600


@pytest.mark.asyncio
async def test_raises_lock_timeout_while_another_holder_keeps_the_lock(async_redis):
    locker = AsyncRedlocker(async_redis)

    async def hold_for_three_seconds():
        await asyncio.sleep(3)

    holder = asyncio.create_task(locker.with_lock("A", hold_for_three_seconds, timeout=3))
    await asyncio.sleep(0.1)
    try:
        with pytest.raises(LockTimeout) as excinfo:
            async with locker.lock("A", timeout=2):
                pass
    finally:
        await holder

    assert str(excinfo.value) == "Did not get lock A within 2 seconds"


@pytest.mark.asyncio
async def test_waits_for_the_lock_to_be_released(async_redis):
    locker = AsyncRedlocker(async_redis)

    async def hold_for_a_second():
        await asyncio.sleep(1)

    holder = asyncio.create_task(locker.with_lock("A", hold_for_a_second, timeout=3))
    await asyncio.sleep(0.1)
    start = time.monotonic()
    async with locker.lock("A", timeout=3, delay=0.2):
        elapsed = time.monotonic() - start
    await holder

    assert 0.8 <= elapsed <= 1.3


@pytest.mark.asyncio
async def test_store_errors_during_acquisition_propagate(async_redis, monkeypatch):
    lock = AsyncLock(async_redis, "A", timeout=1)

    async def broken_acquire(**kwargs):
        raise RedisConnectionError("store unavailable")

    monkeypatch.setattr(lock, "_acquire_script", broken_acquire)

    with pytest.raises(RedisConnectionError):
        async with lock.hold():
            pass
    assert lock.state is LockState.FAILED


@pytest.mark.asyncio
async def test_async_lock_sessions_are_single_use(async_redis):
    lock = AsyncLock(async_redis, "A", timeout=1)

    async def body():
        return lock.state

    assert await lock.acquire(body) is LockState.HELD
    assert lock.state is LockState.RELEASED
    with pytest.raises(LockStateError):
        await lock.acquire(body)


@pytest.mark.asyncio
async def test_hung_heartbeat_does_not_block_release(async_redis, monkeypatch):
    async def hanging_expire(key, ttl):
        await asyncio.sleep(30)

    monkeypatch.setattr(async_redis, "expire", hanging_expire)
    lock = AsyncRedlocker(async_redis).new_lock("A", timeout=1)

    async def body():
        await asyncio.sleep(1.2)
        return "done"

    start = time.monotonic()
    result = await asyncio.wait_for(lock.acquire(body), timeout=5)

    assert result == "done"
    assert time.monotonic() - start < 3
    assert lock.state is LockState.RELEASED
    assert await async_redis.exists("redlocker:A") == 0
