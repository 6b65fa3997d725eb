"""Client entry points holding the redis connection and key namespace."""

from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Awaitable, Callable, Iterator, Optional, TypeVar

from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from redlocker.core.locks import Lock
from redlocker.core.locks_async import AsyncLock
from redlocker.core.scripts import DEFAULT_DELAY_SECONDS, key_name
from redlocker.core.settings import RedlockerSettings


T = TypeVar("T")


class Redlocker:
    """Acquire and keep distributed locks using redis.

    An acquired lock is renewed every second from a thread, i.e. its 5 second
    expiry is refreshed in redis every second, and it is released when the
    protected block finishes.

    Example::

        locker = Redlocker(redis.Redis(), namespace="billing")
        with locker.lock("invoices", timeout=5):
            ...
        total = locker.with_lock("invoices", compute_total, timeout=5, delay=1)
    """

    def __init__(self, redis: Redis, *, namespace: Optional[str] = None) -> None:
        self.redis = redis
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, *, namespace: Optional[str] = None) -> "Redlocker":
        return cls(Redis.from_url(url), namespace=namespace)

    @classmethod
    def from_settings(cls, settings: RedlockerSettings) -> "Redlocker":
        return cls.from_url(settings.redis_url, namespace=settings.namespace)

    def key_for(self, name: str) -> str:
        return key_name(name, self.namespace)

    def new_lock(self, name: str, *, timeout: float, delay: float = DEFAULT_DELAY_SECONDS) -> Lock:
        return Lock(self.redis, name, timeout=timeout, delay=delay, namespace=self.namespace)

    def with_lock(
        self,
        name: str,
        body: Callable[[], T],
        *,
        timeout: float,
        delay: float = DEFAULT_DELAY_SECONDS,
    ) -> T:
        """Run ``body`` while holding lock ``name`` and return its result.

        Args:
            name: Name of the lock; becomes part of the redis key.
            body: Callable executed once the lock is acquired.
            timeout: How long to wait for the lock, in seconds.
            delay: How long to wait between subsequent attempts.

        Raises:
            LockTimeout: the lock could not be acquired within ``timeout``.
        """
        return self.new_lock(name, timeout=timeout, delay=delay).acquire(body)

    @contextmanager
    def lock(self, name: str, *, timeout: float, delay: float = DEFAULT_DELAY_SECONDS) -> Iterator[Lock]:
        with self.new_lock(name, timeout=timeout, delay=delay).hold() as held:
            yield held

    def locked(self, name: str) -> bool:
        """Return True if anyone currently holds lock ``name``."""
        return bool(self.redis.exists(self.key_for(name)))


class AsyncRedlocker:
    """asyncio counterpart of :class:`Redlocker` for ``redis.asyncio`` clients."""

    def __init__(self, redis: AsyncRedis, *, namespace: Optional[str] = None) -> None:
        self.redis = redis
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, *, namespace: Optional[str] = None) -> "AsyncRedlocker":
        return cls(AsyncRedis.from_url(url), namespace=namespace)

    @classmethod
    def from_settings(cls, settings: RedlockerSettings) -> "AsyncRedlocker":
        return cls.from_url(settings.redis_url, namespace=settings.namespace)

    def key_for(self, name: str) -> str:
        return key_name(name, self.namespace)

    def new_lock(self, name: str, *, timeout: float, delay: float = DEFAULT_DELAY_SECONDS) -> AsyncLock:
        return AsyncLock(self.redis, name, timeout=timeout, delay=delay, namespace=self.namespace)

    async def with_lock(
        self,
        name: str,
        body: Callable[[], Awaitable[T]],
        *,
        timeout: float,
        delay: float = DEFAULT_DELAY_SECONDS,
    ) -> T:
        return await self.new_lock(name, timeout=timeout, delay=delay).acquire(body)

    @asynccontextmanager
    async def lock(
        self, name: str, *, timeout: float, delay: float = DEFAULT_DELAY_SECONDS
    ) -> AsyncIterator[AsyncLock]:
        async with self.new_lock(name, timeout=timeout, delay=delay).hold() as held:
            yield held

    async def locked(self, name: str) -> bool:
        return bool(await self.redis.exists(self.key_for(name)))

    async def close(self) -> None:
        await self.redis.aclose()
