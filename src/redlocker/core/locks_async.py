"""asyncio flavour of the redis lock, renewed from a background task."""

from __future__ import annotations

import asyncio
import secrets
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from redis.asyncio import Redis

from redlocker.core.errors import LockStateError, LockTimeout
from redlocker.core.models import LockState, can_transition
from redlocker.core.scripts import (
    ACQUIRE_LUA,
    DEFAULT_DELAY_SECONDS,
    HEARTBEAT_INTERVAL_SECONDS,
    LOCK_TTL_SECONDS,
    RELEASE_LUA,
    key_name,
    validate_lock_args,
)
from redlocker.utils.logging import get_logger


T = TypeVar("T")

logger = get_logger(__name__)


class AsyncLock:
    """Same protocol as :class:`redlocker.Lock` for ``redis.asyncio`` clients."""

    def __init__(
        self,
        redis: Redis,
        name: str,
        *,
        timeout: float,
        delay: float = DEFAULT_DELAY_SECONDS,
        namespace: Optional[str] = None,
    ) -> None:
        validate_lock_args(name, timeout, delay)
        self.redis = redis
        self.name = name
        self.timeout = timeout
        self.delay = delay
        self.namespace = namespace
        self.key = key_name(name, namespace)
        self.token = secrets.token_hex(16)
        self.state = LockState.ACQUIRING
        self._started = False
        self._acquire_script = redis.register_script(ACQUIRE_LUA)
        self._release_script = redis.register_script(RELEASE_LUA)
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    async def acquire(self, body: Callable[[], Awaitable[T]]) -> T:
        async with self.hold():
            return await body()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator["AsyncLock"]:
        if self._started:
            raise LockStateError(f"Lock session for {self.name} has already been used")
        self._started = True

        try:
            acquired = await self._acquire_lock()
        except BaseException:
            self._set_state(LockState.FAILED)
            raise
        if not acquired:
            self._set_state(LockState.FAILED)
            logger.info("Timed out after %ss waiting for lock %s", self.timeout, self.key)
            raise LockTimeout(self.name, self.timeout)

        self._set_state(LockState.HELD)
        self._task = asyncio.create_task(self._keep_lock(), name=f"redlocker-heartbeat-{self.name}")
        try:
            yield self
        finally:
            try:
                await self._stop_heartbeat()
            finally:
                await self._release_lock()

    async def owned(self) -> bool:
        value = await self.redis.get(self.key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value == self.token

    def _set_state(self, target: LockState) -> None:
        if not can_transition(self.state, target):
            raise LockStateError(f"Invalid lock transition {self.state.value} -> {target.value}")
        self.state = target

    async def _acquire_lock(self) -> bool:
        start = time.monotonic()
        attempts = 0
        while True:
            attempts += 1
            if await self._acquire_script(keys=[self.key], args=[self.token, LOCK_TTL_SECONDS]):
                logger.debug("Acquired lock %s after %d attempt(s)", self.key, attempts)
                return True
            if time.monotonic() - start > self.timeout:
                return False
            await asyncio.sleep(self.delay)

    async def _keep_lock(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=HEARTBEAT_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                pass
            else:
                return
            try:
                await self.redis.expire(self.key, LOCK_TTL_SECONDS)
            except Exception:
                logger.debug("Failed to refresh lock %s", self.key, exc_info=True)

    async def _stop_heartbeat(self) -> None:
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None:
            return
        # A tick already in flight may still finish; don't wait on a hung store forever.
        try:
            await asyncio.wait({task}, timeout=HEARTBEAT_INTERVAL_SECONDS)
        finally:
            if not task.done():
                task.cancel()

    async def _release_lock(self) -> None:
        try:
            released = bool(await self._release_script(keys=[self.key], args=[self.token]))
        except Exception:
            logger.warning("Failed to release lock %s; it will expire on its own", self.key, exc_info=True)
            released = False
        if not released:
            logger.debug("Lock %s was no longer owned at release", self.key)
        self._set_state(LockState.RELEASED)
