"""Redis-based distributed lock kept alive by a heartbeat thread."""

from __future__ import annotations

import secrets
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from redis import Redis

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


class Lock:
    """A single attempt to hold a named lock while a block of work runs.

    The lock is acquired by polling redis every ``delay`` seconds for at most
    ``timeout`` seconds. Once acquired, its 5 second expiry is renewed every
    second from a background thread, and it is released when the block
    finishes, whether or not the block raised.

    A session is single use: create a new one for every acquisition.

    Args:
        redis:      Redis connection.
        name:       Lock name, used to build the redis key.
        timeout:    How long to wait for the lock, in seconds.
        delay:      How long to wait between acquisition attempts.
        namespace:  Optional prefix for the redis key.
    """

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
        self._stop = threading.Event()
        self._heartbeat: Optional[threading.Thread] = None

    def acquire(self, body: Callable[[], T]) -> T:
        """Acquire the lock, run ``body`` while holding it and return its result.

        Raises:
            LockTimeout: the lock was not acquired within ``timeout``.
            LockStateError: this session has already been used.
        """
        with self.hold():
            return body()

    @contextmanager
    def hold(self) -> Iterator["Lock"]:
        """Context manager form of :meth:`acquire`."""
        if self._started:
            raise LockStateError(f"Lock session for {self.name} has already been used")
        self._started = True

        try:
            acquired = self._acquire_lock()
        except BaseException:
            self._set_state(LockState.FAILED)
            raise
        if not acquired:
            self._set_state(LockState.FAILED)
            logger.info("Timed out after %ss waiting for lock %s", self.timeout, self.key)
            raise LockTimeout(self.name, self.timeout)

        self._set_state(LockState.HELD)
        self._start_heartbeat()
        try:
            yield self
        finally:
            self._stop_heartbeat()
            self._release_lock()

    def owned(self) -> bool:
        """Return True if redis still maps the key to this session's token."""
        value = self.redis.get(self.key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value == self.token

    def _set_state(self, target: LockState) -> None:
        if not can_transition(self.state, target):
            raise LockStateError(f"Invalid lock transition {self.state.value} -> {target.value}")
        self.state = target

    def _acquire_lock(self) -> bool:
        start = time.monotonic()
        attempts = 0
        while True:
            attempts += 1
            if self._try_acquire_lock():
                logger.debug("Acquired lock %s after %d attempt(s)", self.key, attempts)
                return True
            if time.monotonic() - start > self.timeout:
                return False
            time.sleep(self.delay)

    def _try_acquire_lock(self) -> bool:
        result = self._acquire_script(keys=[self.key], args=[self.token, LOCK_TTL_SECONDS])
        return bool(result)

    def _start_heartbeat(self) -> None:
        self._heartbeat = threading.Thread(
            target=self._keep_lock,
            name=f"redlocker-heartbeat-{self.name}",
            daemon=True,
        )
        self._heartbeat.start()

    def _keep_lock(self) -> None:
        # Event.wait returns True as soon as stop is signalled, so no tick starts after it.
        while not self._stop.wait(HEARTBEAT_INTERVAL_SECONDS):
            try:
                self.redis.expire(self.key, LOCK_TTL_SECONDS)
            except Exception:
                logger.debug("Failed to refresh lock %s", self.key, exc_info=True)

    def _stop_heartbeat(self) -> None:
        self._stop.set()
        if self._heartbeat is not None:
            # A tick already in flight may still finish; don't wait on a hung store forever.
            self._heartbeat.join(HEARTBEAT_INTERVAL_SECONDS)
            self._heartbeat = None

    def _release_lock(self) -> None:
        try:
            released = bool(self._release_script(keys=[self.key], args=[self.token]))
        except Exception:
            logger.warning("Failed to release lock %s; it will expire on its own", self.key, exc_info=True)
            released = False
        if not released:
            logger.debug("Lock %s was no longer owned at release", self.key)
        self._set_state(LockState.RELEASED)
