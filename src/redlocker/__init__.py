"""Distributed locks backed by redis, kept alive while a block of work runs."""

from .core import (
    AsyncLock,
    AsyncRedlocker,
    Lock,
    LockState,
    LockStateError,
    LockTimeout,
    Redlocker,
    RedlockerError,
    RedlockerSettings,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AsyncLock",
    "AsyncRedlocker",
    "Lock",
    "LockState",
    "LockStateError",
    "LockTimeout",
    "Redlocker",
    "RedlockerError",
    "RedlockerSettings",
]
