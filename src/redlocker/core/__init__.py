"""Core lock protocol: acquisition, heartbeat and release."""

from .client import AsyncRedlocker, Redlocker
from .errors import LockStateError, LockTimeout, RedlockerError
from .locks import Lock
from .locks_async import AsyncLock
from .models import LockState
from .settings import RedlockerSettings

__all__ = [
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
