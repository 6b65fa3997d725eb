"""Lua scripts and key naming shared by the sync and async lock sessions."""

from __future__ import annotations

from typing import Optional


KEY_PREFIX = "redlocker"
LOCK_TTL_SECONDS = 5
HEARTBEAT_INTERVAL_SECONDS = 1.0
DEFAULT_DELAY_SECONDS = 0.25

# KEYS[1] lock key, ARGV[1] token, ARGV[2] ttl in seconds
ACQUIRE_LUA = """
local cur = redis.call('get', KEYS[1])
if not cur then
    redis.call('set', KEYS[1], ARGV[1], 'EX', ARGV[2])
    return 1
elseif cur == ARGV[1] then
    redis.call('expire', KEYS[1], ARGV[2])
    return 1
end
return 0
"""

# KEYS[1] lock key, ARGV[1] token
RELEASE_LUA = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


def key_name(name: str, namespace: Optional[str] = None) -> str:
    """Build the store key for a lock, e.g. ``billing:redlocker:invoices``."""
    parts = [namespace, KEY_PREFIX, name]
    return ":".join(part for part in parts if part is not None)


def validate_lock_args(name: str, timeout: float, delay: float) -> None:
    if not name:
        raise ValueError("Lock name must not be empty")
    if timeout < 0:
        raise ValueError("timeout must be >= 0")
    if delay < 0:
        raise ValueError("delay must be >= 0")
