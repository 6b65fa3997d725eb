"""Exceptions raised by redlocker."""

from __future__ import annotations


class RedlockerError(Exception):
    """Base class for all redlocker errors."""


class LockTimeout(RedlockerError):
    """The lock could not be acquired within the requested timeout."""

    def __init__(self, name: str, timeout: float) -> None:
        self.name = name
        self.timeout = timeout
        super().__init__(f"Did not get lock {name} within {timeout} seconds")


class LockStateError(RedlockerError):
    """A lock session was used outside of its lifecycle, e.g. acquired twice."""
