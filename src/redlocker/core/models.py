"""Data models shared across redlocker."""

from __future__ import annotations

from enum import Enum


class LockState(str, Enum):
    """Lifecycle of a single lock session."""

    ACQUIRING = "acquiring"
    HELD = "held"
    RELEASED = "released"
    FAILED = "failed"


_TRANSITIONS = {
    LockState.ACQUIRING: {LockState.HELD, LockState.FAILED},
    LockState.HELD: {LockState.RELEASED},
    LockState.RELEASED: set(),
    LockState.FAILED: set(),
}


def can_transition(current: LockState, target: LockState) -> bool:
    return target in _TRANSITIONS[current]
