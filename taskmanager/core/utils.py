"""
Shared utility functions for the task manager.

This module contains common utilities used across the codebase.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def to_millis(moment: datetime) -> int:
    """Milliseconds since the epoch for an aware datetime."""
    return int(moment.timestamp() * 1000)


# =============================================================================
# Clocks
# =============================================================================


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return utc_now()


class FrozenClock:
    """
    A clock that only moves when told to.

    Used in tests to pin time-bound checks (signature windows, code TTLs,
    token expiry) to exact instants.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or utc_now()

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    def advance(self, seconds: float = 0, milliseconds: float = 0) -> datetime:
        self._now = self._now + timedelta(seconds=seconds, milliseconds=milliseconds)
        return self._now
