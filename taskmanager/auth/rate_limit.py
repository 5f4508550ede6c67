"""
Sliding-window rate limiter.

One instance per protected action; keys are whatever identifies the
caller for that action (client IP, user id). Time comes from the injected
clock, so tests can step through a window without sleeping.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime

from taskmanager.core.utils import Clock, SystemClock

logger = logging.getLogger(__name__)


class RateLimitEntry:
    """Timestamps of recent attempts for one key."""

    def __init__(self, limit: int, window_seconds: int):
        self.attempts: deque[datetime] = deque()
        self.limit = limit
        self.window_seconds = window_seconds

    def cleanup_expired(self, now: datetime) -> None:
        cutoff = now.timestamp() - self.window_seconds
        while self.attempts and self.attempts[0].timestamp() <= cutoff:
            self.attempts.popleft()

    def retry_after(self, now: datetime) -> float | None:
        """None if another attempt is allowed, else seconds until one is."""
        self.cleanup_expired(now)
        if len(self.attempts) < self.limit:
            return None
        reset = self.attempts[0].timestamp() + self.window_seconds
        return max(0.0, reset - now.timestamp())


class RateLimiter:
    """
    Allow at most `limit` attempts per key in any `window_seconds` span.

    Usage:
        limiter = RateLimiter(limit=10, window_seconds=900, clock=clock)
        allowed, retry_after = limiter.attempt(client_ip)
    """

    def __init__(self, limit: int, window_seconds: int, clock: Clock | None = None, name: str = ""):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock or SystemClock()
        self.name = name
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def attempt(self, key: str) -> tuple[bool, float | None]:
        """
        Record an attempt for `key` if the limit allows it.

        Returns:
            (allowed, retry_after_seconds); retry_after is None when allowed
        """
        now = self.clock.now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = RateLimitEntry(self.limit, self.window_seconds)

            retry_after = entry.retry_after(now)
            if retry_after is not None:
                logger.warning(f"Rate limit hit for {self.name or 'action'} ({key})")
                return False, retry_after

            entry.attempts.append(now)
            return True, None

    def cleanup_expired_entries(self) -> None:
        """Forget keys with no attempts inside the window."""
        now = self.clock.now()
        with self._lock:
            for key in list(self._entries):
                entry = self._entries[key]
                entry.cleanup_expired(now)
                if not entry.attempts:
                    del self._entries[key]
