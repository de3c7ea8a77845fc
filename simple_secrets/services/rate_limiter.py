"""In-process password attempt limiter keyed by client identifier."""

from __future__ import annotations

import time
from threading import Lock
from typing import Callable

from simple_secrets.core.errors import RateLimitError
from simple_secrets.core.logging import structured_log
from simple_secrets.models.entities import RateLimitEntry


class RateLimiter:
    """Counts attempts per identifier within a window and blocks after max_attempts.

    State is lost on restart; idle entries are evicted once their window (and any block)
    has passed.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 300.0,
        block_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.block_seconds = block_seconds
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = Lock()

    def check(self, identifier: str) -> None:
        """Record an attempt; raise RateLimitError when the identifier is blocked."""
        now = self._clock()
        with self._lock:
            self._evict(now)
            entry = self._entries.get(identifier)
            if entry is None:
                self._entries[identifier] = RateLimitEntry(attempts=1, last_attempt=now)
                return

            if entry.blocked_until is not None and entry.blocked_until > now:
                raise RateLimitError(retry_after_seconds=int(entry.blocked_until - now) + 1)

            if now - entry.last_attempt > self.window_seconds:
                entry.attempts = 1
                entry.last_attempt = now
                entry.blocked_until = None
                return

            entry.attempts += 1
            entry.last_attempt = now
            if entry.attempts > self.max_attempts:
                entry.blocked_until = now + self.block_seconds
                structured_log(
                    "WARNING",
                    "Password attempts blocked",
                    operation="password.rate_limit",
                    metadata={"client": identifier, "attempts": entry.attempts},
                )
                raise RateLimitError(retry_after_seconds=int(self.block_seconds))

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._entries.pop(identifier, None)

    def evict_expired(self) -> int:
        with self._lock:
            return self._evict(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict(self, now: float) -> int:
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.last_attempt > self.window_seconds
            and (entry.blocked_until is None or entry.blocked_until <= now)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)
