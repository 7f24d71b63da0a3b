"""
Concierge Rate Limiter

Fixed-window request counting per client identity. A client's window
starts on its first request and is reset lazily once it has passed.

Usage:
    limiter = RateLimiter(max_requests=60, window_seconds=60)
    remaining = limiter.hit("guest@example.com")   # raises when over the limit
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from concierge.exceptions import RateLimitExceededError


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Per-client counter. ``hit`` increments and checks atomically."""

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._next_sweep = clock() + window_seconds
        self._lock = threading.Lock()

    def hit(self, client_id: str) -> int:
        """Count one request for ``client_id``.

        Returns:
            Requests remaining in the current window.

        Raises:
            RateLimitExceededError: if this request exceeds the limit.
        """
        with self._lock:
            now = self._clock()
            if now > self._next_sweep:
                self._sweep(now)
            window = self._windows.get(client_id)
            if window is None or now > window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[client_id] = window

            window.count += 1
            if window.count > self.max_requests:
                raise RateLimitExceededError(
                    client_id, self.max_requests, self.window_seconds, window.reset_at
                )
            return self.max_requests - window.count

    def _sweep(self, now: float) -> None:
        """Drop expired windows. Caller holds the lock."""
        expired = [cid for cid, w in self._windows.items() if now > w.reset_at]
        for cid in expired:
            del self._windows[cid]
        self._next_sweep = now + self.window_seconds

    @property
    def tracked_clients(self) -> int:
        """Number of clients currently tracked."""
        with self._lock:
            return len(self._windows)

    def remaining(self, client_id: str) -> int:
        with self._lock:
            window = self._windows.get(client_id)
            if window is None or self._clock() > window.reset_at:
                return self.max_requests
            return max(0, self.max_requests - window.count)

    def reset(self, client_id: str | None = None) -> None:
        with self._lock:
            if client_id is None:
                self._windows.clear()
            else:
                self._windows.pop(client_id, None)
