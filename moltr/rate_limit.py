"""
Rate limiting module for Moltr API.

Per-client sliding window limiter applied to every route by middleware.
State is in-process and advisory only; it holds no business data.
"""

import time
import threading
from collections import defaultdict, deque
from typing import Deque, Dict, Optional
from dataclasses import dataclass


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    retry_after: Optional[float] = None


class RateLimiter:
    """
    Sliding window rate limiter.

    Thread-safe; each client key keeps a deque of hit timestamps inside the
    current window.
    """

    def __init__(self, rpm: int, window_seconds: int = 60, sweep_every: int = 1000):
        """
        Args:
            rpm: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
            sweep_every: Drop idle client keys after this many checks
        """
        self._limit = max(1, rpm)
        self._window = window_seconds
        self._sweep_every = sweep_every
        self._checks = 0
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitResult:
        """
        Record a hit for `key` unless it is over the limit.

        Returns:
            RateLimitResult with allowed status and retry hint
        """
        now = time.monotonic()
        window_start = now - self._window

        with self._lock:
            self._checks += 1
            if self._checks % self._sweep_every == 0:
                self._sweep(window_start)

            q = self._hits[key]
            while q and q[0] < window_start:
                q.popleft()

            if len(q) >= self._limit:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    retry_after=max(0.0, q[0] + self._window - now)
                )

            q.append(now)
            return RateLimitResult(allowed=True, remaining=self._limit - len(q))

    def allow(self, key: str) -> bool:
        return self.check(key).allowed

    def reset(self, key: Optional[str] = None) -> None:
        """Reset counters for one key, or all keys."""
        with self._lock:
            if key:
                self._hits.pop(key, None)
            else:
                self._hits.clear()

    def _sweep(self, window_start: float) -> None:
        # caller holds the lock
        idle = [k for k, q in self._hits.items() if not q or q[-1] < window_start]
        for k in idle:
            del self._hits[k]
