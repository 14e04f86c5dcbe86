from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowLimiter:
    """Counts hits per key inside a fixed time window.

    State is per process; running several workers multiplies the effective
    limit by the worker count.
    """

    def __init__(self, *, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self._limit = int(limit)
        self._window = int(window_seconds)
        self._clock = clock
        self._hits: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def hit(self, key: str) -> bool:
        """Record one hit; returns False once the key is over the limit."""
        now = self._clock()
        with self._lock:
            window = self._hits.get(key)
            if window is None or now >= window.reset_at:
                window = _Window(count=0, reset_at=now + self._window)
                self._hits[key] = window
            window.count += 1
            if len(self._hits) > 10000:
                self._evict(now)
            return window.count <= self._limit

    def remaining(self, key: str) -> int:
        with self._lock:
            window = self._hits.get(key)
            if window is None or self._clock() >= window.reset_at:
                return self._limit
            return max(self._limit - window.count, 0)

    def reset(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)

    def _evict(self, now: float) -> None:
        expired = [k for k, w in self._hits.items() if now >= w.reset_at]
        for k in expired:
            del self._hits[k]
