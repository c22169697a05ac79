"""
Bounded Deduplication Set

Remembers identifiers (transaction signatures, pool accounts, token mints)
for a limited time window and up to a fixed capacity, so a long-running
process never grows without bound.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Hashable

from cachetools import TTLCache


class SeenSet:
    """Capacity-bounded, time-windowed set with atomic insert-if-absent.

    Entries expire after ``ttl`` seconds; once ``maxsize`` is reached the
    oldest entries are evicted first. An expired identifier counts as unseen
    again.
    """

    def __init__(
        self,
        maxsize: int = 100_000,
        ttl: float = 3600.0,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.maxsize = maxsize
        self.ttl = ttl
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    def add_if_absent(self, key: Hashable) -> bool:
        """Insert ``key`` and return True, or return False if already present."""
        with self._lock:
            if key in self._cache:
                return False
            self._cache[key] = True
            return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)
