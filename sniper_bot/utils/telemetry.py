"""Process-local counters and gauges."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict


class Telemetry:
    """Thread-safe counters and gauges keyed by metric name."""

    def __init__(self) -> None:
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = {}
        self._lock = threading.Lock()

    def inc(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, float]:
        """Return a copy of every counter and gauge."""
        with self._lock:
            data: Dict[str, float] = dict(self._counters)
            data.update(self._gauges)
            return data

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()


telemetry = Telemetry()
