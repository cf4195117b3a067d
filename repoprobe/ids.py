"""Time-based identifiers that never repeat within one process."""

from __future__ import annotations

import threading
import time
from typing import Callable


class MonotonicIds:
    """Issues ``<prefix><milliseconds>`` identifiers that strictly increase."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next(self, prefix: str = "") -> str:
        with self._lock:
            stamp = int(self._clock() * 1000)
            if stamp <= self._last:
                stamp = self._last + 1
            self._last = stamp
        return f"{prefix}{stamp}"


__all__ = ["MonotonicIds"]
