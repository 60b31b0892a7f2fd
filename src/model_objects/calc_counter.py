"""Thread-safe counter of ``World.calc`` invocations, used for diagnostics."""

from __future__ import annotations

import threading


class CalcCounter:
    def __init__(self, start: int = 0) -> None:
        self._count = int(start)
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._count += 1
            return self._count

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def reset(self) -> None:
        with self._lock:
            self._count = 0
