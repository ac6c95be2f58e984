"""High resolution millisecond stopwatch."""

from __future__ import annotations

import time


class Timer:
    """Measures elapsed milliseconds since the last restart."""

    def __init__(self) -> None:
        self._start = time.perf_counter()

    def restart(self) -> None:
        """Reset the reference point to now."""
        self._start = time.perf_counter()

    def elapsed_ms(self) -> float:
        """Milliseconds elapsed since the last restart."""
        return (time.perf_counter() - self._start) * 1000.0

    def sleep(self, ms: float) -> None:
        """Restart, then spin until ``ms`` milliseconds have passed."""
        self.restart()
        while self.elapsed_ms() < ms:
            pass