# transcript_engine/extraction/deadline.py
"""
Wall-clock budget shared by every attempt of one extraction request.

The same Deadline bounds per-attempt timeouts, backoff sleeps and adapter
network calls, so timeout and budget enforcement use one mechanism.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator

Clock = Callable[[], float]


class Deadline:
    """Budget measured against an injectable monotonic clock (seconds)."""

    def __init__(self, budget_seconds: float, clock: Clock = time.monotonic) -> None:
        if budget_seconds <= 0:
            raise ValueError("budget must be positive")
        self._clock = clock
        self._started = clock()
        self.budget_seconds = budget_seconds

    @classmethod
    def from_ms(cls, budget_ms: int, clock: Clock = time.monotonic) -> "Deadline":
        return cls(budget_ms / 1000.0, clock)

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> float:
        return max(0.0, self.budget_seconds - self.elapsed())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def bound(self, timeout: float) -> float:
        """Clamp a timeout (seconds) so it never outlives the budget."""
        return max(0.0, min(timeout, self.remaining()))

    def allows(self, delay: float) -> bool:
        """True when sleeping `delay` seconds still leaves budget to act."""
        return delay < self.remaining()

    @contextmanager
    def stopwatch(self) -> Iterator[Callable[[], float]]:
        """
        Context manager that provides a stop() function returning elapsed milliseconds.

        Usage:
            with deadline.stopwatch() as end:
                ...
            duration_ms = end()
        """
        start = self._clock()

        def end() -> float:
            return max(0.0, (self._clock() - start) * 1000)

        yield end
