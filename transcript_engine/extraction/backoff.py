# transcript_engine/extraction/backoff.py
"""Reusable exponential backoff policy injected into the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BackoffPolicy:
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 8.0

    def __post_init__(self) -> None:
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("backoff delays must be non-negative")
        if self.factor < 1:
            raise ValueError("backoff factor must be >= 1")

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before retry `retry_number` (1-based): 1s, 2s, 4s, ... capped."""
        if retry_number < 1:
            raise ValueError("retry_number is 1-based")
        return min(self.base_delay * self.factor ** (retry_number - 1), self.max_delay)
