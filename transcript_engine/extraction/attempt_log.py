# transcript_engine/extraction/attempt_log.py
"""Accumulates ProviderAttempt records for one extraction request."""

from __future__ import annotations

from datetime import datetime
from typing import List

from transcript_engine.extraction.outcomes import ProviderOutcome
from transcript_engine.extraction.schema import ProviderAttempt


class AttemptLog:
    """Append-only; lives outside the chain so a crashed chain keeps its history."""

    def __init__(self) -> None:
        self._attempts: List[ProviderAttempt] = []

    def record(
        self,
        provider: str,
        attempt_number: int,
        started_at: datetime,
        duration_ms: float,
        outcome: ProviderOutcome,
    ) -> ProviderAttempt:
        attempt = ProviderAttempt(
            provider=provider,
            attempt_number=attempt_number,
            started_at=started_at,
            duration_ms=round(duration_ms, 3),
            outcome=outcome.kind,
            reason=getattr(outcome, "reason", None),
            detail=getattr(outcome, "detail", None) or None,
        )
        self._attempts.append(attempt)
        return attempt

    @property
    def attempts(self) -> List[ProviderAttempt]:
        return list(self._attempts)

    def __len__(self) -> int:
        return len(self._attempts)

