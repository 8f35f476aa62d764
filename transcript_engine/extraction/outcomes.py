# transcript_engine/extraction/outcomes.py
"""
Typed outcomes returned by every provider adapter.

Single responsibility: the uniform adapter result contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Union

from transcript_engine.extraction.schema import FailureReason, OutcomeKind


@dataclass(frozen=True)
class Success:
    """Raw provider payload, not yet parsed."""

    raw_payload: str
    provider_metadata: Dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[OutcomeKind] = OutcomeKind.SUCCESS


@dataclass(frozen=True)
class RetryableFailure:
    """Transient failure: retrying the same provider may succeed."""

    reason: FailureReason
    detail: str = ""

    kind: ClassVar[OutcomeKind] = OutcomeKind.RETRYABLE_FAILURE


@dataclass(frozen=True)
class TerminalFailure:
    """Retrying the same provider cannot help."""

    reason: FailureReason
    detail: str = ""

    kind: ClassVar[OutcomeKind] = OutcomeKind.TERMINAL_FAILURE


ProviderOutcome = Union[Success, RetryableFailure, TerminalFailure]
Failure = Union[RetryableFailure, TerminalFailure]


def failure_for(reason: FailureReason, detail: str = "") -> Failure:
    """Build the failure variant that matches the reason's retry class."""
    if reason.retryable:
        return RetryableFailure(reason, detail)
    return TerminalFailure(reason, detail)
