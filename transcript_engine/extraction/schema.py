# transcript_engine/extraction/schema.py
"""
Authoritative data contracts for the transcript engine.

This module defines:
- The request shape (subject + options) accepted by the orchestrator
- The normalized Segment / Transcript representation
- The immutable ProviderAttempt log record
- The ExtractionResult artifact returned to collaborators
- Typed failure reasons shared by adapters, orchestrator and normalizer

Python attributes are snake_case; serialized payloads use the camelCase
names of the external interface (rawText, durationMs, ...).
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_BUDGET_MS = 45_000
EXTENDED_BUDGET_MS = 90_000
DEFAULT_MAX_RETRIES = 2


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FailureReason(str, Enum):
    """Typed failure categories reported by adapters."""

    # retryable
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    RATE_LIMITED = "rate_limited"
    # terminal
    NO_CAPTIONS = "no_captions"
    RESTRICTED = "restricted"
    NOT_FOUND = "not_found"
    EMPTY_PAYLOAD = "empty_payload"
    MALFORMED_PAYLOAD = "malformed_payload"
    NOT_CONFIGURED = "not_configured"
    UNEXPECTED = "unexpected"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_REASONS


RETRYABLE_REASONS = frozenset(
    {
        FailureReason.NETWORK_ERROR,
        FailureReason.TIMEOUT,
        FailureReason.SERVER_ERROR,
        FailureReason.RATE_LIMITED,
    }
)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    TERMINAL_FAILURE = "terminal_failure"


class ExtractionStatus(str, Enum):
    EXTRACTED = "extracted"
    UNAVAILABLE = "unavailable"


class UnavailableReason(str, Enum):
    """User-facing classification of an unavailable result."""

    NO_CAPTIONS = "no_captions"
    RESTRICTED = "restricted"
    NOT_FOUND = "not_found"
    TECHNICAL = "technical"


class SubjectKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class VideoSubject(_Model):
    kind: Literal["video"] = "video"
    id: str = Field(min_length=1)

    @property
    def subject_id(self) -> str:
        return self.id


class AudioSubject(_Model):
    kind: Literal["audio"] = "audio"
    blob: bytes = Field(repr=False, min_length=1)
    mime_type: str = "audio/webm"

    @property
    def subject_id(self) -> str:
        return "audio-" + hashlib.sha1(self.blob).hexdigest()[:12]


Subject = Annotated[Union[VideoSubject, AudioSubject], Field(discriminator="kind")]


class ExtractionOptions(_Model):
    language: str = "auto"
    include_timestamps: bool = True
    max_retries_per_provider: int = Field(DEFAULT_MAX_RETRIES, ge=1)
    total_budget_ms: int = Field(DEFAULT_BUDGET_MS, gt=0)
    attempt_timeout_ms: int = Field(DEFAULT_BUDGET_MS, gt=0)

    @classmethod
    def extended(cls, **overrides: Any) -> "ExtractionOptions":
        """Options for large inputs: 90s budget and per-attempt timeout."""
        values: Dict[str, Any] = {
            "total_budget_ms": EXTENDED_BUDGET_MS,
            "attempt_timeout_ms": EXTENDED_BUDGET_MS,
        }
        values.update(overrides)
        return cls(**values)

    @property
    def wants_language(self) -> bool:
        return bool(self.language) and self.language.lower() != "auto"


class ExtractionRequest(_Model):
    subject: Subject
    options: ExtractionOptions = Field(default_factory=ExtractionOptions)


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


class Segment(_Model):
    start: float = Field(ge=0)
    end: float
    text: str

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "Segment":
        if self.end < self.start:
            raise ValueError(f"segment end {self.end} precedes start {self.start}")
        return self


def join_segment_text(segments: Sequence[Segment]) -> str:
    """Single-space join of segment texts in order."""
    return " ".join(segment.text for segment in segments)


class Transcript(_Model):
    segments: List[Segment]
    raw_text: str
    provider: str
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    language: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "Transcript":
        starts = [segment.start for segment in self.segments]
        if any(a > b for a, b in zip(starts, starts[1:])):
            raise ValueError("segments must be ordered by start")
        if self.raw_text != join_segment_text(self.segments):
            raise ValueError("raw_text must be the single-space join of segment texts")
        return self

    @classmethod
    def from_segments(
        cls,
        segments: Sequence[Segment],
        provider: str,
        confidence: Optional[float] = None,
        language: Optional[str] = None,
    ) -> "Transcript":
        return cls(
            segments=list(segments),
            raw_text=join_segment_text(segments),
            provider=provider,
            confidence=confidence,
            language=language,
        )


# ---------------------------------------------------------------------------
# Attempt log and result
# ---------------------------------------------------------------------------


class ProviderAttempt(_Model):
    """Immutable record of one adapter call."""

    provider: str
    attempt_number: int = Field(ge=1)
    started_at: datetime
    duration_ms: float = Field(ge=0)
    outcome: OutcomeKind
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None


class VideoMetadata(_Model):
    title: str
    author: str
    duration: str
    thumbnail: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def default(cls, subject_id: str) -> "VideoMetadata":
        """Best-effort placeholder used when no metadata source answers."""
        return cls(
            title=f"Unknown {subject_id}",
            author="Unknown",
            duration="Unknown",
            source="default",
        )

    @property
    def is_default(self) -> bool:
        return self.source == "default"


class ExtractionResult(_Model):
    """
    The only artifact returned to collaborators.

    Always produced, including when every provider failed.
    """

    request_id: str
    status: ExtractionStatus
    transcript: Optional[Transcript] = None
    metadata: Optional[VideoMetadata] = None
    attempts: List[ProviderAttempt] = Field(default_factory=list)
    unavailable_reason: Optional[UnavailableReason] = None
    budget_exceeded: bool = False
    display_text: Optional[str] = None
    fallback_note: Optional[str] = None

    @property
    def extracted(self) -> bool:
        return self.status is ExtractionStatus.EXTRACTED

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON shape of the external interface."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# High-Level Intent
# schema.py is the contract shared by every component. Adapters speak in
# FailureReason, the orchestrator logs ProviderAttempt records, the normalizer
# builds Transcript / ExtractionResult. Validation enforces the two transcript
# invariants (ordered segments, raw_text reproducible from segments) so a
# malformed transcript can never leave the engine.
#
# Edge Cases
# Empty audio blobs and blank video ids are rejected when the request is built.
# Confidence outside [0, 1] is rejected; the normalizer drops such values
# instead of clamping them.
