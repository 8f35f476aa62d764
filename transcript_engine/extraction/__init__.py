"""Data contracts and chain primitives for transcript extraction."""

from transcript_engine.extraction.outcomes import (
    ProviderOutcome,
    RetryableFailure,
    Success,
    TerminalFailure,
    failure_for,
)
from transcript_engine.extraction.schema import (
    AudioSubject,
    ExtractionOptions,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStatus,
    FailureReason,
    OutcomeKind,
    ProviderAttempt,
    Segment,
    Transcript,
    UnavailableReason,
    VideoMetadata,
    VideoSubject,
)

__all__ = [
    "AudioSubject",
    "ExtractionOptions",
    "ExtractionRequest",
    "ExtractionResult",
    "ExtractionStatus",
    "FailureReason",
    "OutcomeKind",
    "ProviderAttempt",
    "ProviderOutcome",
    "RetryableFailure",
    "Segment",
    "Success",
    "TerminalFailure",
    "Transcript",
    "UnavailableReason",
    "VideoMetadata",
    "VideoSubject",
    "failure_for",
]
