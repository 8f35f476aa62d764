# transcript_engine/extraction/normalizer.py
"""
Transcript Normalizer.

Responsibility:
- Turn parsed segments into a Transcript (raw_text, provider, confidence, language)
- Render display text with optional [MM:SS] timestamps
- Classify an unavailable result from the attempt log
- Render the Markdown fallback note returned when no provider succeeded
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from transcript_engine.extraction.schema import (
    FailureReason,
    OutcomeKind,
    ProviderAttempt,
    Segment,
    SubjectKind,
    Transcript,
    UnavailableReason,
    VideoMetadata,
)
from transcript_engine.parsing.formatters import format_clock

# Terminal reasons that describe the subject itself. Everything else
# (empty/malformed payloads, unexpected errors) reads as technical.
UNAVAILABLE_REASONS: Dict[FailureReason, UnavailableReason] = {
    FailureReason.NO_CAPTIONS: UnavailableReason.NO_CAPTIONS,
    FailureReason.RESTRICTED: UnavailableReason.RESTRICTED,
    FailureReason.NOT_FOUND: UnavailableReason.NOT_FOUND,
}

USER_MESSAGES: Dict[UnavailableReason, str] = {
    UnavailableReason.NO_CAPTIONS: (
        "No captions are available for this video and the audio could not be transcribed."
    ),
    UnavailableReason.RESTRICTED: (
        "This video is private or access-restricted, so its transcript cannot be retrieved."
    ),
    UnavailableReason.NOT_FOUND: (
        "This video could not be found. It may have been removed, or the link may be wrong."
    ),
    UnavailableReason.TECHNICAL: (
        "The transcript could not be retrieved because of a technical problem. Trying again later may work."
    ),
}


def _confidence(provider_metadata: Mapping[str, Any]) -> Optional[float]:
    value = provider_metadata.get("confidence")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if 0.0 <= value <= 1.0:
        return float(value)
    return None


def build_transcript(
    segments: Sequence[Segment],
    provider: str,
    provider_metadata: Optional[Mapping[str, Any]] = None,
) -> Transcript:
    """Attach provider details to parsed segments. Confidence is never invented."""
    provider_metadata = provider_metadata or {}
    language = provider_metadata.get("language")
    return Transcript.from_segments(
        segments,
        provider=provider,
        confidence=_confidence(provider_metadata),
        language=str(language) if language else None,
    )


def render_display_text(transcript: Transcript, include_timestamps: bool = True) -> str:
    if not include_timestamps:
        return transcript.raw_text
    return "\n".join(f"[{format_clock(segment.start)}] {segment.text}" for segment in transcript.segments)


def classify_unavailable(attempts: Sequence[ProviderAttempt]) -> UnavailableReason:
    """
    User-facing class from the last terminal reason in the log.

    not_configured attempts say nothing about the subject and are skipped.
    A log with no terminal reason (all retryable, or budget exhausted) is technical.
    """
    for attempt in reversed(attempts):
        if attempt.outcome is not OutcomeKind.TERMINAL_FAILURE or attempt.reason is None:
            continue
        if attempt.reason is FailureReason.NOT_CONFIGURED:
            continue
        return UNAVAILABLE_REASONS.get(attempt.reason, UnavailableReason.TECHNICAL)
    return UnavailableReason.TECHNICAL


def _attempt_lines(attempts: Sequence[ProviderAttempt]) -> List[str]:
    lines = []
    for attempt in attempts:
        outcome = attempt.outcome.value.replace("_", " ")
        reason = f" ({attempt.reason.value})" if attempt.reason else ""
        lines.append(
            f"- `{attempt.provider}` attempt {attempt.attempt_number}: {outcome}{reason}, {attempt.duration_ms:.0f} ms"
        )
    return lines or ["- No provider could be attempted for this input."]


def _source_line(subject) -> str:
    if subject.kind == SubjectKind.VIDEO.value:
        return f"https://www.youtube.com/watch?v={subject.id}"
    return f"Recorded audio ({subject.mime_type})"


def render_fallback_note(
    subject,
    metadata: Optional[VideoMetadata],
    attempts: Sequence[ProviderAttempt],
    reason: UnavailableReason,
    budget_exceeded: bool = False,
    now: Optional[datetime] = None,
) -> str:
    """Markdown note returned in place of a transcript so callers always get renderable content."""
    metadata = metadata or VideoMetadata.default(subject.subject_id)
    imported = (now or datetime.now(timezone.utc)).date().isoformat()

    lines = [
        f"# {metadata.title}",
        "",
        f"**Channel:** {metadata.author}",
        f"**Duration:** {metadata.duration}",
        f"**Import Date:** {imported}",
        f"**Source:** {_source_line(subject)}",
        "",
        "---",
        "",
        "## Transcript Not Available",
        "",
        f"**Reason:** {reason.value.replace('_', ' ')}",
        "",
        USER_MESSAGES[reason],
    ]
    if budget_exceeded:
        lines += ["", "The time allowed for this import ran out before every method could be tried."]
    lines += [
        "",
        "### What was tried",
        "",
        *_attempt_lines(attempts),
        "",
        "## Manual Notes",
        "",
        "You can add your own notes about this content here.",
        "",
        "---",
        "",
        "**Note:** You can try importing this again later.",
    ]
    return "\n".join(lines) + "\n"
