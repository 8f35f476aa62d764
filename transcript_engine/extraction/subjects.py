# transcript_engine/extraction/subjects.py
"""
Input validation and subject construction.

Responsibility:
- Confirm a user-supplied source is a YouTube URL or a bare video id
- Extract the canonical 11-character video id
- Build ExtractionRequest objects for video and audio subjects

No network calls, pure deterministic validation.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from transcript_engine.extraction.schema import (
    AudioSubject,
    ExtractionOptions,
    ExtractionRequest,
    VideoSubject,
)

# Covers watch, youtu.be, embeds, shorts, live and nocookie hosts
YOUTUBE_REGEX = re.compile(
    r"(?:https?://)?"
    r"(?:www\.|m\.|music\.)?"
    r"(?:youtube\.com|youtu\.be|youtube-nocookie\.com)"
    r"/(?:watch\?(?:.*&)?v=|embed/|v/|shorts/|live/)?([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"
)
VIDEO_ID_REGEX = re.compile(r"^[A-Za-z0-9_-]{11}$")


class InvalidSubjectError(ValueError):
    """The caller supplied something that is neither a video reference nor audio."""


def extract_video_id(source: str) -> Optional[str]:
    """Return the video id for a YouTube URL or bare id, else None."""
    source = (source or "").strip()
    if VIDEO_ID_REGEX.match(source):
        return source
    match = YOUTUBE_REGEX.search(source)
    if match:
        return match.group(1)
    return None


def video_request(source: str, options: Optional[ExtractionOptions] = None, **option_values: Any) -> ExtractionRequest:
    video_id = extract_video_id(source)
    if video_id is None:
        raise InvalidSubjectError(f"Not a YouTube URL or video id: {source!r}")
    return ExtractionRequest(
        subject=VideoSubject(id=video_id),
        options=options or ExtractionOptions(**option_values),
    )


def audio_request(
    blob: bytes,
    mime_type: str = "audio/webm",
    options: Optional[ExtractionOptions] = None,
    **option_values: Any,
) -> ExtractionRequest:
    if not blob:
        raise InvalidSubjectError("Audio blob is empty")
    return ExtractionRequest(
        subject=AudioSubject(blob=blob, mime_type=mime_type),
        options=options or ExtractionOptions(**option_values),
    )
