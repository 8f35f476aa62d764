# transcript_engine/parsing/text.py
"""
Shared text and timestamp helpers for the segment parsers.
Pure functions, no I/O.
"""

from __future__ import annotations

import html
import math
import re
from typing import Iterable, List, Optional

from transcript_engine.extraction.schema import Segment

DEFAULT_CUE_DURATION = 3.0

_TAG_RE = re.compile(r"</?[A-Za-z][^<>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


class MalformedPayloadError(ValueError):
    """Raised when a payload is structurally unreadable (not merely empty)."""


def clean_text(text: str) -> str:
    """Decode entities, strip inline markup and collapse whitespace."""
    if not text:
        return ""
    # Caption XML is frequently double-escaped ("&amp;#39;"), so decode twice.
    decoded = html.unescape(html.unescape(text))
    stripped = _TAG_RE.sub("", decoded)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def parse_timestamp(value: str) -> float:
    """
    Parse "HH:MM:SS.mmm", "MM:SS.mmm" or "SS.mmm" (dot or comma) to seconds.

    Raises ValueError on anything else.
    """
    value = value.strip().replace(",", ".")
    if not value:
        raise ValueError("empty timestamp")
    parts = value.split(":")
    if len(parts) > 3:
        raise ValueError(f"invalid timestamp: {value!r}")

    seconds = float(parts[-1])
    minutes = int(parts[-2]) if len(parts) >= 2 else 0
    hours = int(parts[-3]) if len(parts) == 3 else 0
    if seconds < 0 or minutes < 0 or hours < 0:
        raise ValueError(f"negative timestamp: {value!r}")
    try:
        total = hours * 3600 + minutes * 60 + seconds
    except OverflowError as exc:
        raise ValueError(f"timestamp out of range: {value!r}") from exc
    if not math.isfinite(total):
        raise ValueError(f"timestamp out of range: {value!r}")
    return round(total, 3)


def make_segment(start: float, end: Optional[float], text: str) -> Optional[Segment]:
    """
    Build a cleaned Segment, or None when the text is empty.

    A missing end, or an end before start, becomes start + 3s.
    """
    cleaned = clean_text(text)
    if not cleaned or not math.isfinite(start):
        return None
    if end is not None and not math.isfinite(end):
        end = None
    start = round(max(0.0, start), 3)
    if end is None or end < start:
        end = start + DEFAULT_CUE_DURATION
    return Segment(start=start, end=round(end, 3), text=cleaned)


def sort_segments(segments: Iterable[Segment]) -> List[Segment]:
    """Stable sort by start; providers may emit out-of-order chunks."""
    return sorted(segments, key=lambda segment: segment.start)


def parse_plain_text(content: str) -> List[Segment]:
    """Last-resort parser: one segment per non-empty line, 3s apart."""
    segments: List[Segment] = []
    offset = 0.0
    for line in content.splitlines():
        segment = make_segment(offset, offset + DEFAULT_CUE_DURATION, line)
        if segment is not None:
            segments.append(segment)
            offset += DEFAULT_CUE_DURATION
    return segments
