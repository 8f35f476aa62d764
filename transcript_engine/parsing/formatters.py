# transcript_engine/parsing/formatters.py
"""Render segments back to provider-native text forms and display timestamps."""

from __future__ import annotations

from typing import List, Sequence
from xml.sax.saxutils import escape, quoteattr

from transcript_engine.extraction.schema import Segment


def format_timestamp(seconds: float, separator: str = ".") -> str:
    """HH:MM:SS.mmm (separator "," for SRT)."""
    total_ms = int(round(seconds * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def format_clock(seconds: float) -> str:
    """Short display clock: MM:SS, or H:MM:SS past the hour."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_duration(seconds: int) -> str:
    """Video length as H:MM:SS or M:SS."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_webvtt(segments: Sequence[Segment]) -> str:
    blocks: List[str] = ["WEBVTT"]
    for segment in segments:
        blocks.append(
            f"{format_timestamp(segment.start)} --> {format_timestamp(segment.end)}\n{segment.text}"
        )
    return "\n\n".join(blocks) + "\n"


def format_srt(segments: Sequence[Segment]) -> str:
    blocks: List[str] = []
    for index, segment in enumerate(segments, start=1):
        blocks.append(
            f"{index}\n"
            f"{format_timestamp(segment.start, ',')} --> {format_timestamp(segment.end, ',')}\n"
            f"{segment.text}"
        )
    return "\n\n".join(blocks) + "\n"


def format_timed_xml(segments: Sequence[Segment]) -> str:
    """timedtext srv1 shape: <transcript><text start dur>...</text></transcript>."""
    nodes = [
        f"<text start={quoteattr(f'{segment.start:.3f}')} dur={quoteattr(f'{segment.end - segment.start:.3f}')}>"
        f"{escape(segment.text)}</text>"
        for segment in segments
    ]
    return '<?xml version="1.0" encoding="utf-8" ?><transcript>' + "".join(nodes) + "</transcript>"
