# transcript_engine/parsing/cues.py
"""
Cue-block parser for WebVTT and SRT style payloads.

Recognized:
- "start --> end" timing lines (cue settings after the end time are ignored)
- free text lines following a timing line, up to the next blank line
- WEBVTT headers, numeric/named cue identifiers, NOTE/STYLE/REGION blocks (skipped)
"""

from __future__ import annotations

import re
from typing import List, Optional

from transcript_engine.extraction.schema import Segment
from transcript_engine.parsing.text import make_segment, parse_timestamp, sort_segments

_TIME = r"\d+(?::\d{1,2}){0,2}(?:[.,]\d+)?"
TIMING_RE = re.compile(rf"^\s*(?P<start>{_TIME})\s*-->\s*(?P<end>{_TIME})?")

_SKIPPED_BLOCKS = ("NOTE", "STYLE", "REGION")


class _Cue:
    __slots__ = ("start", "end", "lines")

    def __init__(self, start: float, end: Optional[float]) -> None:
        self.start = start
        self.end = end
        self.lines: List[str] = []

    def to_segment(self) -> Optional[Segment]:
        return make_segment(self.start, self.end, " ".join(self.lines))


def looks_like_cues(content: str) -> bool:
    return "-->" in content


def parse_cue_blocks(content: str) -> List[Segment]:
    """Parse cue-block markup into segments sorted by start."""
    segments: List[Segment] = []
    current: Optional[_Cue] = None
    collecting = False
    skipping = False

    def flush() -> None:
        if current is not None:
            segment = current.to_segment()
            if segment is not None:
                segments.append(segment)

    for raw_line in content.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        line = raw_line.strip()
        if not line:
            collecting = False
            skipping = False
            continue

        match = TIMING_RE.match(line)
        if match:
            try:
                start = parse_timestamp(match.group("start"))
            except ValueError:
                collecting = False
                continue
            end: Optional[float] = None
            if match.group("end"):
                try:
                    end = parse_timestamp(match.group("end"))
                except ValueError:
                    end = None
            flush()
            current = _Cue(start, end)
            collecting = True
            skipping = False
            continue

        if skipping:
            continue
        if collecting and current is not None:
            current.lines.append(line)
            continue
        if line.startswith(_SKIPPED_BLOCKS):
            skipping = True
        # Anything else outside a cue is a header or cue identifier.

    flush()
    return sort_segments(segments)
