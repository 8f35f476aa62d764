# transcript_engine/parsing/__init__.py
"""
Segment parsers: raw provider payloads -> normalized, sorted segments.

parse_payload() sniffs the payload shape:
- JSON object/array           -> parse_json_nodes
- timed XML elements          -> parse_xml_nodes
- cue markup ("-->")          -> parse_cue_blocks
- anything else non-empty     -> parse_plain_text

Well-formed input with no usable text yields []; structurally broken JSON
raises MalformedPayloadError.
"""

from __future__ import annotations

from typing import List

from transcript_engine.extraction.schema import Segment
from transcript_engine.parsing.cues import looks_like_cues, parse_cue_blocks
from transcript_engine.parsing.formatters import (
    format_clock,
    format_duration,
    format_srt,
    format_timed_xml,
    format_timestamp,
    format_webvtt,
)
from transcript_engine.parsing.text import (
    DEFAULT_CUE_DURATION,
    MalformedPayloadError,
    clean_text,
    parse_plain_text,
    parse_timestamp,
)
from transcript_engine.parsing.timed_nodes import (
    looks_like_json,
    looks_like_xml,
    parse_json_nodes,
    parse_timed_nodes,
    parse_xml_nodes,
)


def parse_payload(content: str) -> List[Segment]:
    if not content or not content.strip():
        return []
    if looks_like_json(content):
        return parse_json_nodes(content)
    if looks_like_xml(content):
        return parse_xml_nodes(content)
    if looks_like_cues(content):
        return parse_cue_blocks(content)
    return parse_plain_text(content)


__all__ = [
    "DEFAULT_CUE_DURATION",
    "MalformedPayloadError",
    "clean_text",
    "format_clock",
    "format_duration",
    "format_srt",
    "format_timed_xml",
    "format_timestamp",
    "format_webvtt",
    "parse_cue_blocks",
    "parse_json_nodes",
    "parse_payload",
    "parse_plain_text",
    "parse_timed_nodes",
    "parse_timestamp",
    "parse_xml_nodes",
]
