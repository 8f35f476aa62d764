# transcript_engine/parsing/timed_nodes.py
"""
Parser for inline-timed payloads: XML elements or JSON objects that each
carry a start offset and an optional duration/end.

XML shapes (tag -> start attr, duration attr, unit scale):
- <text start="1.2" dur="3.4">      seconds   (timedtext srv1)
- <p t="1200" d="3400">             millis    (timedtext srv3)
- <subtitle start="1.2" duration=""> seconds

JSON shapes:
- {"events": [{"tStartMs", "dDurationMs", "segs": [{"utf8"}]}]}   json3
- {"segments": [{"start", "end", "text"}]}                           speech-to-text
- {"content": [{"offset", "duration", "text"}]}                      millisecond nodes
- [{"text", "start", "duration" | "dur" | "end"}]                   caption list
"""

from __future__ import annotations

import json
import math
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, List, Optional, Tuple

from transcript_engine.extraction.schema import Segment
from transcript_engine.parsing.text import MalformedPayloadError, make_segment, sort_segments

# tag: (start attribute, duration attribute, seconds per unit)
XML_NODE_RULES: Dict[str, Tuple[str, str, float]] = {
    "text": ("start", "dur", 1.0),
    "p": ("t", "d", 0.001),
    "subtitle": ("start", "duration", 1.0),
}

# start key, seconds per unit, duration keys, end key
JSON_NODE_RULES: Tuple[Tuple[str, float, Tuple[str, ...], Optional[str]], ...] = (
    ("tStartMs", 0.001, ("dDurationMs",), None),
    ("offset", 0.001, ("duration",), None),
    ("startMs", 0.001, ("durationMs",), "endMs"),
    ("start", 1.0, ("duration", "dur"), "end"),
)

_JSON_LIST_KEYS = ("events", "segments", "content", "transcript", "captions")

_XML_FALLBACK_PATTERNS = (
    (re.compile(r'<text start="([^"]*)"(?:\s+dur="([^"]*)")?[^>]*>(.*?)</text>', re.S), 1.0),
    (re.compile(r'<p t="([^"]*)"(?:\s+d="([^"]*)")?[^>]*>(.*?)</p>', re.S), 0.001),
    (re.compile(r'<subtitle start="([^"]*)"(?:\s+duration="([^"]*)")?[^>]*>(.*?)</subtitle>', re.S), 1.0),
)


def looks_like_json(content: str) -> bool:
    return content.lstrip().startswith(("{", "["))


def looks_like_xml(content: str) -> bool:
    stripped = content.lstrip()
    return stripped.startswith("<") and any(f"<{tag}" in stripped for tag in XML_NODE_RULES)


def parse_timed_nodes(content: str) -> List[Segment]:
    """Dispatch to the JSON or XML node parser."""
    if looks_like_json(content):
        return parse_json_nodes(content)
    return parse_xml_nodes(content)


# ---------------------------------------------------------------------------
# XML
# ---------------------------------------------------------------------------


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_xml_nodes(content: str) -> List[Segment]:
    try:
        root = ET.fromstring(content.strip())
    except ET.ParseError:
        # HTML entities such as &nbsp; are not valid XML; fall back to patterns.
        return _parse_xml_with_patterns(content)

    segments: List[Segment] = []
    for element in root.iter():
        rule = XML_NODE_RULES.get(_local_name(element.tag))
        if rule is None:
            continue
        start_attr, duration_attr, scale = rule
        start = _to_float(element.get(start_attr))
        if start is None:
            continue
        duration = _to_float(element.get(duration_attr))
        end = start * scale + duration * scale if duration is not None else None
        segment = make_segment(start * scale, end, "".join(element.itertext()))
        if segment is not None:
            segments.append(segment)
    return sort_segments(segments)


def _parse_xml_with_patterns(content: str) -> List[Segment]:
    for pattern, scale in _XML_FALLBACK_PATTERNS:
        segments: List[Segment] = []
        for raw_start, raw_duration, text in pattern.findall(content):
            start = _to_float(raw_start)
            if start is None:
                continue
            duration = _to_float(raw_duration)
            end = (start + duration) * scale if duration is not None else None
            segment = make_segment(start * scale, end, text)
            if segment is not None:
                segments.append(segment)
        if segments:
            return sort_segments(segments)
    return []


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def parse_json_nodes(content: str) -> List[Segment]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(f"invalid JSON payload: {exc.msg}") from exc
    return sort_segments(_segments_from_nodes(_find_nodes(data)))


def _find_nodes(data: Any) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in _JSON_LIST_KEYS:
            value = data.get(key)
            if isinstance(value, list):
                return value
        return []
    raise MalformedPayloadError(f"unexpected JSON payload type: {type(data).__name__}")


def _node_text(node: Dict[str, Any]) -> str:
    if isinstance(node.get("text"), str):
        return node["text"]
    if isinstance(node.get("utf8"), str):
        return node["utf8"]
    segs = node.get("segs")
    if isinstance(segs, list):
        return "".join(
            seg["utf8"] for seg in segs if isinstance(seg, dict) and isinstance(seg.get("utf8"), str)
        )
    return ""


def _node_timing(node: Dict[str, Any]) -> Optional[Tuple[float, Optional[float]]]:
    for start_key, scale, duration_keys, end_key in JSON_NODE_RULES:
        if start_key not in node:
            continue
        start = _to_float(node.get(start_key))
        if start is None:
            return None
        start *= scale
        if end_key is not None:
            end = _to_float(node.get(end_key))
            if end is not None:
                return start, end * scale
        for duration_key in duration_keys:
            duration = _to_float(node.get(duration_key))
            if duration is not None:
                return start, start + duration * scale
        return start, None
    return None


def _segments_from_nodes(nodes: Iterable[Any]) -> List[Segment]:
    segments: List[Segment] = []
    for node in nodes:
        if not isinstance(node, dict):
            continue
        timing = _node_timing(node)
        if timing is None:
            continue
        segment = make_segment(timing[0], timing[1], _node_text(node))
        if segment is not None:
            segments.append(segment)
    return segments
