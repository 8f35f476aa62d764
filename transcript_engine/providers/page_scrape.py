# transcript_engine/providers/page_scrape.py
"""
Page-scrape caption discovery.

Fetch the watch page, read the player's captionTracks list, choose the
track matching the requested language (manual before auto-generated),
then fetch that track's timed-text payload.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

import httpx

from transcript_engine.extraction.deadline import Deadline
from transcript_engine.extraction.outcomes import ProviderOutcome, Success, TerminalFailure
from transcript_engine.extraction.schema import ExtractionRequest, FailureReason
from transcript_engine.providers.base import ProviderAdapter
from transcript_engine.providers.http import (
    BROWSER_HEADERS,
    classify_status,
    classify_transport_error,
    request_timeout,
)

CAPTION_TRACKS_RE = re.compile(r'"captionTracks"\s*:\s*(\[.*?\])\s*,\s*"(?:audioTracks|translationLanguages)"', re.S)
PLAYABILITY_RE = re.compile(r'"playabilityStatus"\s*:\s*\{\s*"status"\s*:\s*"([A-Z_]+)"')

# playabilityStatus.status -> reason when the page has no caption tracks
PLAYABILITY_REASONS = {
    "LOGIN_REQUIRED": FailureReason.RESTRICTED,
    "AGE_VERIFICATION_REQUIRED": FailureReason.RESTRICTED,
    "CONTENT_CHECK_REQUIRED": FailureReason.RESTRICTED,
    "UNPLAYABLE": FailureReason.RESTRICTED,
    "ERROR": FailureReason.NOT_FOUND,
}

PREFERRED_LANGUAGE = "en"


def find_caption_tracks(html: str) -> List[Dict[str, Any]]:
    match = CAPTION_TRACKS_RE.search(html)
    if not match:
        return []
    try:
        tracks = json.loads(match.group(1))
    except json.JSONDecodeError:
        return []
    return [track for track in tracks if isinstance(track, dict) and track.get("baseUrl")]


def choose_track(tracks: List[Dict[str, Any]], language: Optional[str]) -> Optional[Dict[str, Any]]:
    """Exact language, then language prefix; manual tracks before ASR ones; else the first track."""
    if not tracks:
        return None
    wanted = (language or PREFERRED_LANGUAGE).lower()

    def rank(track: Dict[str, Any]) -> tuple:
        code = str(track.get("languageCode", "")).lower()
        if code == wanted:
            match = 0
        elif code.split("-")[0] == wanted.split("-")[0]:
            match = 1
        else:
            match = 2
        return (match, 1 if track.get("kind") == "asr" else 0)

    return min(tracks, key=rank)


class PageScrapeAdapter(ProviderAdapter):
    name = "page-scrape"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://www.youtube.com",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def attempt(self, request: ExtractionRequest, deadline: Deadline) -> ProviderOutcome:
        video_id = request.subject.subject_id
        try:
            page = await self._client.get(
                f"{self._base_url}/watch",
                params={"v": video_id, "hl": "en"},
                headers=BROWSER_HEADERS,
                timeout=request_timeout(deadline, self._timeout_seconds),
            )
            if page.status_code >= 400:
                return classify_status(page.status_code)

            html = page.text
            tracks = find_caption_tracks(html)
            if not tracks:
                return self._no_tracks_outcome(html)

            language = request.options.language if request.options.wants_language else None
            track = choose_track(tracks, language)
            caption = await self._client.get(
                track["baseUrl"],
                headers=BROWSER_HEADERS,
                timeout=request_timeout(deadline, self._timeout_seconds),
            )
        except httpx.HTTPError as exc:
            return classify_transport_error(exc)

        if caption.status_code >= 400:
            return classify_status(caption.status_code, caption.text)
        if not caption.text.strip():
            return TerminalFailure(FailureReason.EMPTY_PAYLOAD, "caption track body is empty")

        return Success(
            caption.text,
            {
                "language": track.get("languageCode"),
                "track_kind": track.get("kind", "manual"),
                "available_tracks": len(tracks),
            },
        )

    @staticmethod
    def _no_tracks_outcome(html: str) -> ProviderOutcome:
        match = PLAYABILITY_RE.search(html)
        status = match.group(1) if match else None
        reason = PLAYABILITY_REASONS.get(status or "", FailureReason.NO_CAPTIONS)
        return TerminalFailure(reason, f"no caption tracks on watch page (playability: {status or 'unknown'})")
