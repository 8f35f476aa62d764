# transcript_engine/providers/transcript_api.py
"""
Caption-track strategy using youtube_transcript_api.
Single responsibility: fetch one caption track and hand back its raw snippets.

The library is synchronous (requests), so the fetch runs in a worker thread
through a session whose requests are bounded by the attempt timeout.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Dict, List, Optional, Sequence

import requests
from youtube_transcript_api import NoTranscriptFound, YouTubeTranscriptApi

from transcript_engine.extraction.deadline import Deadline
from transcript_engine.extraction.outcomes import (
    Failure,
    ProviderOutcome,
    RetryableFailure,
    Success,
    TerminalFailure,
    failure_for,
)
from transcript_engine.extraction.schema import ExtractionRequest, FailureReason
from transcript_engine.providers.base import AttemptCancelled, BlockingCalls, ProviderAdapter

DEFAULT_LANGUAGES: Sequence[str] = ("en", "en-US", "en-GB")
MIN_REQUEST_TIMEOUT = 0.1

# Library exception class name -> reason. Matched along the MRO so subclasses
# added by newer releases fall back to their parent's mapping.
TRANSCRIPT_ERROR_REASONS: Dict[str, FailureReason] = {
    "TranscriptsDisabled": FailureReason.NO_CAPTIONS,
    "NoTranscriptFound": FailureReason.NO_CAPTIONS,
    "NoTranscriptAvailable": FailureReason.NO_CAPTIONS,
    "TranslationLanguageNotAvailable": FailureReason.NO_CAPTIONS,
    "VideoUnavailable": FailureReason.NOT_FOUND,
    "InvalidVideoId": FailureReason.NOT_FOUND,
    "AgeRestricted": FailureReason.RESTRICTED,
    "VideoUnplayable": FailureReason.RESTRICTED,
    "PoTokenRequired": FailureReason.RESTRICTED,
    "RequestBlocked": FailureReason.RATE_LIMITED,
    "IpBlocked": FailureReason.RATE_LIMITED,
    "TooManyRequests": FailureReason.RATE_LIMITED,
    "YouTubeRequestFailed": FailureReason.SERVER_ERROR,
    "YouTubeDataUnparsable": FailureReason.MALFORMED_PAYLOAD,
    "ConnectionError": FailureReason.NETWORK_ERROR,
    "Timeout": FailureReason.TIMEOUT,
}


def classify_transcript_error(exc: BaseException) -> Failure:
    """Map a youtube_transcript_api (or requests) exception to a typed failure."""
    lines = str(exc).strip().splitlines()
    detail = f"{type(exc).__name__}: {lines[0]}" if lines else type(exc).__name__
    for cls in type(exc).__mro__:
        reason = TRANSCRIPT_ERROR_REASONS.get(cls.__name__)
        if reason is not None:
            return failure_for(reason, detail)
    if isinstance(exc, OSError):
        return RetryableFailure(FailureReason.NETWORK_ERROR, detail)
    return TerminalFailure(FailureReason.UNEXPECTED, detail)


class BoundedSession(requests.Session):
    """Session with a default per-request timeout that stops issuing requests once cancelled."""

    def __init__(self, timeout: float, cancel: threading.Event) -> None:
        super().__init__()
        self.timeout = timeout
        self.cancel = cancel

    def request(self, method, url, *args, **kwargs):
        if self.cancel.is_set():
            raise AttemptCancelled(f"{method} {url}: attempt already cancelled")
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, *args, **kwargs)


class TranscriptApiAdapter(ProviderAdapter):
    name = "transcript-api"

    def __init__(self, api_factory=YouTubeTranscriptApi, languages: Sequence[str] = DEFAULT_LANGUAGES) -> None:
        self._api_factory = api_factory
        self._languages = tuple(languages)
        self._calls = BlockingCalls()

    def _fetch_snippets(
        self, video_id: str, language: Optional[str], timeout: float, cancel: threading.Event
    ) -> tuple[List[Dict[str, Any]], Optional[str]]:
        with BoundedSession(timeout, cancel) as session:
            api = self._api_factory(http_client=session)
            if language:
                fetched = api.fetch(video_id, languages=[language])
                return fetched.to_raw_data(), getattr(fetched, "language_code", language)

            transcripts = api.list(video_id)
            try:
                transcript = transcripts.find_transcript(self._languages)
            except NoTranscriptFound:
                transcript = next(iter(transcripts), None)
            if transcript is None:
                return [], None
            if cancel.is_set():
                raise AttemptCancelled("caption track fetch skipped")
            fetched = transcript.fetch()
            return fetched.to_raw_data(), getattr(transcript, "language_code", None)

    async def attempt(self, request: ExtractionRequest, deadline: Deadline) -> ProviderOutcome:
        language = request.options.language if request.options.wants_language else None
        # requests rejects a zero timeout
        timeout = max(deadline.bound(request.options.attempt_timeout_ms / 1000.0), MIN_REQUEST_TIMEOUT)
        try:
            snippets, language_code = await self._calls.run(
                deadline, self._fetch_snippets, request.subject.subject_id, language, timeout
            )
        except Exception as exc:  # pylint: disable=broad-except
            return classify_transcript_error(exc)

        if not snippets:
            return TerminalFailure(FailureReason.EMPTY_PAYLOAD, "caption track has no snippets")

        metadata: Dict[str, Any] = {"snippets": len(snippets)}
        if language_code:
            metadata["language"] = language_code
        return Success(json.dumps(snippets, ensure_ascii=False), metadata)

    async def settle(self, deadline: Deadline) -> bool:
        return await self._calls.settle(deadline)
