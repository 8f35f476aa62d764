# transcript_engine/providers/http.py
"""
Shared HTTP failure classification for httpx-based adapters.

Upstream services answer with free text and no stable error codes, so the
heuristics live here, in one place:
- classify_status: HTTP status code -> typed failure
- classify_message: free-text error -> FailureReason (or None)
- classify_transport_error: httpx exception -> typed failure
"""

from __future__ import annotations

import re
from typing import Optional

import httpx

from transcript_engine.extraction.outcomes import Failure, RetryableFailure, TerminalFailure, failure_for
from transcript_engine.extraction.schema import FailureReason

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}


# "HTTP Error 429", "status code 503"; bare numbers inside ids do not count
_STATUS_TOKEN = r"\b(?:http(?: error)?|status(?: code)?)\s*:?\s*{}\b"


def _phrases(*phrases: str) -> str:
    return "|".join(re.escape(phrase) for phrase in phrases)


# Ordered; first match wins. Transient wording precedes the "unavailable" rule.
_MESSAGE_RULES = (
    (
        FailureReason.RATE_LIMITED,
        re.compile(_phrases("rate limit", "too many requests", "quota") + "|" + _STATUS_TOKEN.format("429")),
    ),
    (
        FailureReason.SERVER_ERROR,
        re.compile(
            _phrases("temporarily", "service unavailable", "try again later", "internal server error", "bad gateway")
            + "|" + _STATUS_TOKEN.format(r"5\d\d")
        ),
    ),
    (
        FailureReason.RESTRICTED,
        re.compile(
            _phrases(
                "private", "restricted", "sign in", "login required", "members-only", "blocked in your country"
            )
        ),
    ),
    (
        FailureReason.NO_CAPTIONS,
        re.compile(
            _phrases(
                "no captions", "captions are disabled", "subtitles are disabled", "transcript-unavailable",
                "no transcript", "transcripts disabled", "captions unavailable",
            )
        ),
    ),
    (
        FailureReason.NOT_FOUND,
        re.compile(_phrases("not found", "unavailable", "does not exist", "removed", "deleted", "invalid video")),
    ),
    (FailureReason.TIMEOUT, re.compile(_phrases("timed out", "timeout"))),
    (FailureReason.NETWORK_ERROR, re.compile(_phrases("connection", "network", "reset by peer"))),
)


def classify_message(message: str) -> Optional[FailureReason]:
    """Map a free-text upstream error to a FailureReason, or None when unknown."""
    lowered = (message or "").lower()
    for reason, pattern in _MESSAGE_RULES:
        if pattern.search(lowered):
            return reason
    return None


def classify_status(status_code: int, body: str = "") -> Failure:
    """Map a non-success HTTP response to a typed failure."""
    detail = f"HTTP {status_code}"
    snippet = (body or "").strip()[:200]
    if snippet:
        detail = f"{detail}: {snippet}"

    if status_code == 429:
        return RetryableFailure(FailureReason.RATE_LIMITED, detail)
    if status_code >= 500:
        return RetryableFailure(FailureReason.SERVER_ERROR, detail)
    if status_code == 408:
        return RetryableFailure(FailureReason.TIMEOUT, detail)
    if status_code == 401:
        return TerminalFailure(FailureReason.NOT_CONFIGURED, detail)
    if status_code == 403:
        return TerminalFailure(FailureReason.RESTRICTED, detail)
    if status_code in (404, 410):
        reason = classify_message(snippet)
        if reason is FailureReason.NO_CAPTIONS:
            return TerminalFailure(reason, detail)
        return TerminalFailure(FailureReason.NOT_FOUND, detail)

    reason = classify_message(snippet)
    if reason is not None:
        return failure_for(reason, detail)
    return TerminalFailure(FailureReason.UNEXPECTED, detail)


def classify_transport_error(exc: Exception) -> Failure:
    """Map an httpx exception raised during a request to a typed failure."""
    if isinstance(exc, httpx.TimeoutException):
        return RetryableFailure(FailureReason.TIMEOUT, f"{type(exc).__name__}: {exc}")
    if isinstance(exc, httpx.TransportError):
        return RetryableFailure(FailureReason.NETWORK_ERROR, f"{type(exc).__name__}: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code, exc.response.text)
    return TerminalFailure(FailureReason.UNEXPECTED, f"{type(exc).__name__}: {exc}")


def request_timeout(deadline, ceiling: float) -> httpx.Timeout:
    """httpx timeout bounded by both the adapter ceiling and the request budget."""
    seconds = deadline.bound(ceiling)
    return httpx.Timeout(seconds if seconds > 0 else 0.001)
