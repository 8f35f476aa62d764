# transcript_engine/providers/caption_track.py
"""
Config-driven HTTP transcript adapter.

One adapter class serves every provider whose protocol is "GET a URL built
from the video id and language, read the body as the raw payload". The
per-provider differences live in HttpProviderConfig rows:
- caption-track: YouTube timed-text endpoint (WebVTT)
- supadata: third-party transcript API (JSON, x-api-key)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

import httpx

from transcript_engine.extraction.deadline import Deadline
from transcript_engine.extraction.outcomes import ProviderOutcome, Success, TerminalFailure, failure_for
from transcript_engine.extraction.schema import ExtractionRequest, FailureReason, SubjectKind
from transcript_engine.logging_core.logger import log_event
from transcript_engine.providers.base import ProviderAdapter
from transcript_engine.providers.http import (
    BROWSER_HEADERS,
    classify_message,
    classify_status,
    classify_transport_error,
    request_timeout,
)

logger = logging.getLogger(__name__)

DEFAULT_CAPTION_LANGUAGE = "en"


@dataclass(frozen=True)
class HttpProviderConfig:
    """Everything that distinguishes one plain-HTTP transcript provider."""

    name: str
    url: str
    # A value is either a literal or one placeholder: {video_id}, {language},
    # {caption_language} or {language_or_none}. Placeholders resolving to None are dropped.
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    api_key: Optional[str] = None
    api_key_header: Optional[str] = None
    requires_api_key: bool = False
    subject_kinds: Tuple[SubjectKind, ...] = (SubjectKind.VIDEO,)
    # JSON key whose absence/emptiness means "no transcript" (None: raw text body)
    json_content_key: Optional[str] = None
    json_language_key: Optional[str] = None
    timeout_seconds: float = 30.0


def timedtext_config(base_url: str = "https://www.youtube.com", timeout_seconds: float = 30.0) -> HttpProviderConfig:
    return HttpProviderConfig(
        name="caption-track",
        url=f"{base_url.rstrip('/')}/api/timedtext",
        params={"v": "{video_id}", "lang": "{caption_language}", "fmt": "vtt"},
        headers={**BROWSER_HEADERS, "Accept": "text/vtt,text/xml,text/plain,*/*"},
        timeout_seconds=timeout_seconds,
    )


def supadata_config(
    api_key: Optional[str],
    base_url: str = "https://api.supadata.ai/v1",
    timeout_seconds: float = 30.0,
) -> HttpProviderConfig:
    return HttpProviderConfig(
        name="supadata",
        url=f"{base_url.rstrip('/')}/youtube/transcript",
        params={"videoId": "{video_id}", "text": "false", "lang": "{language_or_none}"},
        headers={"Accept": "application/json", "User-Agent": "transcript-engine/0.1"},
        api_key=api_key,
        api_key_header="x-api-key",
        requires_api_key=True,
        json_content_key="content",
        json_language_key="lang",
        timeout_seconds=timeout_seconds,
    )


class HttpTranscriptAdapter(ProviderAdapter):
    def __init__(self, config: HttpProviderConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.name = config.name
        self.subject_kinds = config.subject_kinds
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.config.api_key) or not self.config.requires_api_key

    def _build_params(self, request: ExtractionRequest) -> Dict[str, str]:
        options = request.options
        values = {
            "video_id": request.subject.subject_id,
            "language": options.language,
            "caption_language": options.language if options.wants_language else DEFAULT_CAPTION_LANGUAGE,
            "language_or_none": options.language if options.wants_language else None,
        }
        params: Dict[str, str] = {}
        for key, template in self.config.params.items():
            placeholder = template[1:-1] if template.startswith("{") and template.endswith("}") else None
            if placeholder is None:
                params[key] = template
            elif values.get(placeholder) is not None:
                params[key] = str(values[placeholder])
        return params

    def _build_headers(self) -> Dict[str, str]:
        headers = dict(self.config.headers)
        if self.config.api_key and self.config.api_key_header:
            headers[self.config.api_key_header] = self.config.api_key
        return headers

    async def attempt(self, request: ExtractionRequest, deadline: Deadline) -> ProviderOutcome:
        if not self.is_configured():
            return TerminalFailure(FailureReason.NOT_CONFIGURED, f"{self.name}: API key not configured")

        try:
            response = await self._client.get(
                self.config.url,
                params=self._build_params(request),
                headers=self._build_headers(),
                timeout=request_timeout(deadline, self.config.timeout_seconds),
            )
        except httpx.HTTPError as exc:
            return classify_transport_error(exc)

        if response.status_code >= 400:
            return classify_status(response.status_code, response.text)

        body = response.text
        if not body.strip():
            # The timed-text endpoint answers 200 with an empty body when no track exists.
            return TerminalFailure(FailureReason.NO_CAPTIONS, f"{self.name}: empty response body")

        provider_metadata = {"url": str(response.url), "status_code": response.status_code}
        if self.config.json_content_key is None:
            return Success(body, provider_metadata)
        return self._json_outcome(body, provider_metadata)

    def _json_outcome(self, body: str, provider_metadata: Dict) -> ProviderOutcome:
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return TerminalFailure(FailureReason.MALFORMED_PAYLOAD, f"{self.name}: response is not JSON")

        if not isinstance(data, dict):
            return TerminalFailure(FailureReason.MALFORMED_PAYLOAD, f"{self.name}: unexpected JSON shape")

        error = data.get("error") or data.get("message")
        if error and not data.get(self.config.json_content_key):
            reason = classify_message(str(error)) or FailureReason.UNEXPECTED
            log_event(
                logger,
                logging.WARNING,
                "Provider reported an error in a 2xx body",
                event_type="provider_error_body",
                provider=self.name,
                metadata={"error": str(error)[:200], "reason": reason.value},
            )
            return failure_for(reason, str(error))

        if not data.get(self.config.json_content_key):
            return TerminalFailure(FailureReason.EMPTY_PAYLOAD, f"{self.name}: no transcript content")

        if self.config.json_language_key and data.get(self.config.json_language_key):
            provider_metadata["language"] = data[self.config.json_language_key]
        return Success(body, provider_metadata)
