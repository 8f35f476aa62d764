# transcript_engine/providers/openai_stt.py
"""
Speech-to-text strategy for recorded audio clips.
Single responsibility: send the blob to OpenAI audio transcriptions and
return the verbose_json segments as the raw payload.

The SDK's own retry loop is disabled; retries belong to the orchestrator.
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from transcript_engine.extraction.deadline import Deadline
from transcript_engine.extraction.outcomes import (
    Failure,
    ProviderOutcome,
    RetryableFailure,
    Success,
    TerminalFailure,
)
from transcript_engine.extraction.schema import ExtractionRequest, FailureReason, SubjectKind
from transcript_engine.providers.base import ProviderAdapter

DEFAULT_MODEL = "whisper-1"

# The API infers the container from the file name.
MIME_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/flac": "flac",
    "video/mp4": "mp4",
    "video/webm": "webm",
}


def filename_for(mime_type: str) -> str:
    base = (mime_type or "").split(";")[0].strip().lower()
    return f"recording.{MIME_EXTENSIONS.get(base, 'webm')}"


def classify_openai_error(exc: Exception) -> Failure:
    """Map an OpenAI SDK exception to a typed failure."""
    detail = f"{type(exc).__name__}: {exc}"
    # APITimeoutError subclasses APIConnectionError, so it is checked first.
    if isinstance(exc, openai.APITimeoutError):
        return RetryableFailure(FailureReason.TIMEOUT, detail)
    if isinstance(exc, openai.APIConnectionError):
        return RetryableFailure(FailureReason.NETWORK_ERROR, detail)
    if isinstance(exc, openai.RateLimitError):
        return RetryableFailure(FailureReason.RATE_LIMITED, detail)
    if isinstance(exc, openai.InternalServerError):
        return RetryableFailure(FailureReason.SERVER_ERROR, detail)
    if isinstance(exc, (openai.AuthenticationError, openai.NotFoundError)):
        return TerminalFailure(FailureReason.NOT_CONFIGURED, detail)
    if isinstance(exc, openai.PermissionDeniedError):
        return TerminalFailure(FailureReason.RESTRICTED, detail)
    if isinstance(exc, (openai.BadRequestError, openai.UnprocessableEntityError)):
        return TerminalFailure(FailureReason.MALFORMED_PAYLOAD, detail)
    return TerminalFailure(FailureReason.UNEXPECTED, detail)


def _as_dict(response: Any) -> Dict[str, Any]:
    if hasattr(response, "model_dump"):
        return response.model_dump()
    if isinstance(response, dict):
        return response
    return {
        "text": getattr(response, "text", ""),
        "language": getattr(response, "language", None),
        "duration": getattr(response, "duration", None),
        "segments": getattr(response, "segments", None) or [],
    }


def confidence_from_segments(segments: Any) -> Optional[float]:
    """exp(mean avg_logprob) when every segment reports one, else None."""
    if not segments:
        return None
    logprobs = [segment.get("avg_logprob") for segment in segments if isinstance(segment, dict)]
    if not logprobs or any(value is None for value in logprobs):
        return None
    confidence = math.exp(sum(logprobs) / len(logprobs))
    if 0.0 <= confidence <= 1.0:
        return round(confidence, 4)
    return None


class OpenAITranscriptionAdapter(ProviderAdapter):
    name = "openai-stt"
    subject_kinds = (SubjectKind.AUDIO,)

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 90.0,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout_seconds = timeout_seconds

    def is_configured(self) -> bool:
        return self._client is not None

    async def attempt(self, request: ExtractionRequest, deadline: Deadline) -> ProviderOutcome:
        if self._client is None:
            return TerminalFailure(FailureReason.NOT_CONFIGURED, "OPENAI_API_KEY is not set")

        subject = request.subject
        kwargs: Dict[str, Any] = {
            "model": self._model,
            "file": (filename_for(subject.mime_type), subject.blob, subject.mime_type),
            "response_format": "verbose_json",
            "timeout": max(deadline.bound(self._timeout_seconds), 0.001),
        }
        if request.options.wants_language:
            kwargs["language"] = request.options.language

        try:
            response = await self._client.audio.transcriptions.create(**kwargs)
        except openai.OpenAIError as exc:
            return classify_openai_error(exc)

        data = _as_dict(response)
        segments = [
            {"start": item.get("start", 0.0), "end": item.get("end"), "text": item.get("text", "")}
            for item in data.get("segments") or []
            if isinstance(item, dict)
        ]
        if not segments and (data.get("text") or "").strip():
            duration = data.get("duration")
            segments = [{"start": 0.0, "end": float(duration) if duration else None, "text": data["text"]}]
        if not segments:
            return TerminalFailure(FailureReason.EMPTY_PAYLOAD, "speech-to-text returned no speech")

        metadata: Dict[str, Any] = {"model": self._model}
        if data.get("language"):
            metadata["language"] = data["language"]
        confidence = confidence_from_segments(data.get("segments"))
        if confidence is not None:
            metadata["confidence"] = confidence
        return Success(json.dumps({"segments": segments}, ensure_ascii=False), metadata)
