"""Tests for the OpenAI speech-to-text adapter."""

from __future__ import annotations

import asyncio
import json
import math
from types import SimpleNamespace

import httpx
import openai
import pytest

from transcript_engine.extraction.deadline import Deadline
from transcript_engine.extraction.outcomes import RetryableFailure, Success, TerminalFailure
from transcript_engine.extraction.schema import FailureReason
from transcript_engine.extraction.subjects import audio_request
from transcript_engine.providers.openai_stt import (
    OpenAITranscriptionAdapter,
    classify_openai_error,
    confidence_from_segments,
    filename_for,
)

API_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")


def api_error(cls, status):
    return cls("upstream said no", response=httpx.Response(status, request=API_REQUEST), body=None)


class FakeTranscriptions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def fake_client(transcriptions):
    return SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions))


def run_attempt(adapter, language="auto", mime_type="audio/ogg"):
    request = audio_request(b"OggS-bytes", mime_type=mime_type, language=language)
    return asyncio.run(adapter.attempt(request, Deadline(30.0)))


class TestHelpers:
    @pytest.mark.parametrize(
        "mime, name",
        [("audio/ogg", "recording.ogg"), ("audio/webm;codecs=opus", "recording.webm"), ("audio/mpeg", "recording.mp3"), ("", "recording.webm")],
    )
    def test_filename_for(self, mime, name):
        assert filename_for(mime) == name

    def test_confidence_from_segments(self):
        segments = [{"avg_logprob": -0.1}, {"avg_logprob": -0.3}]

        assert confidence_from_segments(segments) == round(math.exp(-0.2), 4)

    @pytest.mark.parametrize("segments", [None, [], [{"avg_logprob": -0.1}, {"text": "no score"}], [{"avg_logprob": 0.5}]])
    def test_confidence_missing_or_out_of_range(self, segments):
        assert confidence_from_segments(segments) is None


class TestClassifyOpenAIError:
    @pytest.mark.parametrize(
        "exc, kind, reason",
        [
            (openai.APITimeoutError(request=API_REQUEST), RetryableFailure, FailureReason.TIMEOUT),
            (openai.APIConnectionError(request=API_REQUEST), RetryableFailure, FailureReason.NETWORK_ERROR),
            (api_error(openai.RateLimitError, 429), RetryableFailure, FailureReason.RATE_LIMITED),
            (api_error(openai.InternalServerError, 500), RetryableFailure, FailureReason.SERVER_ERROR),
            (api_error(openai.AuthenticationError, 401), TerminalFailure, FailureReason.NOT_CONFIGURED),
            (api_error(openai.PermissionDeniedError, 403), TerminalFailure, FailureReason.RESTRICTED),
            (api_error(openai.BadRequestError, 400), TerminalFailure, FailureReason.MALFORMED_PAYLOAD),
            (openai.OpenAIError("odd"), TerminalFailure, FailureReason.UNEXPECTED),
        ],
    )
    def test_mapping(self, exc, kind, reason):
        outcome = classify_openai_error(exc)

        assert isinstance(outcome, kind)
        assert outcome.reason is reason


class TestOpenAITranscriptionAdapter:
    def test_not_configured_without_client(self):
        adapter = OpenAITranscriptionAdapter(None)

        assert adapter.is_configured() is False
        outcome = run_attempt(adapter)
        assert isinstance(outcome, TerminalFailure)
        assert outcome.reason is FailureReason.NOT_CONFIGURED

    def test_segments_become_payload(self):
        transcriptions = FakeTranscriptions(
            {
                "text": "Hello there. General Kenobi.",
                "language": "english",
                "segments": [
                    {"start": 0.0, "end": 1.2, "text": " Hello there.", "avg_logprob": -0.2},
                    {"start": 1.2, "end": 2.6, "text": " General Kenobi.", "avg_logprob": -0.2},
                ],
            }
        )

        outcome = run_attempt(OpenAITranscriptionAdapter(fake_client(transcriptions)), language="en")

        assert isinstance(outcome, Success)
        assert json.loads(outcome.raw_payload) == {
            "segments": [
                {"start": 0.0, "end": 1.2, "text": " Hello there."},
                {"start": 1.2, "end": 2.6, "text": " General Kenobi."},
            ]
        }
        assert outcome.provider_metadata == {
            "model": "whisper-1",
            "language": "english",
            "confidence": round(math.exp(-0.2), 4),
        }

        call = transcriptions.calls[0]
        assert call["model"] == "whisper-1"
        assert call["file"] == ("recording.ogg", b"OggS-bytes", "audio/ogg")
        assert call["response_format"] == "verbose_json"
        assert call["language"] == "en"
        assert 0 < call["timeout"] <= 30.0

    def test_auto_language_is_not_sent(self):
        transcriptions = FakeTranscriptions({"text": "hi", "segments": [{"start": 0, "end": 1, "text": "hi"}]})

        run_attempt(OpenAITranscriptionAdapter(fake_client(transcriptions)))

        assert "language" not in transcriptions.calls[0]

    def test_text_without_segments(self):
        transcriptions = FakeTranscriptions({"text": "just text", "duration": 3.5})

        outcome = run_attempt(OpenAITranscriptionAdapter(fake_client(transcriptions)))

        assert json.loads(outcome.raw_payload) == {"segments": [{"start": 0.0, "end": 3.5, "text": "just text"}]}
        assert "confidence" not in outcome.provider_metadata

    def test_silence_is_empty_payload(self):
        transcriptions = FakeTranscriptions({"text": "  ", "segments": []})

        outcome = run_attempt(OpenAITranscriptionAdapter(fake_client(transcriptions)))

        assert isinstance(outcome, TerminalFailure)
        assert outcome.reason is FailureReason.EMPTY_PAYLOAD

    def test_sdk_error_is_classified(self):
        transcriptions = FakeTranscriptions(error=api_error(openai.RateLimitError, 429))

        outcome = run_attempt(OpenAITranscriptionAdapter(fake_client(transcriptions)))

        assert isinstance(outcome, RetryableFailure)
        assert outcome.reason is FailureReason.RATE_LIMITED
