"""Tests for the provider chain state machine."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import THREE_CUES, ScriptedAdapter, StaticResolver
from transcript_engine.extraction.outcomes import RetryableFailure, Success, TerminalFailure
from transcript_engine.extraction.schema import (
    ExtractionOptions,
    ExtractionRequest,
    ExtractionStatus,
    FailureReason,
    OutcomeKind,
    SubjectKind,
    UnavailableReason,
    VideoMetadata,
    VideoSubject,
)
from transcript_engine.extraction.subjects import audio_request
from transcript_engine.providers.base import ProviderAdapter


def video(**options) -> ExtractionRequest:
    return ExtractionRequest(subject=VideoSubject(id="dQw4w9WgXcQ"), options=ExtractionOptions(**options))


def run(extractor, request):
    return asyncio.run(extractor.extract(request, request_id="test-request"))


def attempt_trace(result):
    return [(a.provider, a.attempt_number, a.outcome, a.reason) for a in result.attempts]


class TestExampleScenarios:
    def test_terminal_captions_then_audio_success(self, make_extractor):
        """captions has no captions, audio transcription succeeds with 3 segments."""
        captions = ScriptedAdapter("captions", [TerminalFailure(FailureReason.NO_CAPTIONS, "no captions")])
        audio = ScriptedAdapter("audio-transcription", [Success(THREE_CUES)])

        result = run(make_extractor([captions, audio]), video())

        assert result.status is ExtractionStatus.EXTRACTED
        assert len(result.attempts) == 2
        assert result.transcript.provider == "audio-transcription"
        assert [s.text for s in result.transcript.segments] == ["One", "Two", "Three"]
        assert result.transcript.raw_text == "One Two Three"

    def test_always_retryable_two_providers(self, make_extractor, sleeper):
        """2 providers x 2 retries -> exactly 4 attempts, unavailable."""
        first = ScriptedAdapter("first", [RetryableFailure(FailureReason.SERVER_ERROR)])
        second = ScriptedAdapter("second", [RetryableFailure(FailureReason.RATE_LIMITED)])

        result = run(make_extractor([first, second]), video(max_retries_per_provider=2))

        assert result.status is ExtractionStatus.UNAVAILABLE
        assert len(result.attempts) == 4
        assert [a.provider for a in result.attempts] == ["first", "first", "second", "second"]
        assert sleeper.delays == [1.0, 1.0]
        assert result.unavailable_reason is UnavailableReason.TECHNICAL
        assert result.budget_exceeded is False


class TestChainRules:
    def test_terminal_failure_is_never_retried(self, make_extractor):
        flaky = ScriptedAdapter("p", [TerminalFailure(FailureReason.RESTRICTED), Success(THREE_CUES)])
        backup = ScriptedAdapter("q", [Success(THREE_CUES)])

        result = run(make_extractor([flaky, backup]), video(max_retries_per_provider=5))

        assert flaky.calls == 1
        assert [a.provider for a in result.attempts] == ["p", "q"]

    def test_success_short_circuits_chain(self, make_extractor):
        first = ScriptedAdapter("first", [Success(THREE_CUES)])
        second = ScriptedAdapter("second", [Success(THREE_CUES)])

        result = run(make_extractor([first, second]), video())

        assert second.calls == 0
        assert result.attempts[0].outcome is OutcomeKind.SUCCESS

    def test_retry_then_success_on_same_provider(self, make_extractor, sleeper):
        adapter = ScriptedAdapter(
            "p",
            [RetryableFailure(FailureReason.TIMEOUT), RetryableFailure(FailureReason.NETWORK_ERROR), Success(THREE_CUES)],
        )

        result = run(make_extractor([adapter]), video(max_retries_per_provider=3))

        assert result.extracted
        assert [a.attempt_number for a in result.attempts] == [1, 2, 3]
        assert sleeper.delays == [1.0, 2.0]

    def test_unsupported_and_unconfigured_adapters_are_skipped(self, make_extractor):
        audio_only = ScriptedAdapter("audio-only", [Success(THREE_CUES)], kinds=(SubjectKind.AUDIO,))
        missing_key = ScriptedAdapter("missing-key", [Success(THREE_CUES)], configured=False)
        fallback = ScriptedAdapter("fallback", [Success(THREE_CUES)])

        result = run(make_extractor([audio_only, missing_key, fallback]), video())

        assert audio_only.calls == 0
        assert missing_key.calls == 0
        assert [a.provider for a in result.attempts] == ["fallback"]

    def test_audio_subject_uses_audio_adapters(self, make_extractor):
        captions = ScriptedAdapter("captions", [Success(THREE_CUES)])
        stt = ScriptedAdapter("stt", [Success(THREE_CUES)], kinds=(SubjectKind.AUDIO,))

        result = run(make_extractor([captions, stt]), audio_request(b"\x00\x01", "audio/webm"))

        assert captions.calls == 0
        assert result.transcript.provider == "stt"

    def test_no_applicable_adapter_is_unavailable(self, make_extractor):
        captions = ScriptedAdapter("captions", [Success(THREE_CUES)])

        result = run(make_extractor([captions]), audio_request(b"\x00", "audio/ogg"))

        assert result.status is ExtractionStatus.UNAVAILABLE
        assert result.attempts == []
        assert result.fallback_note


class TestPayloadHandling:
    def test_empty_payload_is_terminal_for_that_provider(self, make_extractor):
        empty = ScriptedAdapter("empty", [Success("   "), Success(THREE_CUES)])
        backup = ScriptedAdapter("backup", [Success(THREE_CUES)])

        result = run(make_extractor([empty, backup]), video())

        assert empty.calls == 1
        assert result.attempts[0].outcome is OutcomeKind.TERMINAL_FAILURE
        assert result.attempts[0].reason is FailureReason.EMPTY_PAYLOAD
        assert result.transcript.provider == "backup"

    def test_payload_without_text_is_empty(self, make_extractor):
        silent = ScriptedAdapter("silent", [Success("WEBVTT\n\n00:00:01.000 --> 00:00:02.000\n<c></c>\n")])

        result = run(make_extractor([silent]), video())

        assert result.attempts[0].reason is FailureReason.EMPTY_PAYLOAD
        assert result.unavailable_reason is UnavailableReason.TECHNICAL

    def test_malformed_payload_is_terminal(self, make_extractor):
        broken = ScriptedAdapter("broken", [Success('{"events": [')])

        result = run(make_extractor([broken]), video())

        assert broken.calls == 1
        assert result.attempts[0].reason is FailureReason.MALFORMED_PAYLOAD

    def test_hostile_json_moves_to_next_provider(self, make_extractor):
        nested = ScriptedAdapter("nested", [Success("[" * 200_000)])
        backup = ScriptedAdapter("backup", [Success(THREE_CUES)])

        result = run(make_extractor([nested, backup]), video())

        assert result.status is ExtractionStatus.EXTRACTED
        assert result.transcript.provider == "backup"
        assert result.attempts[0].reason is FailureReason.MALFORMED_PAYLOAD

    @pytest.mark.parametrize(
        "payload",
        [
            '{"events": [{"tStartMs": 0, "segs": [{"utf8": 5}, {"utf8": null}]}]}',
            '{"events": [{"tStartMs": 1' + "0" * 400 + ', "segs": [{"utf8": "big"}]}]}',
            "WEBVTT\n\n" + "9" * 400 + ":00:00.000 --> 00:00:01.000\nhuge\n",
        ],
    )
    def test_odd_values_do_not_escape_the_chain(self, make_extractor, payload):
        odd = ScriptedAdapter("odd", [Success(payload)])
        backup = ScriptedAdapter("backup", [Success(THREE_CUES)])

        result = run(make_extractor([odd, backup]), video())

        assert result.status is ExtractionStatus.EXTRACTED
        assert result.transcript.provider == "backup"
        assert result.attempts[0].outcome is OutcomeKind.TERMINAL_FAILURE

    def test_provider_confidence_and_language_are_attached(self, make_extractor):
        adapter = ScriptedAdapter("stt", [Success(THREE_CUES, {"confidence": 0.8, "language": "de"})])

        result = run(make_extractor([adapter]), video())

        assert result.transcript.confidence == 0.8
        assert result.transcript.language == "de"

    def test_confidence_is_not_fabricated(self, make_extractor):
        adapter = ScriptedAdapter("captions", [Success(THREE_CUES)])

        result = run(make_extractor([adapter]), video())

        assert result.transcript.confidence is None
        assert "confidence" not in result.to_payload()["transcript"]


class TestBudget:
    def test_budget_halts_mid_retry(self, make_extractor, clock):
        slow = ScriptedAdapter("slow", [RetryableFailure(FailureReason.TIMEOUT)], clock=clock, cost=20.0)
        never = ScriptedAdapter("never", [Success(THREE_CUES)])

        result = run(make_extractor([slow, never]), video(max_retries_per_provider=5, total_budget_ms=45_000))

        # attempts start at t=0, 21, 43; the 4s backoff after t=63 would cross the budget
        assert slow.calls == 3
        assert never.calls == 0
        assert result.status is ExtractionStatus.UNAVAILABLE
        assert result.budget_exceeded is True
        assert "time allowed" in result.fallback_note

    def test_budget_checked_before_next_provider(self, make_extractor, clock):
        hog = ScriptedAdapter("hog", [TerminalFailure(FailureReason.NO_CAPTIONS)], clock=clock, cost=50.0)
        next_one = ScriptedAdapter("next", [Success(THREE_CUES)])

        result = run(make_extractor([hog, next_one]), video(total_budget_ms=45_000))

        assert next_one.calls == 0
        assert result.budget_exceeded is True
        assert result.unavailable_reason is UnavailableReason.NO_CAPTIONS

    def test_leftover_work_that_outlives_budget_ends_the_chain(self, make_extractor):
        class Lingering(ScriptedAdapter):
            async def settle(self, deadline):
                self.settled = True
                return False

        lingering = Lingering("lingering", [RetryableFailure(FailureReason.TIMEOUT)])
        never = ScriptedAdapter("never", [Success(THREE_CUES)])

        result = run(make_extractor([lingering, never]), video(max_retries_per_provider=3))

        assert lingering.calls == 1
        assert lingering.settled is True
        assert never.calls == 0
        assert result.budget_exceeded is True

    def test_attempt_timeout_is_retryable(self, make_extractor):
        class Hanging(ProviderAdapter):
            name = "hanging"

            async def attempt(self, request, deadline):
                await asyncio.sleep(5)

        result = run(make_extractor([Hanging()]), video(max_retries_per_provider=1, attempt_timeout_ms=20))

        assert result.attempts[0].outcome is OutcomeKind.RETRYABLE_FAILURE
        assert result.attempts[0].reason is FailureReason.TIMEOUT


class TestNoThrow:
    @pytest.mark.parametrize(
        "exc, outcome, reason",
        [
            (ConnectionResetError("reset"), OutcomeKind.RETRYABLE_FAILURE, FailureReason.NETWORK_ERROR),
            (httpx.ConnectError("refused"), OutcomeKind.RETRYABLE_FAILURE, FailureReason.NETWORK_ERROR),
            (RuntimeError("bug"), OutcomeKind.TERMINAL_FAILURE, FailureReason.UNEXPECTED),
            (KeyError("missing"), OutcomeKind.TERMINAL_FAILURE, FailureReason.UNEXPECTED),
        ],
    )
    def test_adapter_exceptions_become_outcomes(self, make_extractor, exc, outcome, reason):
        adapter = ScriptedAdapter("raiser", [exc])

        result = run(make_extractor([adapter]), video(max_retries_per_provider=1))

        assert result.status is ExtractionStatus.UNAVAILABLE
        assert result.attempts[0].outcome is outcome
        assert result.attempts[0].reason is reason

    def test_non_outcome_return_value_is_unexpected(self, make_extractor):
        adapter = ScriptedAdapter("weird", ["not an outcome"])

        result = run(make_extractor([adapter]), video())

        assert result.attempts[0].reason is FailureReason.UNEXPECTED

    def test_chain_crash_keeps_attempts_gathered_so_far(self, make_extractor):
        class Exploding(ProviderAdapter):
            name = "exploding"

            def supports(self, subject):
                raise RuntimeError("supports() blew up")

            async def attempt(self, request, deadline):
                raise AssertionError("never attempted")

        first = ScriptedAdapter("first", [TerminalFailure(FailureReason.NOT_FOUND)])

        result = run(make_extractor([first, Exploding()]), video())

        assert result.status is ExtractionStatus.UNAVAILABLE
        assert [a.provider for a in result.attempts] == ["first"]
        assert result.unavailable_reason is UnavailableReason.NOT_FOUND

    def test_mixed_outcomes_always_return_a_result(self, make_extractor):
        adapters = [
            ScriptedAdapter("a", [OSError("disk"), RetryableFailure(FailureReason.SERVER_ERROR)]),
            ScriptedAdapter("b", [ValueError("bad"), Success("")]),
            ScriptedAdapter("c", [Success("[1, 2, 3]")]),
        ]

        result = run(make_extractor(adapters), video())

        assert result.status is ExtractionStatus.UNAVAILABLE
        assert len(result.attempts) == 4


class TestDeterminism:
    def test_same_outcomes_same_attempt_log(self, make_extractor):
        def script():
            return [
                ScriptedAdapter("a", [RetryableFailure(FailureReason.RATE_LIMITED), TerminalFailure(FailureReason.NO_CAPTIONS)]),
                ScriptedAdapter("b", [RetryableFailure(FailureReason.SERVER_ERROR)]),
                ScriptedAdapter("c", [Success(THREE_CUES)]),
            ]

        first = run(make_extractor(script()), video(max_retries_per_provider=3))
        second = run(make_extractor(script()), video(max_retries_per_provider=3))

        assert attempt_trace(first) == attempt_trace(second)
        assert [a.provider for a in first.attempts] == ["a", "a", "b", "b", "b", "c"]


class TestMetadataAndResult:
    def test_metadata_is_merged_when_unavailable(self, make_extractor):
        metadata = VideoMetadata(title="Talk", author="Channel", duration="4:13", source="oembed")
        resolver = StaticResolver(metadata)
        adapter = ScriptedAdapter("captions", [TerminalFailure(FailureReason.RESTRICTED, "private video")])

        result = run(make_extractor([adapter], resolver=resolver), video())

        assert resolver.calls == 1
        assert result.metadata == metadata
        assert result.unavailable_reason is UnavailableReason.RESTRICTED
        assert "# Talk" in result.fallback_note
        assert "private" in result.fallback_note

    def test_metadata_is_merged_when_extracted(self, make_extractor):
        metadata = VideoMetadata(title="Talk", author="Channel", duration="4:13")
        adapter = ScriptedAdapter("captions", [Success(THREE_CUES)])

        result = run(make_extractor([adapter], resolver=StaticResolver(metadata)), video())

        assert result.metadata.title == "Talk"
        assert result.display_text.startswith("[00:00] One")

    def test_failing_resolver_falls_back_to_default(self, make_extractor):
        class BrokenResolver:
            async def resolve(self, subject, logger=None):
                raise RuntimeError("metadata down")

        adapter = ScriptedAdapter("captions", [Success(THREE_CUES)])

        result = run(make_extractor([adapter], resolver=BrokenResolver()), video())

        assert result.extracted
        assert result.metadata.title == "Unknown dQw4w9WgXcQ"

    def test_plain_text_display_when_timestamps_disabled(self, make_extractor):
        adapter = ScriptedAdapter("captions", [Success(THREE_CUES)])

        result = run(make_extractor([adapter]), video(include_timestamps=False))

        assert result.display_text == "One Two Three"

    def test_payload_uses_external_field_names(self, make_extractor):
        adapter = ScriptedAdapter("captions", [Success(THREE_CUES)])

        payload = run(make_extractor([adapter]), video()).to_payload()

        assert payload["status"] == "extracted"
        assert payload["transcript"]["rawText"] == "One Two Three"
        assert payload["attempts"][0]["outcome"] == "success"
        assert "durationMs" in payload["attempts"][0]
        assert payload["requestId"] == "test-request"


class TestCancellation:
    def test_cancel_stops_chain_and_metadata(self, make_extractor):
        state = {}

        class Hanging(ProviderAdapter):
            name = "hanging"
            calls = 0

            async def attempt(self, request, deadline):
                Hanging.calls += 1
                state["attempt"].set()
                await asyncio.Event().wait()

        class HangingResolver:
            cancelled = False

            async def resolve(self, subject, logger=None):
                state["metadata"].set()
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    HangingResolver.cancelled = True
                    raise

        extractor = make_extractor([Hanging()], resolver=HangingResolver())

        async def scenario():
            state["attempt"] = asyncio.Event()
            state["metadata"] = asyncio.Event()
            task = asyncio.create_task(extractor.extract(video(max_retries_per_provider=3)))
            await state["attempt"].wait()
            await state["metadata"].wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            for _ in range(3):
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert Hanging.calls == 1
        assert HangingResolver.cancelled is True
