"""Pytest configuration and fixtures."""

from __future__ import annotations

from typing import List, Sequence

import pytest

from transcript_engine.extraction.backoff import BackoffPolicy
from transcript_engine.extraction.orchestrator import TranscriptExtractor
from transcript_engine.extraction.outcomes import Success
from transcript_engine.extraction.schema import SubjectKind
from transcript_engine.providers.base import ProviderAdapter

THREE_CUES = (
    "WEBVTT\n\n"
    "00:00:00.000 --> 00:00:01.000\nOne\n\n"
    "00:00:01.000 --> 00:00:02.000\nTwo\n\n"
    "00:00:02.000 --> 00:00:03.000\nThree\n"
)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records backoff delays and advances the fake clock instead of sleeping."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.clock.advance(delay)


class ScriptedAdapter(ProviderAdapter):
    """
    Returns (or raises) the scripted outcomes in order; the last one repeats.

    `cost` seconds of fake time pass on every attempt.
    """

    def __init__(
        self,
        name: str,
        outcomes: Sequence,
        kinds=(SubjectKind.VIDEO,),
        configured: bool = True,
        clock: FakeClock | None = None,
        cost: float = 0.0,
    ) -> None:
        self.name = name
        self.subject_kinds = tuple(kinds)
        self._outcomes = list(outcomes)
        self._configured = configured
        self._clock = clock
        self._cost = cost
        self.calls = 0

    def is_configured(self) -> bool:
        return self._configured

    async def attempt(self, request, deadline):
        index = min(self.calls, len(self._outcomes) - 1)
        self.calls += 1
        if self._clock is not None:
            self._clock.advance(self._cost)
        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class StaticResolver:
    """Metadata resolver double that answers immediately."""

    def __init__(self, metadata) -> None:
        self.metadata = metadata
        self.calls = 0

    async def resolve(self, subject, logger=None):
        self.calls += 1
        return self.metadata


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def make_extractor(clock, sleeper):
    def _make(adapters, resolver=None, backoff=None) -> TranscriptExtractor:
        return TranscriptExtractor(
            adapters,
            metadata_resolver=resolver,
            backoff=backoff or BackoffPolicy(),
            clock=clock,
            sleep=sleeper,
        )

    return _make


@pytest.fixture
def cue_success() -> Success:
    return Success(THREE_CUES, {"language": "en"})
