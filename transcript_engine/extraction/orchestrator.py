# transcript_engine/extraction/orchestrator.py
"""
Extraction Orchestrator.

Responsibilities:
- Run the metadata lookup concurrently with the provider chain
- Try applicable adapters one at a time, in the injected priority order
- Retry retryable failures with backoff, advance on terminal ones
- Enforce the per-attempt timeout and the total request budget
- Always return an ExtractionResult; the caller never sees an exception

This is the single place that decides retry vs advance vs halt.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import httpx

from transcript_engine.extraction.attempt_log import AttemptLog
from transcript_engine.extraction.backoff import BackoffPolicy
from transcript_engine.extraction.deadline import Clock, Deadline
from transcript_engine.extraction.normalizer import (
    build_transcript,
    classify_unavailable,
    render_display_text,
    render_fallback_note,
)
from transcript_engine.extraction.outcomes import (
    ProviderOutcome,
    RetryableFailure,
    Success,
    TerminalFailure,
)
from transcript_engine.extraction.schema import (
    ExtractionRequest,
    ExtractionResult,
    ExtractionStatus,
    FailureReason,
    Transcript,
    VideoMetadata,
)
from transcript_engine.logging_core.logger import get_logger, log_event
from transcript_engine.parsing import parse_payload

# Extra wall-clock time granted to the metadata task after the chain ends.
METADATA_JOIN_GRACE_SECONDS = 2.0

Sleep = Callable[[float], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptExtractor:
    """
    Provider chain state machine:
    Idle -> TryingProvider(i) -> {Success | Advancing | RetryingSameProvider} -> ... -> Exhausted
    """

    def __init__(
        self,
        adapters: Sequence,
        metadata_resolver=None,
        backoff: Optional[BackoffPolicy] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.adapters = list(adapters)
        self.metadata_resolver = metadata_resolver
        self.backoff = backoff or BackoffPolicy()
        self._clock = clock
        self._sleep = sleep
        self._now = now

    @property
    def provider_names(self) -> List[str]:
        return [adapter.name for adapter in self.adapters]

    async def extract(self, request: ExtractionRequest, request_id: Optional[str] = None) -> ExtractionResult:
        """
        Run one extraction request to completion.

        Args:
            request: Subject and options; not retained after the call.
            request_id: Correlation id for logs (generated when omitted).

        Returns:
            ExtractionResult with status extracted or unavailable. Only
            cancellation (asyncio.CancelledError) propagates.
        """
        request_id = request_id or uuid.uuid4().hex
        logger = get_logger(request_id)
        subject = request.subject
        deadline = Deadline.from_ms(request.options.total_budget_ms, self._clock)
        log = AttemptLog()

        log_event(
            logger,
            logging.INFO,
            "Starting transcript extraction",
            event_type="extraction_start",
            metadata={
                "subject_kind": subject.kind,
                "subject_id": subject.subject_id,
                "budget_ms": request.options.total_budget_ms,
                "max_retries_per_provider": request.options.max_retries_per_provider,
            },
        )

        metadata_task: Optional[asyncio.Task] = None
        if self.metadata_resolver is not None:
            metadata_task = asyncio.create_task(self.metadata_resolver.resolve(subject, logger))

        transcript: Optional[Transcript] = None
        budget_exceeded = False
        try:
            transcript, budget_exceeded = await self._run_chain(request, deadline, log, logger)
        except asyncio.CancelledError:
            if metadata_task is not None:
                metadata_task.cancel()
            raise
        except Exception as exc:  # pylint: disable=broad-except
            log_event(
                logger,
                logging.ERROR,
                "Unhandled exception in provider chain",
                event_type="extraction_error",
                metadata={"exception": f"{type(exc).__name__}: {exc}"},
                exc_info=True,
            )

        metadata = await self._join_metadata(metadata_task, deadline, logger)
        result = self._build_result(request, request_id, transcript, metadata, log, budget_exceeded)

        log_event(
            logger,
            logging.INFO if result.extracted else logging.WARNING,
            "Transcript extraction finished",
            event_type="extraction_complete",
            provider=transcript.provider if transcript else None,
            metadata={
                "status": result.status.value,
                "attempts": len(result.attempts),
                "unavailable_reason": result.unavailable_reason.value if result.unavailable_reason else None,
                "budget_exceeded": budget_exceeded,
                "elapsed_ms": round(deadline.elapsed() * 1000, 1),
            },
        )
        return result

    async def _run_chain(
        self,
        request: ExtractionRequest,
        deadline: Deadline,
        log: AttemptLog,
        logger: logging.LoggerAdapter,
    ) -> Tuple[Optional[Transcript], bool]:
        """Returns (transcript or None, budget_exceeded)."""
        subject = request.subject
        max_attempts = request.options.max_retries_per_provider

        for adapter in self.adapters:
            if not adapter.supports(subject):
                continue
            if not adapter.is_configured():
                log_event(
                    logger,
                    logging.INFO,
                    "Provider not configured; skipping",
                    event_type="provider_skipped",
                    provider=adapter.name,
                )
                continue

            for attempt_number in range(1, max_attempts + 1):
                if deadline.expired:
                    self._log_budget_exceeded(logger, adapter.name, deadline)
                    return None, True

                log_event(
                    logger,
                    logging.INFO,
                    "Attempting provider",
                    event_type="attempt_start",
                    provider=adapter.name,
                    metadata={"attempt": attempt_number},
                )
                started_at = self._now()
                with deadline.stopwatch() as end:
                    outcome = await self._attempt(adapter, request, deadline, logger)
                    transcript: Optional[Transcript] = None
                    if isinstance(outcome, Success):
                        transcript, outcome = self._parse(outcome, adapter.name)
                    duration_ms = end()

                log.record(adapter.name, attempt_number, started_at, duration_ms, outcome)

                if transcript is not None:
                    log_event(
                        logger,
                        logging.INFO,
                        "Provider returned a transcript",
                        event_type="attempt_success",
                        provider=adapter.name,
                        metadata={
                            "attempt": attempt_number,
                            "segments": len(transcript.segments),
                            "duration_ms": round(duration_ms, 1),
                        },
                    )
                    return transcript, False

                if not await self._settle(adapter, deadline, logger):
                    return None, True

                if isinstance(outcome, TerminalFailure):
                    log_event(
                        logger,
                        logging.WARNING,
                        "Terminal failure; advancing to next provider",
                        event_type="attempt_terminal",
                        provider=adapter.name,
                        metadata={"attempt": attempt_number, "reason": outcome.reason.value, "detail": outcome.detail},
                    )
                    break

                log_event(
                    logger,
                    logging.WARNING,
                    "Retryable failure",
                    event_type="attempt_retryable",
                    provider=adapter.name,
                    metadata={"attempt": attempt_number, "reason": outcome.reason.value, "detail": outcome.detail},
                )
                if attempt_number == max_attempts:
                    break

                delay = self.backoff.delay_for(attempt_number)
                if not deadline.allows(delay):
                    self._log_budget_exceeded(logger, adapter.name, deadline)
                    return None, True
                log_event(
                    logger,
                    logging.INFO,
                    "Backing off before retry",
                    event_type="backoff",
                    provider=adapter.name,
                    metadata={"delay_seconds": delay, "next_attempt": attempt_number + 1},
                )
                await self._sleep(delay)

        return None, False

    async def _attempt(
        self,
        adapter,
        request: ExtractionRequest,
        deadline: Deadline,
        logger: logging.LoggerAdapter,
    ) -> ProviderOutcome:
        """One adapter call bounded by min(attempt timeout, remaining budget)."""
        timeout = deadline.bound(request.options.attempt_timeout_ms / 1000.0)
        try:
            outcome = await asyncio.wait_for(adapter.attempt(request, deadline), timeout)
        except asyncio.TimeoutError:
            return RetryableFailure(FailureReason.TIMEOUT, f"attempt exceeded {timeout:.1f}s")
        except (OSError, httpx.TransportError) as exc:
            return RetryableFailure(FailureReason.NETWORK_ERROR, f"{type(exc).__name__}: {exc}")
        except Exception as exc:  # pylint: disable=broad-except
            log_event(
                logger,
                logging.ERROR,
                "Adapter raised instead of returning an outcome",
                event_type="attempt_terminal",
                provider=adapter.name,
                metadata={"exception": f"{type(exc).__name__}: {exc}"},
                exc_info=True,
            )
            return TerminalFailure(FailureReason.UNEXPECTED, f"{type(exc).__name__}: {exc}")

        if not isinstance(outcome, (Success, RetryableFailure, TerminalFailure)):
            return TerminalFailure(FailureReason.UNEXPECTED, f"adapter returned {type(outcome).__name__}")
        return outcome

    @staticmethod
    def _parse(outcome: Success, provider: str) -> Tuple[Optional[Transcript], ProviderOutcome]:
        """Parse a raw payload; empty or malformed payloads become terminal failures."""
        try:
            segments = parse_payload(outcome.raw_payload)
            if not segments:
                return None, TerminalFailure(FailureReason.EMPTY_PAYLOAD, "payload contained no segments")
            return build_transcript(segments, provider, outcome.provider_metadata), outcome
        except ValueError as exc:
            return None, TerminalFailure(FailureReason.MALFORMED_PAYLOAD, str(exc)[:300])
        except Exception as exc:  # pylint: disable=broad-except
            # hostile payloads can still trip the parsers (recursion, overflow)
            return None, TerminalFailure(FailureReason.MALFORMED_PAYLOAD, f"{type(exc).__name__}: {exc}"[:300])

    async def _settle(self, adapter, deadline: Deadline, logger: logging.LoggerAdapter) -> bool:
        """Wait for blocking work a cancelled attempt left behind; False once the budget is gone."""
        if await adapter.settle(deadline):
            return True
        self._log_budget_exceeded(logger, adapter.name, deadline)
        return False

    async def _join_metadata(
        self,
        task: Optional[asyncio.Task],
        deadline: Deadline,
        logger: logging.LoggerAdapter,
    ) -> Optional[VideoMetadata]:
        if task is None:
            return None
        try:
            return await asyncio.wait_for(task, deadline.remaining() + METADATA_JOIN_GRACE_SECONDS)
        except asyncio.TimeoutError:
            reason = "metadata lookup outlived the request budget"
        except Exception as exc:  # pylint: disable=broad-except
            reason = f"{type(exc).__name__}: {exc}"
        log_event(
            logger,
            logging.WARNING,
            "Metadata unavailable; using defaults",
            event_type="metadata_default",
            metadata={"reason": reason},
        )
        return None

    def _build_result(
        self,
        request: ExtractionRequest,
        request_id: str,
        transcript: Optional[Transcript],
        metadata: Optional[VideoMetadata],
        log: AttemptLog,
        budget_exceeded: bool,
    ) -> ExtractionResult:
        subject = request.subject
        attempts = log.attempts
        if metadata is None and self.metadata_resolver is not None:
            metadata = VideoMetadata.default(subject.subject_id)

        if transcript is not None:
            return ExtractionResult(
                request_id=request_id,
                status=ExtractionStatus.EXTRACTED,
                transcript=transcript,
                metadata=metadata,
                attempts=attempts,
                display_text=render_display_text(transcript, request.options.include_timestamps),
            )

        reason = classify_unavailable(attempts)
        return ExtractionResult(
            request_id=request_id,
            status=ExtractionStatus.UNAVAILABLE,
            metadata=metadata,
            attempts=attempts,
            unavailable_reason=reason,
            budget_exceeded=budget_exceeded,
            fallback_note=render_fallback_note(
                subject,
                metadata,
                attempts,
                reason,
                budget_exceeded=budget_exceeded,
                now=self._now(),
            ),
        )

    @staticmethod
    def _log_budget_exceeded(logger: logging.LoggerAdapter, provider: str, deadline: Deadline) -> None:
        log_event(
            logger,
            logging.WARNING,
            "Request budget exhausted; halting provider chain",
            event_type="budget_exceeded",
            provider=provider,
            metadata={
                "elapsed_ms": round(deadline.elapsed() * 1000, 1),
                "budget_ms": round(deadline.budget_seconds * 1000, 1),
            },
        )


# High-Level Intent
# The orchestrator owns the retry/advance/halt decisions and nothing else.
# Adapters report typed outcomes, parsers turn payloads into segments, the
# normalizer builds the transcript or the fallback note.
#
# Data Flow
# extract(request)
# -> start metadata task
# -> for each applicable adapter, up to max_retries_per_provider attempts:
#    check budget -> attempt (wait_for) -> parse on success -> record attempt
#    terminal: advance / retryable: backoff (if the budget allows) and retry
# -> join metadata -> build ExtractionResult
#
# Edge Cases & Failure Scenarios
# Adapter raises: mapped to a typed failure, chain continues.
# Success with an empty or malformed payload: terminal for that provider.
# Budget exhausted before an attempt or a backoff: chain halts, budget_exceeded.
# Chain crashes: logged at ERROR, result is unavailable with the attempts so far.
# Caller cancels: CancelledError propagates, the metadata task is cancelled,
# no further attempts start.
