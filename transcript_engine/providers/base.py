# transcript_engine/providers/base.py
"""Uniform provider adapter contract."""

from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Tuple

from transcript_engine.extraction.deadline import Deadline
from transcript_engine.extraction.outcomes import ProviderOutcome
from transcript_engine.extraction.schema import ExtractionRequest, SubjectKind


class AttemptCancelled(Exception):
    """Raised inside a worker thread once its attempt has been abandoned."""


class BlockingCalls:
    """
    Runs blocking library calls in worker threads, one at a time per extraction.

    Calls are keyed by the extraction's Deadline. The callable receives a
    threading.Event that is set when the awaiting coroutine is cancelled
    (attempt timeout or caller cancellation); it should check the event
    between I/O steps and raise AttemptCancelled. A thread cannot be killed,
    so its future is kept until it finishes and settle() lets the
    orchestrator wait for it before the next attempt starts.
    """

    def __init__(self) -> None:
        self._inflight: Dict[Deadline, asyncio.Future] = {}

    def busy(self, deadline: Deadline) -> bool:
        return deadline in self._inflight

    async def run(self, deadline: Deadline, func: Callable[..., Any], *args: Any) -> Any:
        if self.busy(deadline):
            raise RuntimeError("previous blocking call is still running")
        cancel = threading.Event()
        future = asyncio.get_running_loop().run_in_executor(None, func, *args, cancel)
        self._inflight[deadline] = future
        future.add_done_callback(lambda done: self._release(deadline, done))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            cancel.set()
            raise

    def _release(self, deadline: Deadline, future: asyncio.Future) -> None:
        if not future.cancelled():
            # an abandoned call's exception is never awaited
            future.exception()
        if self._inflight.get(deadline) is future:
            del self._inflight[deadline]

    async def settle(self, deadline: Deadline) -> bool:
        future = self._inflight.get(deadline)
        if future is None:
            return True
        try:
            await asyncio.wait_for(asyncio.shield(future), deadline.remaining())
        except Exception:  # pylint: disable=broad-except
            # a timeout here, or the call's own error; its attempt already reported an outcome
            pass
        return future.done()


class ProviderAdapter(ABC):
    """One strategy for obtaining a transcript.

    Implementations must not raise: every failure mode is reported as a
    RetryableFailure or TerminalFailure outcome.
    """

    name: str = "provider"
    subject_kinds: Tuple[SubjectKind, ...] = (SubjectKind.VIDEO,)

    def supports(self, subject) -> bool:
        """Whether this adapter applies to the subject at all."""
        return SubjectKind(subject.kind) in self.subject_kinds

    def is_configured(self) -> bool:
        """False when credentials or optional dependencies are missing."""
        return True

    @abstractmethod
    async def attempt(self, request: ExtractionRequest, deadline: Deadline) -> ProviderOutcome:
        """Make one attempt for the request.

        Args:
            request: The caller's request (subject + options).
            deadline: Shared request budget; network timeouts must be bounded by it.

        Returns:
            Success with the raw payload, or a typed failure.
        """

    async def settle(self, deadline: Deadline) -> bool:
        """Wait, within the budget, for work left over from a cancelled attempt.

        Returns False when that work is still running; no new attempt may
        start until this returns True.
        """
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
