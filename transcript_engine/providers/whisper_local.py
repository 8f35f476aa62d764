# transcript_engine/providers/whisper_local.py
"""
Whisper strategy: audio extraction + local transcription.
Single responsibility: manage the audio lifecycle and the model invocation.

Video subjects are downloaded with yt-dlp (bestaudio, no post-processing);
audio blobs are written to a temp file. Whisper and torch are an optional
extra, imported on first use; the loaded model is cached per adapter.
"""

from __future__ import annotations

import importlib.util
import json
import os
import tempfile
import threading
from typing import Any, Dict, Optional

import yt_dlp

from transcript_engine.extraction.deadline import Deadline
from transcript_engine.extraction.outcomes import (
    Failure,
    ProviderOutcome,
    RetryableFailure,
    Success,
    TerminalFailure,
    failure_for,
)
from transcript_engine.extraction.schema import ExtractionRequest, FailureReason, SubjectKind
from transcript_engine.providers.base import AttemptCancelled, BlockingCalls, ProviderAdapter
from transcript_engine.providers.http import classify_message
from transcript_engine.providers.openai_stt import confidence_from_segments, filename_for

DEFAULT_MODEL = "base"
DEFAULT_SOCKET_TIMEOUT = 30.0
MIN_SOCKET_TIMEOUT = 1.0

YDL_AUDIO_PARAMS = {
    "quiet": True,
    "no_warnings": True,
    "noplaylist": True,
    "noprogress": True,
    "format": "bestaudio/best",
}


def whisper_available() -> bool:
    return importlib.util.find_spec("whisper") is not None


def classify_download_error(exc: BaseException) -> Failure:
    """Map a yt-dlp DownloadError (free text) to a typed failure."""
    message = str(exc)
    reason = classify_message(message)
    if reason is None:
        return RetryableFailure(FailureReason.NETWORK_ERROR, message[:300])
    return failure_for(reason, message[:300])


def classify_os_error(exc: OSError) -> Failure:
    """Socket-level errors are transient; missing tools and filesystem errors are not."""
    detail = f"{type(exc).__name__}: {exc}"[:300]
    if isinstance(exc, TimeoutError):
        return RetryableFailure(FailureReason.TIMEOUT, detail)
    if isinstance(exc, ConnectionError):
        return RetryableFailure(FailureReason.NETWORK_ERROR, detail)
    if isinstance(exc, (FileNotFoundError, PermissionError)):
        # ffmpeg, model weights or the temp dir are missing or unusable
        return TerminalFailure(FailureReason.NOT_CONFIGURED, detail)
    return TerminalFailure(FailureReason.UNEXPECTED, detail)


def download_audio(
    video_url: str,
    target_dir: str,
    cancel: Optional[threading.Event] = None,
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT,
) -> str:
    """Download the best audio stream into target_dir and return its path.

    The download aborts at the next progress tick once `cancel` is set.
    """

    def check_cancelled(_progress: Dict[str, Any]) -> None:
        if cancel is not None and cancel.is_set():
            raise yt_dlp.utils.DownloadCancelled("attempt cancelled")

    params = dict(
        YDL_AUDIO_PARAMS,
        outtmpl=os.path.join(target_dir, "audio.%(ext)s"),
        socket_timeout=socket_timeout,
        progress_hooks=[check_cancelled],
    )
    with yt_dlp.YoutubeDL(params) as ydl:
        info = ydl.extract_info(video_url, download=True)
        if not info:
            raise yt_dlp.utils.DownloadError("No info returned")
        path = ydl.prepare_filename(info)
    if not os.path.exists(path):
        raise yt_dlp.utils.DownloadError("Audio download produced no file")
    return path


class LocalWhisperAdapter(ProviderAdapter):
    name = "audio-transcription"
    subject_kinds = (SubjectKind.VIDEO, SubjectKind.AUDIO)

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        enabled: bool = True,
        base_url: str = "https://www.youtube.com",
    ) -> None:
        self._model_name = model_name
        self._enabled = enabled
        self._base_url = base_url.rstrip("/")
        self._model: Any = None
        self._model_lock = threading.Lock()
        self._calls = BlockingCalls()

    def is_configured(self) -> bool:
        return self._enabled and whisper_available()

    def _load_model(self) -> Any:
        with self._model_lock:
            if self._model is None:
                import torch
                import whisper

                device = "cuda" if torch.cuda.is_available() else "cpu"
                self._model = whisper.load_model(self._model_name, device=device)
            return self._model

    def _transcribe(
        self, request: ExtractionRequest, socket_timeout: float, cancel: threading.Event
    ) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if request.options.wants_language:
            options["language"] = request.options.language

        with tempfile.TemporaryDirectory(prefix="transcript-engine-") as tmpdir:
            subject = request.subject
            if subject.kind == SubjectKind.AUDIO.value:
                audio_path = os.path.join(tmpdir, filename_for(subject.mime_type))
                with open(audio_path, "wb") as handle:
                    handle.write(subject.blob)
            else:
                audio_path = download_audio(
                    f"{self._base_url}/watch?v={subject.id}", tmpdir, cancel, socket_timeout
                )

            # model.transcribe cannot be interrupted once it starts
            if cancel.is_set():
                raise AttemptCancelled("transcription skipped")
            model = self._load_model()
            return model.transcribe(audio_path, **options)

    async def attempt(self, request: ExtractionRequest, deadline: Deadline) -> ProviderOutcome:
        if not self._enabled:
            return TerminalFailure(FailureReason.NOT_CONFIGURED, "local Whisper is disabled")
        if not whisper_available():
            return TerminalFailure(FailureReason.NOT_CONFIGURED, "openai-whisper is not installed")

        socket_timeout = max(deadline.bound(DEFAULT_SOCKET_TIMEOUT), MIN_SOCKET_TIMEOUT)
        try:
            result = await self._calls.run(deadline, self._transcribe, request, socket_timeout)
        except yt_dlp.utils.DownloadError as exc:
            return classify_download_error(exc)
        except ImportError as exc:
            return TerminalFailure(FailureReason.NOT_CONFIGURED, f"{type(exc).__name__}: {exc}")
        except OSError as exc:
            return classify_os_error(exc)

        raw_segments = result.get("segments") or []
        segments = [
            {"start": item.get("start", 0.0), "end": item.get("end"), "text": item.get("text", "")}
            for item in raw_segments
            if isinstance(item, dict)
        ]
        if not segments and (result.get("text") or "").strip():
            segments = [{"start": 0.0, "end": None, "text": result["text"]}]
        if not segments:
            return TerminalFailure(FailureReason.EMPTY_PAYLOAD, "Whisper returned empty transcript")

        metadata: Dict[str, Any] = {"model": self._model_name}
        if result.get("language"):
            metadata["language"] = result["language"]
        confidence: Optional[float] = confidence_from_segments(raw_segments)
        if confidence is not None:
            metadata["confidence"] = confidence
        return Success(json.dumps({"segments": segments}, ensure_ascii=False), metadata)

    async def settle(self, deadline: Deadline) -> bool:
        return await self._calls.settle(deadline)
