"""Transcript Acquisition Engine: video or audio in, transcript (or a classified fallback) out."""

from transcript_engine.config import EngineSettings
from transcript_engine.extraction.schema import (
    AudioSubject,
    ExtractionOptions,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStatus,
    VideoSubject,
)
from transcript_engine.extraction.subjects import InvalidSubjectError, audio_request, video_request
from transcript_engine.factory import build_extractor, extract_transcript

__version__ = "0.1.0"

__all__ = [
    "AudioSubject",
    "EngineSettings",
    "ExtractionOptions",
    "ExtractionRequest",
    "ExtractionResult",
    "ExtractionStatus",
    "InvalidSubjectError",
    "VideoSubject",
    "audio_request",
    "build_extractor",
    "extract_transcript",
    "video_request",
]
