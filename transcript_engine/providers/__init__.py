# transcript_engine/providers/__init__.py
"""
Provider adapters and the default chain.

PROVIDER_PRIORITY is static: cheapest and most reliable caption sources
first, full audio transcription last. Deployments can disable a provider
(missing credential, ENABLE_LOCAL_WHISPER=false) but not reorder the chain.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import httpx
from openai import AsyncOpenAI

from transcript_engine.config import EngineSettings
from transcript_engine.providers.base import ProviderAdapter
from transcript_engine.providers.caption_track import (
    HttpProviderConfig,
    HttpTranscriptAdapter,
    supadata_config,
    timedtext_config,
)
from transcript_engine.providers.openai_stt import OpenAITranscriptionAdapter
from transcript_engine.providers.page_scrape import PageScrapeAdapter
from transcript_engine.providers.transcript_api import TranscriptApiAdapter
from transcript_engine.providers.whisper_local import LocalWhisperAdapter, whisper_available

PROVIDER_PRIORITY: Tuple[str, ...] = (
    "transcript-api",
    "caption-track",
    "page-scrape",
    "supadata",
    "openai-stt",
    "audio-transcription",
)


@dataclass(frozen=True)
class ProviderStatus:
    name: str
    subjects: Tuple[str, ...]
    configured: bool
    detail: str = ""


def build_openai_client(settings: EngineSettings, http_client: Optional[httpx.AsyncClient] = None) -> Optional[AsyncOpenAI]:
    """AsyncOpenAI with SDK retries disabled, or None without a key."""
    if not settings.openai_api_key:
        return None
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        max_retries=0,
        http_client=http_client,
    )


def build_default_adapters(
    settings: EngineSettings,
    client: httpx.AsyncClient,
    openai_client: Optional[AsyncOpenAI] = None,
) -> List[ProviderAdapter]:
    """Instantiate every adapter in PROVIDER_PRIORITY order."""
    timeout = settings.attempt_timeout_seconds
    adapters: List[ProviderAdapter] = [
        TranscriptApiAdapter(),
        HttpTranscriptAdapter(timedtext_config(settings.youtube_base_url, timeout), client),
        PageScrapeAdapter(client, settings.youtube_base_url, timeout),
        HttpTranscriptAdapter(supadata_config(settings.supadata_api_key, settings.supadata_base_url, timeout), client),
        OpenAITranscriptionAdapter(
            openai_client if openai_client is not None else build_openai_client(settings, client),
            model=settings.openai_stt_model,
            timeout_seconds=settings.extended_timeout_ms / 1000.0,
        ),
        LocalWhisperAdapter(
            model_name=settings.whisper_model,
            enabled=settings.enable_local_whisper,
            base_url=settings.youtube_base_url,
        ),
    ]
    names = tuple(adapter.name for adapter in adapters)
    if names != PROVIDER_PRIORITY:
        raise RuntimeError(f"provider chain {names} does not match {PROVIDER_PRIORITY}")
    return adapters


def list_provider_status(settings: EngineSettings) -> List[ProviderStatus]:
    """Chain order with each provider's configuration state. Makes no network calls."""
    if not settings.enable_local_whisper:
        whisper_detail = "disabled (ENABLE_LOCAL_WHISPER=false)"
    elif not whisper_available():
        whisper_detail = "openai-whisper not installed (pip install transcript-engine[whisper])"
    else:
        whisper_detail = f"model {settings.whisper_model}"

    return [
        ProviderStatus("transcript-api", ("video",), True, "youtube-transcript-api"),
        ProviderStatus("caption-track", ("video",), True, f"{settings.youtube_base_url}/api/timedtext"),
        ProviderStatus("page-scrape", ("video",), True, f"{settings.youtube_base_url}/watch"),
        ProviderStatus(
            "supadata",
            ("video",),
            bool(settings.supadata_api_key),
            settings.supadata_base_url if settings.supadata_api_key else "SUPADATA_API_KEY not set",
        ),
        ProviderStatus(
            "openai-stt",
            ("audio",),
            bool(settings.openai_api_key),
            settings.openai_stt_model if settings.openai_api_key else "OPENAI_API_KEY not set",
        ),
        ProviderStatus(
            "audio-transcription",
            ("video", "audio"),
            settings.enable_local_whisper and whisper_available(),
            whisper_detail,
        ),
    ]


__all__ = [
    "PROVIDER_PRIORITY",
    "HttpProviderConfig",
    "HttpTranscriptAdapter",
    "LocalWhisperAdapter",
    "OpenAITranscriptionAdapter",
    "PageScrapeAdapter",
    "ProviderAdapter",
    "ProviderStatus",
    "TranscriptApiAdapter",
    "build_default_adapters",
    "build_openai_client",
    "list_provider_status",
]
