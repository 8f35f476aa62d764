# transcript_engine/factory.py
"""
Wiring: settings -> adapters, metadata resolver, orchestrator.

The httpx client is owned by the caller (or by extract_transcript) and
shared by every HTTP adapter and metadata source of one engine.
"""

from __future__ import annotations

from typing import List, Optional

import httpx
from openai import AsyncOpenAI

from transcript_engine.config import EngineSettings
from transcript_engine.extraction.backoff import BackoffPolicy
from transcript_engine.extraction.orchestrator import TranscriptExtractor
from transcript_engine.extraction.schema import ExtractionRequest, ExtractionResult
from transcript_engine.metadata.cache import MetadataCache
from transcript_engine.metadata.resolver import MetadataResolver
from transcript_engine.metadata.sources import (
    MetadataSource,
    OEmbedSource,
    YouTubeDataApiSource,
    YtDlpMetadataSource,
)
from transcript_engine.providers import build_default_adapters


def build_metadata_cache(settings: EngineSettings) -> MetadataCache:
    return MetadataCache(settings.metadata_cache_size, settings.metadata_cache_ttl_seconds)


def build_metadata_resolver(
    settings: EngineSettings,
    client: httpx.AsyncClient,
    cache: Optional[MetadataCache] = None,
) -> MetadataResolver:
    sources: List[MetadataSource] = []
    if settings.youtube_api_key:
        sources.append(YouTubeDataApiSource(client, settings.youtube_api_key, settings.youtube_data_api_url))
    sources.append(OEmbedSource(client, settings.oembed_url, settings.youtube_base_url))
    sources.append(YtDlpMetadataSource(settings.youtube_base_url))
    return MetadataResolver(sources, cache=cache, timeout_seconds=settings.metadata_timeout_seconds)


def build_extractor(
    settings: EngineSettings,
    client: httpx.AsyncClient,
    openai_client: Optional[AsyncOpenAI] = None,
    cache: Optional[MetadataCache] = None,
) -> TranscriptExtractor:
    return TranscriptExtractor(
        build_default_adapters(settings, client, openai_client),
        metadata_resolver=build_metadata_resolver(settings, client, cache),
        backoff=BackoffPolicy(base_delay=settings.backoff_base_delay, max_delay=settings.backoff_max_delay),
    )


async def extract_transcript(
    request: ExtractionRequest,
    settings: Optional[EngineSettings] = None,
    cache: Optional[MetadataCache] = None,
) -> ExtractionResult:
    """
    One-shot entry point: open a client, build the default engine, extract.

    Pass a long-lived MetadataCache to share metadata between calls.
    """
    settings = settings or EngineSettings.from_env()
    async with httpx.AsyncClient(follow_redirects=True) as client:
        extractor = build_extractor(settings, client, cache=cache)
        return await extractor.extract(request)
