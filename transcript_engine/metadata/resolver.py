# transcript_engine/metadata/resolver.py
"""
Metadata Resolver.

Runs beside the provider chain and never fails the request: sources are
tried in order, each bounded by its own timeout, and the best-effort
default is returned when none answers. Audio subjects have no lookup and
always get the default.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from transcript_engine.extraction.schema import SubjectKind, VideoMetadata
from transcript_engine.logging_core.logger import log_event
from transcript_engine.metadata.cache import MetadataCache
from transcript_engine.metadata.sources import MetadataLookupError, MetadataSource, default_thumbnail

_module_logger = logging.getLogger(__name__)


class MetadataResolver:
    def __init__(
        self,
        sources: Sequence[MetadataSource],
        cache: Optional[MetadataCache] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.sources = list(sources)
        self.cache = cache
        self.timeout_seconds = timeout_seconds

    async def resolve(self, subject, logger: Optional[logging.LoggerAdapter] = None) -> VideoMetadata:
        logger = logger or _module_logger
        subject_id = subject.subject_id

        if subject.kind != SubjectKind.VIDEO.value:
            return VideoMetadata.default(subject_id)

        if self.cache is not None:
            cached = self.cache.get(subject_id)
            if cached is not None:
                log_event(
                    logger,
                    logging.INFO,
                    "Metadata served from cache",
                    event_type="metadata_cache_hit",
                    metadata={"subject_id": subject_id},
                )
                return cached

        for source in self.sources:
            try:
                metadata = await asyncio.wait_for(source.fetch(subject_id, self.timeout_seconds), self.timeout_seconds)
            except (MetadataLookupError, asyncio.TimeoutError) as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "Metadata source failed",
                    event_type="metadata_source_failed",
                    metadata={"source": source.name, "error": str(exc) or type(exc).__name__},
                )
                continue
            except Exception as exc:  # pylint: disable=broad-except
                log_event(
                    logger,
                    logging.ERROR,
                    "Unexpected error in metadata source",
                    event_type="metadata_source_failed",
                    metadata={"source": source.name, "error": f"{type(exc).__name__}: {exc}"},
                    exc_info=True,
                )
                continue

            if not metadata.thumbnail:
                metadata = metadata.model_copy(update={"thumbnail": default_thumbnail(subject_id)})
            if self.cache is not None:
                self.cache.put(subject_id, metadata)
            return metadata

        log_event(
            logger,
            logging.WARNING,
            "No metadata source answered; using defaults",
            event_type="metadata_default",
            metadata={"subject_id": subject_id, "sources": [source.name for source in self.sources]},
        )
        return VideoMetadata.default(subject_id)
