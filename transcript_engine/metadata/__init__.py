"""Video metadata lookup, independent of transcript success."""

from transcript_engine.metadata.cache import MetadataCache
from transcript_engine.metadata.resolver import MetadataResolver
from transcript_engine.metadata.sources import (
    MetadataLookupError,
    MetadataSource,
    OEmbedSource,
    YouTubeDataApiSource,
    YtDlpMetadataSource,
    default_thumbnail,
    parse_iso_duration,
)

__all__ = [
    "MetadataCache",
    "MetadataLookupError",
    "MetadataResolver",
    "MetadataSource",
    "OEmbedSource",
    "YouTubeDataApiSource",
    "YtDlpMetadataSource",
    "default_thumbnail",
    "parse_iso_duration",
]
