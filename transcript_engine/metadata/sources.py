# transcript_engine/metadata/sources.py
"""
Metadata lookups for video subjects.

Responsibility:
- YouTube Data API v3 (title, channel, ISO-8601 duration, best thumbnail); needs an API key
- oEmbed (title, author, thumbnail); keyless, no duration
- yt-dlp info extraction (title, channel, duration); keyless, slowest

Every source raises MetadataLookupError on failure so the resolver can move on.
No media is downloaded.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Dict, Optional

import httpx
import yt_dlp

from transcript_engine.extraction.schema import VideoMetadata
from transcript_engine.parsing.formatters import format_duration
from transcript_engine.providers.http import BROWSER_HEADERS

ISO_DURATION_RE = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")

YDL_PARAMS = {
    "quiet": True,
    "no_warnings": True,
    "extract_flat": False,
    "skip_download": True,
    "noplaylist": True,
}


class MetadataLookupError(Exception):
    """A metadata source could not describe the video."""


def parse_iso_duration(value: str) -> Optional[int]:
    """PT4M13S -> 253 seconds; None when the value is not an ISO-8601 duration."""
    match = ISO_DURATION_RE.match(value or "")
    if not match or not any(match.groups()):
        return None
    days, hours, minutes, seconds = (int(group or 0) for group in match.groups())
    return ((days * 24 + hours) * 60 + minutes) * 60 + seconds


def default_thumbnail(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"


def best_thumbnail(thumbnails: Dict[str, Any]) -> Optional[str]:
    for size in THUMBNAIL_PREFERENCE:
        entry = thumbnails.get(size) or {}
        if entry.get("url"):
            return entry["url"]
    return None


class MetadataSource:
    name = "source"

    async def fetch(self, video_id: str, timeout: float) -> VideoMetadata:
        raise NotImplementedError


class YouTubeDataApiSource(MetadataSource):
    name = "youtube-data-api"

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str = "https://www.googleapis.com/youtube/v3") -> None:
        self._client = client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def fetch(self, video_id: str, timeout: float) -> VideoMetadata:
        try:
            response = await self._client.get(
                f"{self._base_url}/videos",
                params={"id": video_id, "part": "snippet,contentDetails", "key": self._api_key},
                timeout=timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise MetadataLookupError(f"YouTube Data API: {type(exc).__name__}") from exc

        items = data.get("items") or []
        if not items:
            raise MetadataLookupError("YouTube Data API: video not found")

        snippet = items[0].get("snippet") or {}
        details = items[0].get("contentDetails") or {}
        seconds = parse_iso_duration(details.get("duration", ""))
        return VideoMetadata(
            title=snippet.get("title") or f"Unknown {video_id}",
            author=snippet.get("channelTitle") or "Unknown",
            duration=format_duration(seconds) if seconds is not None else "Unknown",
            thumbnail=best_thumbnail(snippet.get("thumbnails") or {}),
            source=self.name,
        )


class OEmbedSource(MetadataSource):
    name = "oembed"

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str = "https://www.youtube.com/oembed",
        watch_base_url: str = "https://www.youtube.com",
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._watch_base_url = watch_base_url.rstrip("/")

    async def fetch(self, video_id: str, timeout: float) -> VideoMetadata:
        try:
            response = await self._client.get(
                self._endpoint,
                params={"url": f"{self._watch_base_url}/watch?v={video_id}", "format": "json"},
                headers=BROWSER_HEADERS,
                timeout=timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise MetadataLookupError(f"oEmbed: {type(exc).__name__}") from exc

        if not data.get("title"):
            raise MetadataLookupError("oEmbed: response has no title")
        return VideoMetadata(
            title=data["title"],
            author=data.get("author_name") or "Unknown",
            duration="Unknown",
            thumbnail=data.get("thumbnail_url"),
            source=self.name,
        )


class YtDlpMetadataSource(MetadataSource):
    name = "yt-dlp"

    def __init__(self, watch_base_url: str = "https://www.youtube.com") -> None:
        self._watch_base_url = watch_base_url.rstrip("/")

    def _extract(self, video_id: str, timeout: float) -> Dict[str, Any]:
        # the worker thread outlives wait_for, so bound its sockets too
        with yt_dlp.YoutubeDL(dict(YDL_PARAMS, socket_timeout=max(timeout, 1.0))) as ydl:
            info = ydl.extract_info(f"{self._watch_base_url}/watch?v={video_id}", download=False)
        if not info:
            raise yt_dlp.DownloadError("No info returned")
        return info

    async def fetch(self, video_id: str, timeout: float) -> VideoMetadata:
        try:
            info = await asyncio.wait_for(asyncio.to_thread(self._extract, video_id, timeout), timeout)
        except yt_dlp.DownloadError as exc:
            raise MetadataLookupError(f"yt-dlp: {str(exc)[:200]}") from exc

        duration = info.get("duration")
        return VideoMetadata(
            title=info.get("title") or f"Unknown {video_id}",
            author=info.get("channel") or info.get("uploader") or "Unknown",
            duration=format_duration(int(duration)) if duration else "Unknown",
            thumbnail=info.get("thumbnail"),
            source=self.name,
        )
