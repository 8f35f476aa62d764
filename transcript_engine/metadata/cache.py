# transcript_engine/metadata/cache.py
"""Bounded, short-TTL metadata cache keyed by subject id."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional, Tuple

from transcript_engine.extraction.schema import VideoMetadata

DEFAULT_MAX_ENTRIES = 30
DEFAULT_TTL_SECONDS = 45.0


class MetadataCache:
    """
    In-process cache shared by concurrent requests.

    Entries expire `ttl_seconds` after insertion and are dropped on read.
    At capacity the oldest insertion is evicted first. One lock guards every
    read and write; critical sections never await.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, VideoMetadata]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[VideoMetadata]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            expires_at, metadata = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return metadata

    def put(self, key: str, metadata: VideoMetadata) -> None:
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            self._purge_expired(now)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
            self._entries[key] = (now + self.ttl_seconds, metadata)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
