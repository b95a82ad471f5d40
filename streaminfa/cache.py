"""Size-bounded in-memory LRU cache for storage objects with per-type TTLs."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, NamedTuple

logger = logging.getLogger(__name__)

_MAX_ENTRIES = 100_000
_LIVE_MANIFEST_TTL_SECS = 1


@dataclass(frozen=True)
class CacheConfig:
    """Cache settings: size bound in bytes and TTLs in seconds."""

    enabled: bool = True
    max_size_bytes: int = 512 * 1024 * 1024
    ttl_secs: int = 300
    segment_ttl_secs: int = 3600


class CachedObject(NamedTuple):
    """A cache hit: the object body, its content type and its ETag."""

    data: bytes
    content_type: str
    etag: str


@dataclass(frozen=True)
class _Entry:
    data: bytes
    content_type: str
    etag: str
    inserted_at: float
    ttl_secs: float

    @property
    def size(self) -> int:
        return len(self.data)


class ObjectCache:
    """LRU cache bounded by total byte size, with a TTL chosen per key type.

    Objects larger than half the maximum size are never cached. ``clock``
    returns seconds from a monotonic source.
    """

    def __init__(
        self, config: CacheConfig, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.config = config
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._size = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> CachedObject | None:
        """Return the cached object, or None on a miss or expired entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("cache miss key=%s", key)
                return None
            self._entries.move_to_end(key)
            if self._clock() - entry.inserted_at > entry.ttl_secs:
                del self._entries[key]
                self._size = max(self._size - entry.size, 0)
                logger.debug("cache entry expired key=%s", key)
                return None
            logger.debug("cache hit key=%s", key)
            return CachedObject(entry.data, entry.content_type, entry.etag)

    def put(self, key: str, data: bytes, content_type: str, etag: str) -> None:
        """Cache an object, evicting least recently used entries to make room."""
        if not self.config.enabled:
            return
        data = bytes(data)
        entry_size = len(data)
        if entry_size > self.config.max_size_bytes // 2:
            return

        entry = _Entry(
            data=data,
            content_type=content_type,
            etag=etag,
            inserted_at=self._clock(),
            ttl_secs=self.ttl_for_key(key).total_seconds(),
        )

        with self._lock:
            while self._size + entry_size > self.config.max_size_bytes and self._entries:
                _, evicted = self._entries.popitem(last=False)
                self._size = max(self._size - evicted.size, 0)

            old = self._entries.pop(key, None)
            if old is not None:
                self._size = max(self._size - old.size, 0)

            if len(self._entries) >= _MAX_ENTRIES:
                _, evicted = self._entries.popitem(last=False)
                self._size = max(self._size - evicted.size, 0)

            self._entries[key] = entry
            self._size += entry_size
        logger.debug("cached object key=%s size=%d", key, entry_size)

    def invalidate(self, key: str) -> None:
        """Drop ``key`` from the cache if present."""
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is not None:
                self._size = max(self._size - entry.size, 0)

    def ttl_for_key(self, key: str) -> timedelta:
        """Return the TTL for a key based on the kind of object it names."""
        if key.endswith((".m4s", "init.mp4")):
            return timedelta(seconds=self.config.segment_ttl_secs)
        if key.endswith("master.m3u8"):
            return timedelta(seconds=self.config.ttl_secs)
        if key.endswith("media.m3u8"):
            return timedelta(seconds=_LIVE_MANIFEST_TTL_SECS)
        return timedelta(seconds=self.config.ttl_secs)

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def current_size_bytes(self) -> int:
        with self._lock:
            return self._size

    def __len__(self) -> int:
        return self.entry_count