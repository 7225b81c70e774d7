"""In-memory LRU cache with TTL expiry for answered queries."""

from __future__ import annotations

import asyncio
import hashlib
import re
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from datachat.models.domain import CacheEntry
from datachat.observability.logger import get_logger

logger = get_logger("query_cache")

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    return _WHITESPACE.sub(" ", query.strip().lower())


class QueryCache:
    """Capacity- and TTL-bounded map keyed by (normalized query, user).

    Entries live in an insertion-ordered map: a hit moves the entry to the
    most-recently-used end, so the first entry is always the eviction victim.
    All access happens under one lock held only for in-memory work.
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
        name: str = "query",
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._name = name
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(query: str, user_id: str = "default") -> str:
        raw = f"{user_id}:{normalize_query(query)}"
        return hashlib.md5(raw.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._is_expired(entry, now):
                del self._entries[key]
                self._misses += 1
                return None
            entry.last_access_at = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.payload

    def set(self, key: str, value: Any) -> None:
        now = self._clock()
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("cache_evicted", cache=self._name, key=evicted)
            self._entries[key] = CacheEntry(
                key=key, payload=value, created_at=now, last_access_at=now
            )

    def has(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._is_expired(entry, now)

    def clean_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("cache_swept", cache=self._name, removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("cache_cleared", cache=self._name)

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 4) if total else 0.0,
            }

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Periodically drop expired entries until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.clean_expired()

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self._ttl
