"""In-process TTL cache for resolved indicator values."""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from indicator_hub.models import CacheEntry, MetricValue


@dataclass
class CacheStats:
    """Statistics for cache performance tracking."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Return cache hit rate as a percentage."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits / total) * 100.0

    def to_dict(self) -> dict[str, Any]:
        """Return stats as dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate_pct": round(self.hit_rate, 2),
        }


class TimeSeriesCache:
    """TTL key-value store, one entry per indicator.

    Expired entries are dropped when read; ``sweep_expired`` is available
    for callers that want to reclaim them earlier.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_expired(self, entry: CacheEntry, now_ms: int) -> bool:
        return now_ms - entry.inserted_at_epoch_ms >= self.ttl_ms

    def get(self, key: str) -> MetricValue | None:
        """Return the cached value, or None if absent or past its TTL."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            if self._is_expired(entry, self._now_ms()):
                del self._entries[key]
                self._stats.evictions += 1
                self._stats.misses += 1
                return None
            self._stats.hits += 1
            return entry.payload

    def get_entry(self, key: str) -> CacheEntry | None:
        """Like ``get`` but returns the entry with its insertion time."""
        value = self.get(key)
        if value is None:
            return None
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: MetricValue) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._now_ms())

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep_expired(self) -> int:
        """Drop all expired entries. Returns how many were removed."""
        with self._lock:
            now_ms = self._now_ms()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now_ms)]
            for key in expired:
                del self._entries[key]
            self._stats.evictions += len(expired)
            return len(expired)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(self._stats.hits, self._stats.misses, self._stats.evictions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
