"""
Local Cache

Bounded in-process tier with a TTL per entry.
Uses cachetools.TLRUCache: LRU eviction plus a time-to-use computed from each
entry's own ``expires_at``.

Features:
- Per-entry expiry (entries written back from the durable tier keep their
  remaining lifetime)
- LRU eviction when max size reached
- Thread-safe via threading.Lock
- Injectable clock for tests
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cachetools import TLRUCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """One cached value with absolute timestamps (seconds since the epoch)."""

    key: str
    value: Any
    expires_at: float
    created_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    writes: int = 0
    errors: int = 0

    @property
    def total_requests(self) -> int:
        """Total cache requests."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Cache hit rate (0-1)."""
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.expirations = 0
        self.writes = 0
        self.errors = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 3),
            "expirations": self.expirations,
            "writes": self.writes,
            "errors": self.errors,
        }


def _entry_ttu(_key: str, entry: CacheEntry, _now: float) -> float:
    return entry.expires_at


class LocalCache:
    """
    Process-local cache tier.

    Example:
        cache = LocalCache(max_size=512)
        cache.set(CacheEntry("events:abc", payload, expires_at=now + 300, created_at=now))
        entry = cache.get("events:abc")
    """

    def __init__(
        self,
        max_size: int = 512,
        timer: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize cache.

        Args:
            max_size: Maximum number of entries
            timer: Clock returning seconds since the epoch
        """
        self._timer = timer
        self._cache: TLRUCache[str, CacheEntry] = TLRUCache(maxsize=max_size, ttu=_entry_ttu, timer=timer)
        self._lock = threading.Lock()
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key``; expired entries are purged."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and entry.is_expired(self._timer()):
                self._cache.pop(key, None)
                self._stats.expirations += 1
                entry = None
            if entry is None:
                self._stats.misses += 1
            else:
                self._stats.hits += 1
            return entry

    def set(self, entry: CacheEntry) -> None:
        if entry.is_expired(self._timer()):
            return
        with self._lock:
            self._cache[entry.key] = entry
            self._stats.writes += 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        with self._lock:
            removed = len(self._cache.expire())
            self._stats.expirations += removed
            return removed

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        """Check if key is in cache (may be expired)."""
        return key in self._cache
