"""
Cache Infrastructure

Two-tier cache for provider and merged results.
"""

from __future__ import annotations

from unified_events.infrastructure.cache.durable_store import (
    DurableStore,
    FileDurableStore,
    InMemoryDurableStore,
    StoredBlob,
)
from unified_events.infrastructure.cache.local_cache import CacheEntry, CacheStats, LocalCache
from unified_events.infrastructure.cache.tiered import DEFAULT_NAMESPACE, TieredCache

__all__ = [
    "CacheEntry",
    "CacheStats",
    "LocalCache",
    "DurableStore",
    "FileDurableStore",
    "InMemoryDurableStore",
    "StoredBlob",
    "TieredCache",
    "DEFAULT_NAMESPACE",
]
