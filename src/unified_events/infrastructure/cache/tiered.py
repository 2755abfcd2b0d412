"""
Tiered Cache - local tier in front of a durable tier.

Read path (first hit wins, via ``ordered_fallback``):
    1. LocalCache
    2. DurableStore (a hit is written back to the local tier with the
       durable entry's remaining lifetime, never a fresh TTL)

Write path: both tiers. Durable failures are logged and skipped, so callers
never see ``CacheError``.

Keys are namespaced as ``"<namespace>:<key>"``. ``None`` is not cacheable.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from unified_events.shared.async_utils import ordered_fallback
from unified_events.shared.exceptions import CacheError

from .durable_store import DurableStore
from .local_cache import CacheEntry, CacheStats, LocalCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_NAMESPACE = "default"
DEFAULT_TTL = 3600.0


class TieredCache:
    """
    Two-tier cache-aside store.

    Example:
        cache = TieredCache(LocalCache(512), FileDurableStore("~/.unified-events/cache"))

        events = await cache.get_or_compute(
            key, 300, lambda: adapter.fetch(query), namespace="provider:rapidapi"
        )
        await cache.clear_namespace("provider:rapidapi")
    """

    def __init__(
        self,
        local: LocalCache,
        durable: DurableStore | None = None,
        *,
        clock: Callable[[], float] = time.time,
        default_ttl: float = DEFAULT_TTL,
    ) -> None:
        self._local = local
        self._durable = durable
        self._clock = clock
        self._default_ttl = default_ttl
        self._durable_stats = CacheStats()
        self._locks: dict[str, asyncio.Lock] = {}

    @staticmethod
    def make_key(key: str, namespace: str = DEFAULT_NAMESPACE) -> str:
        return f"{namespace}:{key}"

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get(self, key: str, *, namespace: str = DEFAULT_NAMESPACE) -> Any | None:
        """Cached value or None on miss/expiry."""
        full_key = self.make_key(key, namespace)

        async def from_local() -> CacheEntry | None:
            return self._local.get(full_key)

        async def from_durable() -> CacheEntry | None:
            return await self._durable_get(full_key)

        tier, entry = await ordered_fallback([from_local, from_durable], label=f"cache get {full_key}")
        if entry is None:
            return None
        if tier == 1:
            # Keeps the durable expiry, so the lifetime is never extended.
            self._local.set(entry)
            logger.debug(f"Durable hit for {full_key}, {entry.remaining(self._clock()):.0f}s left")
        else:
            logger.debug(f"Local hit for {full_key}")
        return entry.value

    async def _durable_get(self, full_key: str) -> CacheEntry | None:
        if self._durable is None:
            return None
        try:
            blob = await self._durable.get(full_key)
            if blob is None:
                self._durable_stats.misses += 1
                return None
            try:
                value = json.loads(blob.data.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                msg = f"Undecodable payload: {e}"
                raise CacheError(msg, key=full_key) from e
        except CacheError as e:
            self._durable_stats.errors += 1
            self._durable_stats.misses += 1
            logger.warning(f"Durable cache read failed for {full_key}, treating as miss: {e}")
            return None
        self._durable_stats.hits += 1
        return CacheEntry(key=full_key, value=value, expires_at=blob.expires_at, created_at=blob.created_at)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        *,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        """Store in both tiers. Non-positive TTLs and None values are ignored."""
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0 or value is None:
            return
        full_key = self.make_key(key, namespace)
        now = self._clock()
        self._local.set(CacheEntry(key=full_key, value=value, expires_at=now + ttl, created_at=now))

        if self._durable is None:
            return
        try:
            try:
                data = json.dumps(value).encode("utf-8")
            except (TypeError, ValueError) as e:
                msg = f"Payload is not JSON-serializable: {e}"
                raise CacheError(msg, key=full_key) from e
            await self._durable.set(full_key, data, ttl)
            self._durable_stats.writes += 1
        except CacheError as e:
            self._durable_stats.errors += 1
            logger.warning(f"Durable cache write failed for {full_key}: {e}")

    async def delete(self, key: str, *, namespace: str = DEFAULT_NAMESPACE) -> bool:
        full_key = self.make_key(key, namespace)
        removed = self._local.delete(full_key)
        if self._durable is not None:
            try:
                removed = await self._durable.delete(full_key) or removed
            except CacheError as e:
                self._durable_stats.errors += 1
                logger.warning(f"Durable cache delete failed for {full_key}: {e}")
        return removed

    # ------------------------------------------------------------------
    # Cache-aside
    # ------------------------------------------------------------------

    async def get_or_compute(
        self,
        key: str,
        ttl: float | None,
        factory: Callable[[], Awaitable[T]],
        *,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> T:
        """
        Return the cached value, or run ``factory`` and cache its result.

        Concurrent misses on the same key run the factory once. If the
        factory raises, the exception propagates and nothing is cached.
        """
        value = await self.get(key, namespace=namespace)
        if value is not None:
            return value

        full_key = self.make_key(key, namespace)
        lock = self._locks.setdefault(full_key, asyncio.Lock())
        try:
            async with lock:
                value = await self.get(key, namespace=namespace)
                if value is not None:
                    return value
                value = await factory()
                await self.set(key, value, ttl, namespace=namespace)
                return value
        finally:
            if not lock.locked():
                self._locks.pop(full_key, None)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def clear_namespace(self, namespace: str) -> int:
        """
        Evict a namespace.

        Removes every durable key under ``"<namespace>:"`` and clears the
        whole local tier. Returns the number of durable entries removed.
        """
        self._local.clear()
        if self._durable is None:
            return 0
        try:
            removed = await self._durable.delete_prefix(f"{namespace}:")
        except CacheError as e:
            self._durable_stats.errors += 1
            logger.warning(f"Durable namespace eviction failed for {namespace}: {e}")
            return 0
        logger.info(f"Cleared cache namespace {namespace}: {removed} durable entries")
        return removed

    async def cleanup_expired(self) -> int:
        removed = self._local.cleanup_expired()
        if self._durable is not None:
            try:
                removed += await self._durable.cleanup_expired()
            except CacheError as e:
                self._durable_stats.errors += 1
                logger.warning(f"Durable cleanup failed: {e}")
        return removed

    def stats(self) -> dict[str, Any]:
        return {
            "local": {**self._local.stats.to_dict(), "size": len(self._local)},
            "durable": {**self._durable_stats.to_dict(), "enabled": self._durable is not None},
        }
