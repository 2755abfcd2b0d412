"""
Durable Store - keyed byte store with TTL that survives restarts.

Two implementations of the ``DurableStore`` protocol:

- ``FileDurableStore``: one JSON file per key under a cache directory
  (``~/.unified-events/cache`` by default). File I/O runs in a worker thread.
- ``InMemoryDurableStore``: dict-backed, for tests and ``cache_dir=":memory:"``.

Every failure surfaces as ``CacheError``; the tiered cache downgrades it to a
miss.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from unified_events.shared.exceptions import CacheError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredBlob:
    """Raw bytes plus absolute timestamps (seconds since the epoch)."""

    data: bytes
    expires_at: float
    created_at: float


class DurableStore(Protocol):
    """Interface of the durable tier."""

    async def get(self, key: str) -> StoredBlob | None: ...

    async def set(self, key: str, data: bytes, ttl: float) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def delete_prefix(self, prefix: str) -> int: ...

    async def cleanup_expired(self) -> int: ...


# =============================================================================
# File-backed store
# =============================================================================


class FileDurableStore:
    """
    One JSON document per key.

    File layout:
        {cache_dir}/{sha256(key)}.json
            {"key": ..., "expires_at": ..., "created_at": ..., "data": <base64>}

    Writes go through a temp file and ``os.replace``. Concurrent writers to
    the same key are last-write-wins.
    """

    def __init__(self, directory: str | Path, *, clock: Callable[[], float] = time.time) -> None:
        self._dir = Path(directory).expanduser()
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self._dir

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"

    # ------------------------------------------------------------------
    # Sync implementations (run via asyncio.to_thread)
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> dict | None:
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            msg = f"Cannot read cache file {path.name}: {e}"
            raise CacheError(msg) from e
        if not isinstance(doc, dict):
            msg = f"Cache file {path.name} is not a JSON object"
            raise CacheError(msg)
        return doc

    def _get_sync(self, key: str) -> StoredBlob | None:
        path = self._path_for(key)
        doc = self._read(path)
        if doc is None or doc.get("key") != key:
            return None
        try:
            expires_at = float(doc["expires_at"])
            data = base64.b64decode(doc["data"])
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Corrupt cache entry for {key}: {e}"
            raise CacheError(msg, key=key) from e
        if self._clock() >= expires_at:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                msg = f"Cannot remove expired cache entry {key}: {e}"
                raise CacheError(msg, key=key) from e
            return None
        return StoredBlob(data=data, expires_at=expires_at, created_at=float(doc.get("created_at", 0.0)))

    def _set_sync(self, key: str, data: bytes, ttl: float) -> None:
        now = self._clock()
        doc = {
            "key": key,
            "expires_at": now + ttl,
            "created_at": now,
            "data": base64.b64encode(data).decode("ascii"),
        }
        path = self._path_for(key)
        tmp = path.with_name(f"{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(doc), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            msg = f"Cannot write cache entry {key}: {e}"
            raise CacheError(msg, key=key) from e

    def _delete_sync(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            msg = f"Cannot delete cache entry {key}: {e}"
            raise CacheError(msg, key=key) from e

    def _scan(self, predicate: Callable[[dict], bool]) -> int:
        """Delete every entry whose document matches ``predicate``."""
        if not self._dir.exists():
            return 0
        removed = 0
        try:
            for path in self._dir.glob("*.json"):
                try:
                    doc = self._read(path)
                except CacheError as e:
                    logger.warning(f"Removing unreadable cache file: {e}")
                    path.unlink(missing_ok=True)
                    removed += 1
                    continue
                if doc is not None and predicate(doc):
                    path.unlink(missing_ok=True)
                    removed += 1
        except OSError as e:
            msg = f"Cannot scan cache directory {self._dir}: {e}"
            raise CacheError(msg) from e
        return removed

    # ------------------------------------------------------------------
    # Async interface
    # ------------------------------------------------------------------

    async def get(self, key: str) -> StoredBlob | None:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, data: bytes, ttl: float) -> None:
        await asyncio.to_thread(self._set_sync, key, data, ttl)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, key)

    async def delete_prefix(self, prefix: str) -> int:
        return await asyncio.to_thread(self._scan, lambda doc: str(doc.get("key", "")).startswith(prefix))

    async def cleanup_expired(self) -> int:
        now = self._clock()
        return await asyncio.to_thread(self._scan, lambda doc: _is_expired(doc, now))


def _is_expired(doc: dict, now: float) -> bool:
    try:
        return now >= float(doc.get("expires_at", 0.0))
    except (TypeError, ValueError):
        return True


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryDurableStore:
    """Dict-backed store with the same semantics as ``FileDurableStore``."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, StoredBlob] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> StoredBlob | None:
        with self._lock:
            blob = self._data.get(key)
            if blob is None:
                return None
            if self._clock() >= blob.expires_at:
                del self._data[key]
                return None
            return blob

    async def set(self, key: str, data: bytes, ttl: float) -> None:
        now = self._clock()
        with self._lock:
            self._data[key] = StoredBlob(data=bytes(data), expires_at=now + ttl, created_at=now)

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._data if k.startswith(prefix)]
            for k in doomed:
                del self._data[k]
            return len(doomed)

    async def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            doomed = [k for k, blob in self._data.items() if now >= blob.expires_at]
            for k in doomed:
                del self._data[k]
            return len(doomed)

    def __len__(self) -> int:
        return len(self._data)
