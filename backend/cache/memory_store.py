"""
Memory Store Implementation

Read-through, in-memory byte cache shared by every request handler.

Features:
- Thread-safe operations with Lock (never held across an await)
- Idle-TTL expiration, lazily on access and by a periodic sweep
- LRU eviction when the total byte budget is exceeded
- Concurrent misses for one key share a single in-flight load
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 12 * 60 * 60
DEFAULT_MAX_BYTES = 256 * 1024 * 1024

Loader = Callable[[], Awaitable[bytes]]


@dataclass
class CacheEntry:
    """
    Cache entry data structure

    ``data`` is a non-owning copy of an immutable asset, so entries never
    need invalidation, only eviction.
    """
    key: str
    data: bytes
    created_at: float
    last_access: float

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def is_idle(self, now: float, ttl: float) -> bool:
        """Check if this entry has gone unused for longer than ``ttl``"""
        return now - self.last_access > ttl

    def to_summary(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "size_bytes": self.size_bytes,
            "created_at": datetime.fromtimestamp(self.created_at).isoformat(),
            "last_access": datetime.fromtimestamp(self.last_access).isoformat(),
        }


class EphemeralCache:
    """
    Thread-safe in-memory byte cache

    Features:
    - get_or_load() read-through with deduplicated loads
    - TTL on idle time (default 12h)
    - Total size limit with LRU eviction
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize memory store

        Args:
            ttl_seconds: Idle time after which an entry is dropped
            max_bytes: Upper bound on the summed size of cached payloads
            clock: Time source, injectable for tests
        """
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Future] = {}
        self._lock = Lock()
        self._ttl = ttl_seconds
        self._max_bytes = max_bytes
        self._clock = clock
        self._total_bytes = 0
        self._hits = 0
        self._misses = 0
        self._cleanup_task: Optional[asyncio.Task] = None

    # ============================================
    # Read-through access
    # ============================================

    async def get_or_load(self, key: str, loader: Loader) -> bytes:
        """
        Return cached bytes for ``key``, loading them on a miss.

        The loader runs outside the lock. While it runs, other callers for
        the same key wait on its result instead of loading again. Loader
        errors reach every waiter and nothing is cached.
        """
        with self._lock:
            data = self._lookup(key)
            if data is not None:
                self._hits += 1
                return data

            pending = self._inflight.get(key)
            owner = pending is None
            if owner:
                self._misses += 1
                pending = asyncio.get_running_loop().create_future()
                self._inflight[key] = pending

        if not owner:
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if pending.cancelled():
                    # The loading request went away; try again ourselves
                    return await self.get_or_load(key, loader)
                raise

        try:
            data = await loader()
        except asyncio.CancelledError:
            self._finish_inflight(key)
            pending.cancel()
            raise
        except Exception as e:
            self._finish_inflight(key)
            pending.set_exception(e)
            # Mark retrieved; waiters (if any) re-raise it themselves
            pending.exception()
            raise

        with self._lock:
            self._inflight.pop(key, None)
            self._insert(key, data)
        pending.set_result(data)
        return data

    def get(self, key: str) -> Optional[bytes]:
        """Return cached bytes without loading, or None."""
        with self._lock:
            data = self._lookup(key)
            if data is not None:
                self._hits += 1
            return data

    def put(self, key: str, data: bytes) -> bool:
        """Insert directly. Returns False if the payload exceeds the budget."""
        with self._lock:
            return self._insert(key, data)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._remove(key)

    def clear(self) -> int:
        """
        Clear all cache entries

        Returns:
            Number of entries deleted
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._total_bytes = 0
            return count

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_idle(self._clock(), self._ttl)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ============================================
    # Expiration
    # ============================================

    def sweep_expired(self) -> int:
        """
        Remove every entry idle longer than the TTL

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if entry.is_idle(now, self._ttl)
            ]
            for key in expired:
                self._remove(key)

        if expired:
            logger.info(f"[MediaCache] Swept {len(expired)} idle entries")
        return len(expired)

    async def start_cleanup_task(self, interval_seconds: float) -> None:
        """Start the periodic sweep"""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval_seconds))
            logger.info(f"[MediaCache] Cleanup task started (every {interval_seconds}s)")

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                self.sweep_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"[MediaCache] Cleanup failed: {e}")

    async def stop_cleanup_task(self) -> None:
        """Stop the periodic sweep"""
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            logger.info("[MediaCache] Cleanup task stopped")
        self._cleanup_task = None

    # ============================================
    # Stats
    # ============================================

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "total_entries": len(self._entries),
                "total_size_bytes": self._total_bytes,
                "total_size_mb": round(self._total_bytes / (1024 * 1024), 2),
                "max_size_mb": round(self._max_bytes / (1024 * 1024), 2),
                "usage_percent": round(self._total_bytes / self._max_bytes * 100, 1) if self._max_bytes > 0 else 0,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
                "inflight_loads": len(self._inflight),
                "ttl_hours": self._ttl / 3600,
            }

    def list_entries(self) -> list:
        """Entry summaries, most recently used first"""
        with self._lock:
            return [entry.to_summary() for entry in reversed(self._entries.values())]

    # ============================================
    # Internal helpers (assume lock held)
    # ============================================

    def _lookup(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        if entry.is_idle(now, self._ttl):
            self._remove(key)
            return None

        entry.last_access = now
        self._entries.move_to_end(key)
        return entry.data

    def _insert(self, key: str, data: bytes) -> bool:
        size = len(data)
        if size > self._max_bytes:
            logger.debug(f"[MediaCache] Not caching {key}: {size} bytes exceeds budget")
            return False

        self._remove(key)
        while self._entries and self._total_bytes + size > self._max_bytes:
            oldest_key, oldest = self._entries.popitem(last=False)
            self._total_bytes -= oldest.size_bytes
            logger.info(f"[MediaCache] LRU evicted: {oldest_key}")

        now = self._clock()
        self._entries[key] = CacheEntry(key=key, data=data, created_at=now, last_access=now)
        self._total_bytes += size
        return True

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_bytes -= entry.size_bytes
        return True

    def _finish_inflight(self, key: str) -> None:
        with self._lock:
            self._inflight.pop(key, None)
