"""Per-user cache of assembled comparisons.

An entry is fresh while ``now - calculated_at < ttl``; stale entries are
misses and are dropped lazily (and by the periodic purge of the memory
backend). Writes replace whole entries; there is no per-entry TTL.
"""

from __future__ import annotations

import asyncio
import json
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from contextlib import suppress
from datetime import UTC, datetime

from pydantic import ValidationError

from rankinsight.cache import redis as redis_cache
from rankinsight.core.config import settings
from rankinsight.core.exceptions import CacheUnavailableError
from rankinsight.core.logging import get_logger
from rankinsight.schemas.comparison import CacheMetrics, UserComparison

logger = get_logger(__name__)

KEY_PREFIX = "user_comparison:"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def comparison_key(user_id: str) -> str:
    return f"{KEY_PREFIX}{user_id}"


class ComparisonCache(ABC):
    """TTL-bounded store of ``UserComparison`` keyed by user id."""

    backend_name = "abstract"

    def __init__(self, ttl_seconds: int | None = None, clock: Clock = utcnow):
        self.ttl_seconds = settings.COMPARISON_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.clock = clock
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _record(self, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def _record_evictions(self, count: int) -> None:
        if count:
            with self._stats_lock:
                self._evictions += count

    def is_fresh(self, comparison: UserComparison) -> bool:
        age = (self.clock() - comparison.calculated_at).total_seconds()
        return age < self.ttl_seconds

    def stamp(self, comparison: UserComparison) -> UserComparison:
        """Copy of ``comparison`` with ``calculated_at`` set to now."""
        return comparison.model_copy(update={"calculated_at": self.clock()})

    @abstractmethod
    def get(self, user_id: str) -> UserComparison | None:
        """Fresh cached comparison, or None."""
        pass

    @abstractmethod
    def set(self, user_id: str, comparison: UserComparison) -> UserComparison:
        """Store ``comparison`` with a fresh ``calculated_at``; returns the stored value."""
        pass

    @abstractmethod
    def invalidate_user_comparison(self, user_id: str) -> None:
        """Drop one user's entry. Idempotent."""
        pass

    @abstractmethod
    def invalidate_all_comparisons(self) -> int:
        """Drop every entry. Returns how many were removed."""
        pass

    @abstractmethod
    def entry_count(self) -> int:
        pass

    def metrics(self) -> CacheMetrics:
        with self._stats_lock:
            hits, misses, evictions = self._hits, self._misses, self._evictions
        total = hits + misses
        return CacheMetrics(
            backend=self.backend_name,
            hits=hits,
            misses=misses,
            evictions=evictions,
            entries=self.entry_count(),
            hit_rate=round(hits / total * 100, 1) if total else 0.0,
        )

    async def start(self) -> None:
        """Start background maintenance, if any."""
        return None

    async def close(self) -> None:
        """Stop background maintenance and release resources."""
        return None


class MemoryComparisonCache(ComparisonCache):
    """Process-local cache with LRU eviction at ``max_entries``."""

    backend_name = "memory"

    def __init__(
        self,
        ttl_seconds: int | None = None,
        max_entries: int | None = None,
        cleanup_interval_seconds: int | None = None,
        clock: Clock = utcnow,
    ):
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self.max_entries = settings.COMPARISON_CACHE_MAX_ENTRIES if max_entries is None else max_entries
        self.cleanup_interval_seconds = (
            settings.COMPARISON_CACHE_CLEANUP_INTERVAL_SECONDS
            if cleanup_interval_seconds is None
            else cleanup_interval_seconds
        )
        if self.cleanup_interval_seconds <= 0:
            raise ValueError("cleanup_interval_seconds must be positive")
        self._entries: OrderedDict[str, UserComparison] = OrderedDict()
        self._lock = threading.Lock()
        self._cleanup_task: asyncio.Task | None = None

    def get(self, user_id: str) -> UserComparison | None:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None and not self.is_fresh(entry):
                del self._entries[user_id]
                self._record_evictions(1)
                entry = None
            if entry is not None:
                self._entries.move_to_end(user_id)
        self._record(entry is not None)
        return entry

    def set(self, user_id: str, comparison: UserComparison) -> UserComparison:
        stored = self.stamp(comparison)
        if self.max_entries <= 0:
            return stored
        with self._lock:
            if user_id not in self._entries and len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._record_evictions(1)
                logger.debug("comparison_cache_evicted", extra={"event": "comparison_cache_evicted", "user_id": evicted, "reason": "size"})
            self._entries[user_id] = stored
            self._entries.move_to_end(user_id)
        return stored

    def invalidate_user_comparison(self, user_id: str) -> None:
        with self._lock:
            removed = self._entries.pop(user_id, None)
        if removed is not None:
            self._record_evictions(1)

    def invalidate_all_comparisons(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        self._record_evictions(removed)
        return removed

    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    def purge_expired(self) -> int:
        """Remove every stale entry."""
        with self._lock:
            stale = [key for key, entry in self._entries.items() if not self.is_fresh(entry)]
            for key in stale:
                del self._entries[key]
        self._record_evictions(len(stale))
        if stale:
            logger.info("comparison_cache_purged", extra={"event": "comparison_cache_purged", "removed": len(stale)})
        return len(stale)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            self.purge_expired()

    async def start(self) -> None:
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info(
                "comparison_cache_started",
                extra={
                    "event": "comparison_cache_started",
                    "ttl_seconds": self.ttl_seconds,
                    "max_entries": self.max_entries,
                    "cleanup_interval_seconds": self.cleanup_interval_seconds,
                },
            )

    async def close(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None
        self.invalidate_all_comparisons()
        logger.info("comparison_cache_closed", extra={"event": "comparison_cache_closed"})


class RedisComparisonCache(ComparisonCache):
    """Cache shared by all workers through Redis ``SETEX`` entries.

    Operations raise ``CacheUnavailableError`` when Redis cannot be reached.
    """

    backend_name = "redis"

    def get(self, user_id: str) -> UserComparison | None:
        key = comparison_key(user_id)
        try:
            raw = redis_cache.get_json(key)
        except CacheUnavailableError:
            self._record(False)
            raise
        except json.JSONDecodeError as e:
            return self._drop_unreadable(key, e)
        try:
            entry = UserComparison.model_validate(raw) if raw is not None else None
        except ValidationError as e:
            return self._drop_unreadable(key, e)
        if entry is not None and not self.is_fresh(entry):
            redis_cache.delete(key)
            self._record_evictions(1)
            entry = None
        self._record(entry is not None)
        return entry

    def _drop_unreadable(self, key: str, error: ValueError) -> None:
        """Treat an entry that no longer decodes (truncated, older schema) as a miss."""
        logger.warning(
            "comparison_cache_unreadable",
            extra={"event": "comparison_cache_unreadable", "key": key, "error": str(error)},
        )
        self._record(False)
        redis_cache.delete(key)
        self._record_evictions(1)
        return None

    def set(self, user_id: str, comparison: UserComparison) -> UserComparison:
        stored = self.stamp(comparison)
        if self.ttl_seconds <= 0:
            return stored
        redis_cache.set_json(
            comparison_key(user_id),
            stored.model_dump(mode="json", by_alias=True),
            self.ttl_seconds,
        )
        return stored

    def invalidate_user_comparison(self, user_id: str) -> None:
        if redis_cache.delete(comparison_key(user_id)):
            self._record_evictions(1)

    def invalidate_all_comparisons(self) -> int:
        removed = redis_cache.delete_pattern(f"{KEY_PREFIX}*")
        self._record_evictions(removed)
        return removed

    def entry_count(self) -> int:
        try:
            return redis_cache.count_pattern(f"{KEY_PREFIX}*")
        except CacheUnavailableError:
            return 0


def create_comparison_cache(backend: str | None = None) -> ComparisonCache:
    """Build the configured cache backend."""
    backend = backend or settings.COMPARISON_CACHE_BACKEND
    if backend == "redis":
        return RedisComparisonCache()
    return MemoryComparisonCache()
