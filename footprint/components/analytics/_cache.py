"""
Result cache for computed analytics results.

Key behaviors:
- Entries keyed by (project_id, query-shape hash)
- Bounded by max_entries (least recently used entry evicted first)
- Entries expire ttl_seconds after being stored
- Writes for a project drop every entry for that project; a result
  computed across such a write is returned but not stored
- All access is guarded by a single lock; computation runs outside it
"""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, TypeVar

from footprint.core.ports import TimePort

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, str]


def query_shape_hash(operation: str, **params: Any) -> str:
    """
    Stable hash of an operation and its parameters.

    Parameters are sorted by name; None values are kept so that
    "no filter" and "filter=None" hash the same.
    """
    parts = [operation]
    for name in sorted(params):
        value = params[name]
        if isinstance(value, datetime):
            value = value.isoformat()
        parts.append(f"{name}={value}")
    key_string = "|".join(parts)
    return hashlib.sha256(key_string.encode()).hexdigest()[:32]


@dataclass(frozen=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ResultCache:
    """Thread-safe TTL + LRU cache of query results."""

    def __init__(
        self,
        time_port: TimePort,
        max_entries: int = 500,
        ttl_seconds: int = 30,
        enabled: bool = True,
    ) -> None:
        self._time = time_port
        self._max_entries = max_entries
        self._ttl = timedelta(seconds=ttl_seconds)
        self._enabled = enabled and max_entries > 0 and ttl_seconds > 0
        self._entries: OrderedDict[CacheKey, tuple[datetime, Any]] = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        # Invalidation counters; a put carrying an older pair is discarded
        self._generations: dict[str, int] = {}
        self._epoch = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get(self, key: CacheKey) -> tuple[bool, Any]:
        """Return (found, value). Expired entries are dropped on read."""
        if not self._enabled:
            return False, None

        now = self._time.now_utc()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return False, None

            expires_at, value = entry
            if expires_at <= now:
                del self._entries[key]
                self._misses += 1
                return False, None

            self._entries.move_to_end(key)
            self._hits += 1
            return True, value

    def _generation(self, project_id: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(project_id, 0)

    def put(
        self,
        key: CacheKey,
        value: Any,
        generation: tuple[int, int] | None = None,
    ) -> bool:
        """
        Store `value`. Returns False without storing when `generation` was
        read before an invalidation of the key's project.
        """
        if not self._enabled:
            return False

        expires_at = self._time.now_utc() + self._ttl
        with self._lock:
            if generation is not None and generation != self._generation(key[0]):
                logger.debug("Discarding result for %s computed across an invalidation", key)
                return False
            self._entries[key] = (expires_at, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1
            return True

    def get_or_compute(self, key: CacheKey, compute: Callable[[], T]) -> T:
        """
        Return the cached value for `key`, computing and storing it on a miss.

        Exceptions from `compute` propagate and nothing is stored.
        """
        found, value = self.get(key)
        if found:
            logger.debug("Cache hit for %s", key)
            return value  # type: ignore[no-any-return]

        logger.debug("Cache miss for %s", key)
        with self._lock:
            generation = self._generation(key[0])
        result = compute()
        self.put(key, result, generation)
        return result

    def invalidate_project(self, project_id: str) -> int:
        """Drop every entry for `project_id`. Returns the number removed."""
        with self._lock:
            self._generations[project_id] = self._generations.get(project_id, 0) + 1
            stale = [k for k in self._entries if k[0] == project_id]
            for key in stale:
                del self._entries[key]

        if stale:
            logger.info("Invalidated %d cached results for project %s", len(stale), project_id)
        return len(stale)

    def invalidate_all(self) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()
        logger.info("Invalidated all cached results")

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )
