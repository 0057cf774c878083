"""
Analytics component port definitions.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, TypeVar

from footprint.components.analytics._cache import CacheStats
from footprint.core.ports import (
    EventStorePort,
    FunnelRepoPort,
    GoalRepoPort,
    SegmentRepoPort,
    TimePort,
)

T = TypeVar("T")


class ResultCachePort(Protocol):
    """Cache of computed results keyed by (project_id, query-shape hash)."""

    def get_or_compute(self, key: tuple[str, str], compute: Callable[[], T]) -> T:
        """Return the cached value or compute, store and return it."""
        ...

    def invalidate_project(self, project_id: str) -> int:
        """Drop every cached result for a project."""
        ...

    def stats(self) -> CacheStats: ...


__all__ = [
    "EventStorePort",
    "FunnelRepoPort",
    "GoalRepoPort",
    "ResultCachePort",
    "SegmentRepoPort",
    "TimePort",
]
