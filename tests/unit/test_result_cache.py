"""
Tests for the result cache.
"""

from __future__ import annotations

import threading

import pytest

from footprint.components.analytics import ResultCache, query_shape_hash


@pytest.fixture
def cache(clock) -> ResultCache:
    return ResultCache(clock, max_entries=3, ttl_seconds=30)


class Counter:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> int:
        self.calls += 1
        return self.calls


class TestQueryShapeHash:
    def test_parameter_order_irrelevant(self) -> None:
        assert query_shape_hash("stats", filter="7d", funnel_id="f1") == query_shape_hash(
            "stats", funnel_id="f1", filter="7d"
        )

    def test_distinguishes_operation_and_params(self) -> None:
        assert query_shape_hash("stats", filter="7d") != query_shape_hash("report", filter="7d")
        assert query_shape_hash("stats", filter="7d") != query_shape_hash("stats", filter="30d")


class TestResultCache:
    def test_hit_after_miss(self, cache: ResultCache) -> None:
        compute = Counter()

        assert cache.get_or_compute(("p1", "k"), compute) == 1
        assert cache.get_or_compute(("p1", "k"), compute) == 1
        assert compute.calls == 1

        stats = cache.stats()
        assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)
        assert stats.hit_rate == pytest.approx(0.5)

    def test_entries_expire_after_ttl(self, cache: ResultCache, clock) -> None:
        compute = Counter()
        cache.get_or_compute(("p1", "k"), compute)

        clock.advance(29)
        assert cache.get_or_compute(("p1", "k"), compute) == 1

        clock.advance(1)
        assert cache.get_or_compute(("p1", "k"), compute) == 2

    def test_bounded_size_evicts_least_recently_used(self, cache: ResultCache) -> None:
        for key in ("a", "b", "c"):
            cache.put(("p1", key), key)
        cache.get(("p1", "a"))
        cache.put(("p1", "d"), "d")

        assert cache.get(("p1", "b")) == (False, None)
        assert cache.get(("p1", "a")) == (True, "a")
        assert cache.stats().evictions == 1
        assert cache.stats().size == 3

    def test_invalidate_project_only_touches_that_project(self, cache: ResultCache) -> None:
        cache.put(("p1", "a"), 1)
        cache.put(("p1", "b"), 2)
        cache.put(("p2", "a"), 3)

        assert cache.invalidate_project("p1") == 2
        assert cache.get(("p1", "a")) == (False, None)
        assert cache.get(("p2", "a")) == (True, 3)

    def test_invalidate_all(self, cache: ResultCache) -> None:
        cache.put(("p1", "a"), 1)
        cache.invalidate_all()
        assert cache.stats().size == 0

    def test_compute_errors_are_not_cached(self, cache: ResultCache) -> None:
        def boom() -> int:
            raise RuntimeError("storage down")

        with pytest.raises(RuntimeError):
            cache.get_or_compute(("p1", "k"), boom)
        assert cache.stats().size == 0

    def test_write_during_compute_is_not_lost(self, cache: ResultCache) -> None:
        def compute_then_write() -> str:
            snapshot = "before-write"
            cache.invalidate_project("p1")
            return snapshot

        assert cache.get_or_compute(("p1", "k"), compute_then_write) == "before-write"
        assert cache.get(("p1", "k")) == (False, None)
        assert cache.get_or_compute(("p1", "k"), lambda: "after-write") == "after-write"
        assert cache.get(("p1", "k")) == (True, "after-write")

    def test_other_project_write_during_compute_keeps_result(self, cache: ResultCache) -> None:
        def compute() -> str:
            cache.invalidate_project("p2")
            return "fresh"

        cache.get_or_compute(("p1", "k"), compute)
        assert cache.get(("p1", "k")) == (True, "fresh")

    def test_invalidate_all_during_compute(self, cache: ResultCache) -> None:
        def compute() -> str:
            cache.invalidate_all()
            return "stale"

        cache.get_or_compute(("p1", "k"), compute)
        assert cache.get(("p1", "k")) == (False, None)

    def test_disabled_cache_always_computes(self, clock) -> None:
        cache = ResultCache(clock, enabled=False)
        compute = Counter()

        cache.get_or_compute(("p1", "k"), compute)
        cache.get_or_compute(("p1", "k"), compute)

        assert compute.calls == 2
        assert cache.stats().size == 0

    def test_concurrent_access(self, clock) -> None:
        cache = ResultCache(clock, max_entries=50, ttl_seconds=30)
        errors: list[Exception] = []

        def worker(n: int) -> None:
            try:
                for i in range(200):
                    key = (f"p{n % 3}", str(i % 80))
                    cache.get_or_compute(key, lambda: i)
                    if i % 50 == 0:
                        cache.invalidate_project(f"p{n % 3}")
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert cache.stats().size <= 50
