"""
Tests for the Admin Analytics API.

Assertions:
- Every reporting endpoint returns the aggregated result as JSON
- Windows can be selected by filter token or explicit start/end
- Query errors map to 400, unknown definitions to 404
- Cache counters and project invalidation are exposed
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from footprint.adapters.memory import (
    InMemoryEventStore,
    InMemoryFunnelRepo,
    InMemoryGoalRepo,
    InMemorySegmentRepo,
)
from footprint.api.routes import admin_analytics
from footprint.components.analytics import AnalyticsService
from footprint.core.entities import ConversionGoal, Funnel, FunnelStep, Segment

BASE = "/analytics/projects/p1"

# --- Test Setup ---


@pytest.fixture
def store(make_event) -> InMemoryEventStore:
    store = InMemoryEventStore()
    store.append(
        make_event("/", at=90, visitor="a", browser="Firefox", country="DE"),
        make_event("/pricing", at=89, visitor="a", browser="Firefox", country="DE"),
        make_event("/thank-you", at=88, visitor="a", browser="Firefox", country="DE"),
        make_event("/", at=30, visitor="b", browser="Safari", country="FR"),
        make_event("/", at=60 * 30, visitor="c"),
    )
    return store


@pytest.fixture
def service(store, clock) -> AnalyticsService:
    goals = InMemoryGoalRepo()
    goals.save(
        ConversionGoal(
            id="g1", project_id="p1", name="Purchase", goal_type="url", match_pattern="/thank-you"
        )
    )
    funnels = InMemoryFunnelRepo()
    funnels.save(
        Funnel(
            id="checkout",
            project_id="p1",
            name="Checkout",
            steps=tuple(
                FunnelStep(name=p, step_type="pageview", match_pattern=p)
                for p in ("/", "/pricing", "/thank-you")
            ),
        )
    )
    funnels.save(
        Funnel(
            id="broken",
            project_id="p1",
            name="Broken",
            steps=(FunnelStep(name="/", step_type="pageview", match_pattern="/"),),
        )
    )
    segments = InMemorySegmentRepo()
    segments.save(
        Segment(
            id="german",
            project_id="p1",
            name="Germany",
            filter_tree={"field": "country", "operator": "equals", "value": "DE"},
        )
    )
    return AnalyticsService(
        event_store=store,
        goal_repo=goals,
        funnel_repo=funnels,
        segment_repo=segments,
        time_port=clock,
    )


@pytest.fixture
def client(service: AnalyticsService) -> TestClient:
    app = FastAPI()
    app.include_router(admin_analytics.router, prefix="/analytics")
    app.dependency_overrides[admin_analytics.get_analytics_service] = lambda: service
    return TestClient(app)


# --- Stats ---


class TestStats:
    def test_filter_window(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/stats", params={"filter": "24h"})

        assert response.status_code == 200
        data = response.json()
        assert data["total_views"] == 4
        assert data["unique_visitors"] == 2
        assert data["top_pages"][0] == {"label": "/", "value": 2}

    def test_default_window_includes_older_events(self, client: TestClient) -> None:
        data = client.get(f"{BASE}/stats").json()

        assert data["total_views"] == 5
        assert data["unique_visitors"] == 3

    def test_explicit_range(self, client: TestClient, clock) -> None:
        end = clock.now_utc()
        start = end - timedelta(hours=1)
        response = client.get(
            f"{BASE}/stats",
            params={"start": start.isoformat(), "end": end.isoformat().replace("+00:00", "Z")},
        )

        assert response.status_code == 200
        assert response.json()["total_views"] == 1

    def test_half_range_rejected(self, client: TestClient, clock) -> None:
        response = client.get(f"{BASE}/stats", params={"start": clock.now_utc().isoformat()})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_RANGE"
        assert response.json()["detail"]["field"] == "end"

    def test_inverted_range_rejected(self, client: TestClient, clock) -> None:
        now = clock.now_utc()
        response = client.get(
            f"{BASE}/stats",
            params={"start": now.isoformat(), "end": (now - timedelta(days=1)).isoformat()},
        )

        assert response.status_code == 400

    def test_bad_datetime(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/stats", params={"start": "yesterday", "end": "today"})

        assert response.status_code == 400
        assert "Invalid datetime" in response.json()["detail"]

    def test_unknown_project_is_empty(self, client: TestClient) -> None:
        data = client.get("/analytics/projects/nope/stats").json()

        assert data["total_views"] == 0
        assert data["bounce_rate"] == 0.0


# --- Report ---


def test_report(client: TestClient) -> None:
    response = client.get(f"{BASE}/report", params={"filter": "24h"})

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_views"] == 4
    assert {"label": "Firefox", "value": 3} in data["browsers"]
    assert len(data["heatmap"]) == 168
    assert set(data["peak_times"]) >= {"top_hours", "top_days", "peak_hour", "peak_day"}
    assert data["last_visits"][0]["path"] == "/"


def test_comparison(client: TestClient) -> None:
    response = client.get(f"{BASE}/comparison", params={"filter": "24h"})

    assert response.status_code == 200
    data = response.json()
    assert data["current"]["total_views"] == 4
    assert data["previous"]["total_views"] == 1
    assert [c["metric"] for c in data["changes"]] == ["views", "unique_visitors", "bounce_rate"]
    assert data["time_series"]


def test_calendar(client: TestClient) -> None:
    response = client.get(f"{BASE}/calendar")

    assert response.status_code == 200
    data = response.json()
    assert len(data["days"]) == 365
    assert data["end_date"] == "2024-06-15"
    assert data["days"][-1]["visits"] == 4
    assert data["max_visits"] == 4


def test_goal_stats(client: TestClient) -> None:
    response = client.get(f"{BASE}/goals", params={"filter": "24h"})

    assert response.status_code == 200
    (goal,) = response.json()
    assert goal["goal_id"] == "g1"
    assert goal["completions"] == 1
    assert goal["total_visitors"] == 2
    assert goal["conversion_rate"] == pytest.approx(0.5)


# --- Funnels / Segments ---


class TestFunnels:
    def test_analysis(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/funnels/checkout", params={"filter": "24h"})

        assert response.status_code == 200
        steps = response.json()["steps"]
        assert [s["visitors_reached"] for s in steps] == [2, 1, 1]
        assert steps[1]["drop_off_percent"] == pytest.approx(0.5)

    def test_unknown_funnel(self, client: TestClient) -> None:
        assert client.get(f"{BASE}/funnels/missing").status_code == 404

    def test_funnel_in_other_project(self, client: TestClient) -> None:
        assert client.get("/analytics/projects/p2/funnels/checkout").status_code == 404

    def test_too_few_steps(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/funnels/broken")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_FUNNEL"


class TestSegments:
    def test_analysis(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/segments/german", params={"filter": "24h"})

        assert response.status_code == 200
        data = response.json()
        assert data["matching_events"] == 3
        assert data["stats"]["unique_visitors"] == 1

    def test_unknown_segment(self, client: TestClient) -> None:
        assert client.get(f"{BASE}/segments/missing").status_code == 404


# --- Cache ---


class TestCache:
    def test_repeat_query_is_a_hit(self, client: TestClient) -> None:
        client.get(f"{BASE}/stats", params={"filter": "7d"})
        client.get(f"{BASE}/stats", params={"filter": "7d"})

        data = client.get("/analytics/cache/stats").json()
        assert data["hits"] == 1
        assert data["misses"] == 1
        assert data["size"] == 1

    def test_invalidate_drops_project_results(
        self, client: TestClient, store: InMemoryEventStore, make_event
    ) -> None:
        assert client.get(f"{BASE}/stats", params={"filter": "24h"}).json()["total_views"] == 4
        store.append(make_event("/new", at=5, visitor="d"))

        response = client.post(f"{BASE}/invalidate")
        assert response.status_code == 200
        assert response.json() == {"project_id": "p1", "invalidated": True}

        assert client.get(f"{BASE}/stats", params={"filter": "24h"}).json()["total_views"] == 5
