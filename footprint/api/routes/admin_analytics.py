"""
Admin Analytics API.

Read-only reporting endpoints over AnalyticsService. Every windowed
endpoint accepts either `filter` (24h|3d|7d|30d|365d) or an explicit
`start`/`end` pair (ISO datetimes, half-open).

Error mapping:
- AnalyticsQueryError -> 400
- AnalyticsNotFoundError -> 404
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from footprint.api.deps import get_analytics_service
from footprint.components.analytics import (
    AnalyticsNotFoundError,
    AnalyticsQueryError,
    AnalyticsService,
    ComparisonReport,
    ContributionCalendar,
    CoreStats,
    FunnelAnalysis,
    GoalStats,
    ProjectReport,
    SegmentAnalysis,
)

router = APIRouter()


# --- Response Models ---


class CacheStatsResponse(BaseModel):
    """Result cache counters."""

    size: int
    hits: int
    misses: int
    evictions: int
    hit_rate: float


class InvalidateResponse(BaseModel):
    project_id: str
    invalidated: bool


# --- Helper Functions ---


def parse_datetime(dt_str: str | None) -> datetime | None:
    """Parse an ISO datetime string (naive = UTC)."""
    if dt_str is None:
        return None
    try:
        if dt_str.endswith("Z"):
            dt_str = dt_str[:-1] + "+00:00"
        dt = datetime.fromisoformat(dt_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid datetime format: {dt_str}",
        ) from e


@contextmanager
def analytics_errors() -> Iterator[None]:
    """Translate analytics errors to HTTP errors."""
    try:
        yield
    except AnalyticsQueryError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": e.message, "field": e.field_name},
        ) from e
    except AnalyticsNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


FILTER_QUERY = Query(None, description="Period filter: 24h, 3d, 7d, 30d, 365d")
START_QUERY = Query(None, description="Start datetime (ISO format, inclusive)")
END_QUERY = Query(None, description="End datetime (ISO format, exclusive)")


# --- Routes ---


@router.get("/projects/{project_id}/stats", response_model=CoreStats)
def get_stats(
    project_id: str,
    filter: str | None = FILTER_QUERY,
    start: str | None = START_QUERY,
    end: str | None = END_QUERY,
    service: AnalyticsService = Depends(get_analytics_service),
) -> CoreStats:
    """Views, unique visitors, sessions, bounce rate and top pages."""
    with analytics_errors():
        return service.get_stats(
            project_id, filter, start=parse_datetime(start), end=parse_datetime(end)
        )


@router.get("/projects/{project_id}/report", response_model=ProjectReport)
def get_report(
    project_id: str,
    filter: str | None = FILTER_QUERY,
    start: str | None = START_QUERY,
    end: str | None = END_QUERY,
    service: AnalyticsService = Depends(get_analytics_service),
) -> ProjectReport:
    """Full dashboard report with breakdowns, heatmap and peak times."""
    with analytics_errors():
        return service.get_report(
            project_id, filter, start=parse_datetime(start), end=parse_datetime(end)
        )


@router.get("/projects/{project_id}/comparison", response_model=ComparisonReport)
def get_comparison_report(
    project_id: str,
    filter: str | None = FILTER_QUERY,
    start: str | None = START_QUERY,
    end: str | None = END_QUERY,
    service: AnalyticsService = Depends(get_analytics_service),
) -> ComparisonReport:
    """Current window against the preceding window, with time series."""
    with analytics_errors():
        return service.get_comparison_report(
            project_id, filter, start=parse_datetime(start), end=parse_datetime(end)
        )


@router.get("/projects/{project_id}/calendar", response_model=ContributionCalendar)
def get_calendar(
    project_id: str,
    service: AnalyticsService = Depends(get_analytics_service),
) -> ContributionCalendar:
    """Daily activity calendar ending today."""
    return service.get_calendar(project_id)


@router.get("/projects/{project_id}/goals", response_model=list[GoalStats])
def get_goal_stats(
    project_id: str,
    filter: str | None = FILTER_QUERY,
    start: str | None = START_QUERY,
    end: str | None = END_QUERY,
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[GoalStats]:
    """Conversion stats for every active goal."""
    with analytics_errors():
        return list(
            service.get_goal_stats(
                project_id, filter, start=parse_datetime(start), end=parse_datetime(end)
            )
        )


@router.get("/projects/{project_id}/funnels/{funnel_id}", response_model=FunnelAnalysis)
def get_funnel_analysis(
    project_id: str,
    funnel_id: str,
    filter: str | None = FILTER_QUERY,
    start: str | None = START_QUERY,
    end: str | None = END_QUERY,
    service: AnalyticsService = Depends(get_analytics_service),
) -> FunnelAnalysis:
    """Per-step reach, drop-off and time to next step."""
    with analytics_errors():
        return service.get_funnel_analysis(
            project_id, funnel_id, filter, start=parse_datetime(start), end=parse_datetime(end)
        )


@router.get("/projects/{project_id}/segments/{segment_id}", response_model=SegmentAnalysis)
def get_segment_analysis(
    project_id: str,
    segment_id: str,
    filter: str | None = FILTER_QUERY,
    start: str | None = START_QUERY,
    end: str | None = END_QUERY,
    service: AnalyticsService = Depends(get_analytics_service),
) -> SegmentAnalysis:
    """Core stats restricted to events matching a saved segment."""
    with analytics_errors():
        return service.get_segment_analysis(
            project_id, segment_id, filter, start=parse_datetime(start), end=parse_datetime(end)
        )


@router.post("/projects/{project_id}/invalidate", response_model=InvalidateResponse)
def invalidate_project(
    project_id: str,
    service: AnalyticsService = Depends(get_analytics_service),
) -> InvalidateResponse:
    """Drop cached results for a project (called by the ingestion side)."""
    service.on_events_written(project_id)
    return InvalidateResponse(project_id=project_id, invalidated=True)


@router.get("/cache/stats", response_model=CacheStatsResponse)
def get_cache_stats(
    service: AnalyticsService = Depends(get_analytics_service),
) -> CacheStatsResponse:
    stats = service.cache_stats()
    return CacheStatsResponse(
        size=stats.size,
        hits=stats.hits,
        misses=stats.misses,
        evictions=stats.evictions,
        hit_rate=stats.hit_rate,
    )
