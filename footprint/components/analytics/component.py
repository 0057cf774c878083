"""
Analytics component - query-time aggregation over the event log.

Exposes the seven reporting operations used by the dashboard layer:
get_stats, get_report, get_comparison_report, get_calendar,
get_goal_stats, get_funnel_analysis, get_segment_analysis.

Invariants:
- Every windowed operation takes a symbolic filter (24h|3d|7d|30d|365d)
  or an explicit [start, end) pair
- Malformed queries raise AnalyticsQueryError before any event is read
- Missing funnel/segment ids raise AnalyticsNotFoundError
- Empty data never raises; every metric degrades to zero
- Storage errors propagate unchanged
- Results are cached per (project, query shape); on_events_written drops
  every cached result for the project
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import TypeVar
from zoneinfo import ZoneInfo

from footprint.core.entities import Event
from footprint.rules.models import AnalyticsRules, default_rules

from ._aggregate import aggregate, last_visits, top_n
from ._cache import CacheStats, ResultCache, query_shape_hash
from ._compare import build_comparison
from ._funnel import analyze_funnel, validate_funnel
from ._goals import calculate_goal_stats
from ._heatmap import (
    analyze_peak_times,
    build_contribution_calendar,
    build_heatmap,
    calendar_window,
)
from ._period import resolve_period, resolve_range
from ._segments import apply_segment, parse_filter_tree
from .models import (
    AnalyticsNotFoundError,
    AnalyticsQueryError,
    ComparisonReport,
    ContributionCalendar,
    CoreStats,
    FunnelAnalysis,
    GoalStats,
    Period,
    ProjectReport,
    SegmentAnalysis,
    StatEntry,
)
from .ports import (
    EventStorePort,
    FunnelRepoPort,
    GoalRepoPort,
    ResultCachePort,
    SegmentRepoPort,
    TimePort,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalyticsService:
    """
    Reporting facade over the event store and saved definitions.

    Args:
        event_store: Bounded-range event reads
        goal_repo: Conversion goal definitions
        funnel_repo: Funnel definitions
        segment_repo: Segment definitions
        time_port: Reference "now" for symbolic windows and cache TTL
        rules: Report configuration (defaults when omitted)
        cache: Result cache; built from rules.cache when omitted
    """

    def __init__(
        self,
        *,
        event_store: EventStorePort,
        goal_repo: GoalRepoPort,
        funnel_repo: FunnelRepoPort,
        segment_repo: SegmentRepoPort,
        time_port: TimePort,
        rules: AnalyticsRules | None = None,
        cache: ResultCachePort | None = None,
    ) -> None:
        self._events = event_store
        self._goals = goal_repo
        self._funnels = funnel_repo
        self._segments = segment_repo
        self._time = time_port
        self._rules = rules or default_rules()
        self._tz = ZoneInfo(self._rules.heatmap.timezone)
        if cache is None:
            cache = ResultCache(
                time_port,
                max_entries=self._rules.cache.max_entries,
                ttl_seconds=self._rules.cache.ttl_seconds,
                enabled=self._rules.cache.enabled,
            )
        self._cache = cache

    # --- Helpers ---

    def _resolve(
        self,
        filter: str | None,
        start: datetime | None,
        end: datetime | None,
    ) -> Period:
        if start is not None or end is not None:
            if start is None or end is None:
                raise AnalyticsQueryError(
                    code="INVALID_RANGE",
                    message="Explicit ranges need both start and end",
                    field_name="start" if start is None else "end",
                )
            period = resolve_range(start, end)
        else:
            period = resolve_period(
                filter, self._time.now_utc(), self._rules.periods.default_filter
            )
        logger.debug(
            "Resolved window %s - %s (%s)", period.start, period.end, period.granularity.value
        )
        return period

    def _cached(
        self,
        project_id: str,
        operation: str,
        compute: Callable[[], T],
        **shape: object,
    ) -> T:
        key = (project_id, query_shape_hash(operation, **shape))
        return self._cache.get_or_compute(key, compute)

    @staticmethod
    def _shape(period: Period) -> dict[str, object]:
        # Symbolic windows are keyed by token so they stay cacheable as now advances
        if period.filter is not None:
            return {"filter": period.filter}
        return {"start": period.start, "end": period.end}

    def _stats(self, events: Sequence[Event]) -> CoreStats:
        return aggregate(
            events,
            top_pages=self._rules.reports.stats_top_pages,
            unknown_label=self._rules.reports.unknown_label,
        )

    # --- Operations ---

    def get_stats(
        self,
        project_id: str,
        filter: str | None = None,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CoreStats:
        """Core aggregator result for one window."""
        period = self._resolve(filter, start, end)

        def compute() -> CoreStats:
            events = self._events.query_events(project_id, period.start, period.end)
            return self._stats(events)

        return self._cached(project_id, "stats", compute, **self._shape(period))

    def get_report(
        self,
        project_id: str,
        filter: str | None = None,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> ProjectReport:
        """
        Full dashboard report.

        Breakdowns cover the requested window. The heatmap and peak times
        always cover the trailing heatmap lookback window ending now.
        """
        period = self._resolve(filter, start, end)

        def compute() -> ProjectReport:
            reports = self._rules.reports
            events = self._events.query_events(project_id, period.start, period.end)

            now = self._time.now_utc()
            lookback_start = now - timedelta(days=self._rules.heatmap.lookback_days)
            heatmap = build_heatmap(
                self._events.query_events(project_id, lookback_start, now), self._tz
            )

            def table(field_name: str, *, fold: bool = False) -> tuple[StatEntry, ...]:
                return top_n(
                    events,
                    field_name,
                    reports.top_n,
                    other_label=reports.other_label if fold else None,
                    unknown_label=reports.unknown_label,
                )

            return ProjectReport(
                stats=self._stats(events),
                top_pages=table("path"),
                top_referrers=table("referrer"),
                browsers=table("browser", fold=True),
                os=table("os", fold=True),
                devices=table("device", fold=True),
                countries=table("country"),
                cities=table("city"),
                custom_events=top_n(events, "event_name", reports.top_n, event_type="custom"),
                last_visits=last_visits(events, reports.last_visits_limit),
                heatmap=heatmap,
                peak_times=analyze_peak_times(heatmap),
            )

        return self._cached(project_id, "report", compute, **self._shape(period))

    def get_comparison_report(
        self,
        project_id: str,
        filter: str | None = None,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> ComparisonReport:
        """Current window against the preceding window of equal length."""
        period = self._resolve(filter, start, end)

        def compute() -> ComparisonReport:
            current = self._events.query_events(project_id, period.start, period.end)
            previous = self._events.query_events(project_id, period.prev_start, period.prev_end)
            return build_comparison(
                period,
                current,
                previous,
                self._tz,
                top_pages=self._rules.reports.stats_top_pages,
                unknown_label=self._rules.reports.unknown_label,
            )

        return self._cached(project_id, "comparison", compute, **self._shape(period))

    def get_calendar(self, project_id: str) -> ContributionCalendar:
        """Daily activity calendar ending today (configured timezone)."""
        days = self._rules.calendar.days

        def compute() -> ContributionCalendar:
            now = self._time.now_utc()
            window_start, window_end = calendar_window(now, days, self._tz)
            events = self._events.query_events(project_id, window_start, window_end)
            return build_contribution_calendar(
                events, now.astimezone(self._tz).date(), days, self._tz
            )

        return self._cached(project_id, "calendar", compute, days=days)

    def get_goal_stats(
        self,
        project_id: str,
        filter: str | None = None,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[GoalStats, ...]:
        """Conversion stats for every active goal in the project."""
        period = self._resolve(filter, start, end)
        goals = tuple(self._goals.list_active_goals(project_id))
        if not goals:
            return ()

        def compute() -> tuple[GoalStats, ...]:
            current = self._events.query_events(project_id, period.start, period.end)
            previous = self._events.query_events(project_id, period.prev_start, period.prev_end)
            return tuple(calculate_goal_stats(g, current, previous) for g in goals)

        return self._cached(project_id, "goals", compute, goals=goals, **self._shape(period))

    def get_funnel_analysis(
        self,
        project_id: str,
        funnel_id: str,
        filter: str | None = None,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> FunnelAnalysis:
        """
        Analyze one funnel over a window.

        Raises:
            AnalyticsNotFoundError: Funnel does not exist in the project
            AnalyticsQueryError: Funnel has fewer than two steps
        """
        period = self._resolve(filter, start, end)
        funnel = self._funnels.get_funnel(project_id, funnel_id)
        if funnel is None:
            raise AnalyticsNotFoundError(f"Funnel {funnel_id} not found in project {project_id}")
        validate_funnel(funnel)

        def compute() -> FunnelAnalysis:
            events = self._events.query_events(project_id, period.start, period.end)
            return analyze_funnel(funnel, events)

        return self._cached(
            project_id,
            "funnel",
            compute,
            funnel_id=funnel_id,
            steps=funnel.steps,
            **self._shape(period),
        )

    def get_segment_analysis(
        self,
        project_id: str,
        segment_id: str,
        filter: str | None = None,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> SegmentAnalysis:
        """
        Core aggregator result restricted to events matching a segment.

        Raises:
            AnalyticsNotFoundError: Segment does not exist in the project
            AnalyticsQueryError: Segment filter tree is malformed
        """
        period = self._resolve(filter, start, end)
        segment = self._segments.get_segment(project_id, segment_id)
        if segment is None:
            raise AnalyticsNotFoundError(f"Segment {segment_id} not found in project {project_id}")
        tree = parse_filter_tree(segment.filter_tree)

        def compute() -> SegmentAnalysis:
            events = self._events.query_events(project_id, period.start, period.end)
            matched = apply_segment(events, tree)
            return SegmentAnalysis(
                segment_id=segment.id,
                name=segment.name,
                matching_events=len(matched),
                stats=self._stats(matched),
            )

        return self._cached(
            project_id,
            "segment",
            compute,
            segment_id=segment_id,
            tree=tree,
            **self._shape(period),
        )

    # --- Write path / cache ---

    def on_events_written(self, project_id: str) -> None:
        """Call after events for `project_id` are stored."""
        self._cache.invalidate_project(project_id)

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()
