"""
Analytics component input/output models.

All report types are computed at query time and never persisted.
Rates are fractions in [0, 1].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Literal

# --- Errors ---


class AnalyticsQueryError(ValueError):
    """
    Malformed analytics query.

    Raised at the boundary (before any aggregation runs) for funnels with
    fewer than two steps, unknown segment fields/operators and invalid
    explicit ranges.
    """

    def __init__(self, code: str, message: str, field_name: str | None = None) -> None:
        self.code = code
        self.message = message
        self.field_name = field_name
        super().__init__(message)


class AnalyticsNotFoundError(LookupError):
    """Referenced funnel or segment does not exist in the project."""


# --- Enums ---


class Granularity(str, Enum):
    """Time series bucket width."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"


Direction = Literal["up", "down", "flat"]


# --- Period ---


@dataclass(frozen=True)
class Period:
    """Resolved reporting window plus the equal-length preceding window."""

    start: datetime
    end: datetime
    granularity: Granularity
    prev_start: datetime
    prev_end: datetime
    filter: str | None = None


# --- Core Aggregator ---


@dataclass(frozen=True)
class StatEntry:
    """Single row in a breakdown table."""

    label: str
    value: int


@dataclass(frozen=True)
class CoreStats:
    """Core aggregator result for one event set."""

    total_views: int
    unique_visitors: int
    total_sessions: int
    bounce_rate: float
    top_pages: tuple[StatEntry, ...] = ()


@dataclass(frozen=True)
class VisitSnippet:
    """Recent pageview for the report's activity feed."""

    path: str
    timestamp: datetime
    city: str | None = None
    country: str | None = None


# --- Time Series ---


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Views and unique visitors inside one bucket."""

    bucket_start: datetime
    views: int
    unique_visitors: int


# --- Heatmap / Peak Times / Calendar ---


@dataclass(frozen=True)
class ActivityCell:
    """Day-of-week (0=Sunday) x hour-of-day activity count."""

    day_of_week: int
    hour: int
    count: int


@dataclass(frozen=True)
class PeakTimeAnalysis:
    """Busiest hours and days derived from the heatmap."""

    top_hours: tuple[StatEntry, ...]
    top_days: tuple[StatEntry, ...]
    peak_hour: int
    peak_day: int


@dataclass(frozen=True)
class ContributionDay:
    """One calendar day with its relative intensity level (0-4)."""

    date: date
    visits: int
    unique_visitors: int
    intensity_level: int


@dataclass(frozen=True)
class ContributionCalendar:
    """Trailing daily activity calendar."""

    days: tuple[ContributionDay, ...]
    max_visits: int
    start_date: date
    end_date: date


# --- Reports ---


@dataclass(frozen=True)
class ProjectReport:
    """Full dashboard report for one window."""

    stats: CoreStats
    top_pages: tuple[StatEntry, ...]
    top_referrers: tuple[StatEntry, ...]
    browsers: tuple[StatEntry, ...]
    os: tuple[StatEntry, ...]
    devices: tuple[StatEntry, ...]
    countries: tuple[StatEntry, ...]
    cities: tuple[StatEntry, ...]
    custom_events: tuple[StatEntry, ...]
    last_visits: tuple[VisitSnippet, ...]
    heatmap: tuple[ActivityCell, ...]
    peak_times: PeakTimeAnalysis


@dataclass(frozen=True)
class MetricChange:
    """
    Period-over-period change for one scalar metric.

    favorable is None when flat; bounce rate inverts it (down is good).
    """

    metric: str
    current: float
    previous: float
    percent_change: float
    direction: Direction
    is_new: bool = False
    favorable: bool | None = None


@dataclass(frozen=True)
class ComparisonReport:
    """Current vs previous window with time series for both."""

    period: Period
    current: CoreStats
    previous: CoreStats
    changes: tuple[MetricChange, ...]
    time_series: tuple[TimeSeriesPoint, ...]
    previous_time_series: tuple[TimeSeriesPoint, ...]

    def change(self, metric: str) -> MetricChange:
        """Look up a metric change by name."""
        for item in self.changes:
            if item.metric == metric:
                return item
        raise KeyError(metric)


# --- Goals ---


@dataclass(frozen=True)
class GoalStats:
    """Goal conversion for the current and previous window."""

    goal_id: str
    name: str
    goal_type: str
    match_pattern: str
    completions: int
    total_visitors: int
    conversion_rate: float
    previous_completions: int
    previous_conversion_rate: float
    delta: float  # signed percentage points, as a fraction


# --- Funnels ---


@dataclass(frozen=True)
class FunnelStepResult:
    """Visitors reaching one funnel step."""

    step_index: int
    name: str
    visitors_reached: int
    drop_off_percent: float
    conversion_rate: float
    avg_time_to_next_step: float | None = None  # seconds


@dataclass(frozen=True)
class FunnelAnalysis:
    """Funnel analysis for one window."""

    funnel_id: str
    name: str
    total_sessions: int
    steps: tuple[FunnelStepResult, ...] = field(default_factory=tuple)


# --- Segments ---


@dataclass(frozen=True)
class SegmentAnalysis:
    """Core aggregator result restricted to a segment's events."""

    segment_id: str
    name: str
    matching_events: int
    stats: CoreStats
