"""
Analytics component - period resolution, aggregation and reporting.
"""

from ._aggregate import (
    aggregate,
    build_time_series,
    calculate_bounce_rate,
    calculate_bucket_end,
    calculate_bucket_start,
    last_visits,
    top_n,
)
from ._cache import CacheStats, ResultCache, query_shape_hash
from ._compare import build_comparison, calculate_change
from ._funnel import analyze_funnel, validate_funnel
from ._goals import calculate_goal_stats, event_hits
from ._heatmap import (
    analyze_peak_times,
    build_contribution_calendar,
    build_heatmap,
    intensity_level,
)
from ._period import FILTER_DURATIONS, granularity_for, resolve_period, resolve_range
from ._segments import And, Leaf, Or, apply_segment, evaluate, parse_filter_tree
from .component import AnalyticsService
from .models import (
    ActivityCell,
    AnalyticsNotFoundError,
    AnalyticsQueryError,
    ComparisonReport,
    ContributionCalendar,
    ContributionDay,
    CoreStats,
    FunnelAnalysis,
    FunnelStepResult,
    GoalStats,
    Granularity,
    MetricChange,
    PeakTimeAnalysis,
    Period,
    ProjectReport,
    SegmentAnalysis,
    StatEntry,
    TimeSeriesPoint,
    VisitSnippet,
)
from .ports import (
    EventStorePort,
    FunnelRepoPort,
    GoalRepoPort,
    ResultCachePort,
    SegmentRepoPort,
    TimePort,
)

__all__ = [
    # Entry point
    "AnalyticsService",
    # Errors
    "AnalyticsNotFoundError",
    "AnalyticsQueryError",
    # Output models
    "ActivityCell",
    "ComparisonReport",
    "ContributionCalendar",
    "ContributionDay",
    "CoreStats",
    "FunnelAnalysis",
    "FunnelStepResult",
    "GoalStats",
    "Granularity",
    "MetricChange",
    "PeakTimeAnalysis",
    "Period",
    "ProjectReport",
    "SegmentAnalysis",
    "StatEntry",
    "TimeSeriesPoint",
    "VisitSnippet",
    # Ports
    "EventStorePort",
    "FunnelRepoPort",
    "GoalRepoPort",
    "ResultCachePort",
    "SegmentRepoPort",
    "TimePort",
    # Period resolver
    "FILTER_DURATIONS",
    "granularity_for",
    "resolve_period",
    "resolve_range",
    # Aggregation
    "aggregate",
    "build_time_series",
    "calculate_bounce_rate",
    "calculate_bucket_end",
    "calculate_bucket_start",
    "last_visits",
    "top_n",
    # Heatmap / calendar
    "analyze_peak_times",
    "build_contribution_calendar",
    "build_heatmap",
    "intensity_level",
    # Segments
    "And",
    "Leaf",
    "Or",
    "apply_segment",
    "evaluate",
    "parse_filter_tree",
    # Funnels / goals / comparison
    "analyze_funnel",
    "validate_funnel",
    "calculate_goal_stats",
    "event_hits",
    "build_comparison",
    "calculate_change",
    # Cache
    "CacheStats",
    "ResultCache",
    "query_shape_hash",
]
