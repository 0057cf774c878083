"""
Comparison report builder.

Runs the core aggregator and the time series builder for the current and
the preceding window, then derives one MetricChange per scalar metric.

percent_change = (current - previous) / previous, with:
- 0.0 / "flat" when both are zero
- 1.0 / is_new when previous is zero and current is not
Bounce rate is "lower is better", so its favorable flag is inverted.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, tzinfo

from footprint.core.entities import Event

from ._aggregate import aggregate, build_time_series
from .models import ComparisonReport, CoreStats, Direction, MetricChange, Period

COMPARED_METRICS: tuple[str, ...] = ("views", "unique_visitors", "bounce_rate")
LOWER_IS_BETTER: frozenset[str] = frozenset({"bounce_rate"})


def _metric_value(stats: CoreStats, metric: str) -> float:
    if metric == "views":
        return stats.total_views
    if metric == "unique_visitors":
        return stats.unique_visitors
    return stats.bounce_rate


def calculate_change(metric: str, current: float, previous: float) -> MetricChange:
    """Period-over-period change for one metric. Never divides by zero."""
    is_new = False
    if previous == 0:
        percent = 0.0 if current == 0 else 1.0
        is_new = current > 0
    else:
        percent = (current - previous) / previous

    direction: Direction
    if current > previous:
        direction = "up"
    elif current < previous:
        direction = "down"
    else:
        direction = "flat"

    favorable: bool | None = None
    if direction != "flat":
        favorable = direction == "up"
        if metric in LOWER_IS_BETTER:
            favorable = not favorable

    return MetricChange(
        metric=metric,
        current=current,
        previous=previous,
        percent_change=percent,
        direction=direction,
        is_new=is_new,
        favorable=favorable,
    )


def build_comparison(
    period: Period,
    current_events: Sequence[Event],
    previous_events: Sequence[Event],
    tz: tzinfo = UTC,
    *,
    top_pages: int = 0,
    unknown_label: str | None = None,
) -> ComparisonReport:
    current = aggregate(current_events, top_pages=top_pages, unknown_label=unknown_label)
    previous = aggregate(previous_events, top_pages=top_pages, unknown_label=unknown_label)

    changes = tuple(
        calculate_change(m, _metric_value(current, m), _metric_value(previous, m))
        for m in COMPARED_METRICS
    )

    return ComparisonReport(
        period=period,
        current=current,
        previous=previous,
        changes=changes,
        time_series=build_time_series(
            current_events, period.start, period.end, period.granularity, tz
        ),
        previous_time_series=build_time_series(
            previous_events, period.prev_start, period.prev_end, period.granularity, tz
        ),
    )
