"""
Goal conversion calculator.

completions = distinct visitors who hit the goal inside the window.
conversion_rate = completions / distinct visitors in the window (0.0 when
there are none), so it always lies in [0, 1].

Matching is exact and case-sensitive. A url goal is hit by a pageview
whose path equals match_pattern; an event goal by a custom event whose
name equals it.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from footprint.core.entities import ConversionGoal, Event

from .models import GoalStats


def matches_pattern(value: str | None, pattern: str) -> bool:
    return value is not None and value == pattern


def event_hits(target_type: str, pattern: str, event: Event) -> bool:
    """
    True if `event` satisfies a URL or custom-event target.

    target_type is "url"/"pageview" (pageview path) or "event" (custom
    event name).
    """
    if target_type in ("url", "pageview"):
        return event.event_type == "pageview" and matches_pattern(event.path, pattern)
    if target_type == "event":
        return event.event_type == "custom" and matches_pattern(event.event_name, pattern)
    return False


def goal_completions(goal: ConversionGoal, events: Iterable[Event]) -> int:
    """Distinct visitors that hit the goal."""
    return len(
        {e.visitor_hash for e in events if event_hits(goal.goal_type, goal.match_pattern, e)}
    )


def conversion_rate(completions: int, total_visitors: int) -> float:
    if total_visitors <= 0:
        return 0.0
    return completions / total_visitors


def calculate_goal_stats(
    goal: ConversionGoal,
    current: Sequence[Event],
    previous: Sequence[Event],
) -> GoalStats:
    """Goal stats for the current window against the preceding one."""
    total = len({e.visitor_hash for e in current})
    completions = goal_completions(goal, current)
    rate = conversion_rate(completions, total)

    prev_total = len({e.visitor_hash for e in previous})
    prev_completions = goal_completions(goal, previous)
    prev_rate = conversion_rate(prev_completions, prev_total)

    return GoalStats(
        goal_id=goal.id,
        name=goal.name,
        goal_type=goal.goal_type,
        match_pattern=goal.match_pattern,
        completions=completions,
        total_visitors=total,
        conversion_rate=rate,
        previous_completions=prev_completions,
        previous_conversion_rate=prev_rate,
        delta=rate - prev_rate,
    )
