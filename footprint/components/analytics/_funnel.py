"""
Funnel analyzer.

Sessions are matched step by step in chronological order. Step i+1 is only
credited to a session by an event that comes after the event that
satisfied step i, so steps matched out of order do not count and one event
never satisfies two steps.

Per step:
- visitors_reached: distinct visitor hashes whose session reached the step
- drop_off_percent: (prev - reached) / prev, 0.0 for step 0 or prev == 0
- conversion_rate: reached / visitors who entered step 0
- avg_time_to_next_step: mean seconds between this step's event and the
  next step's event over sessions that progressed; None otherwise
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from footprint.core.entities import Event, Funnel, FunnelStep

from ._goals import event_hits
from .models import AnalyticsQueryError, FunnelAnalysis, FunnelStepResult

MIN_STEPS = 2
# "url" is the stored name for pageview steps
STEP_TYPES: frozenset[str] = frozenset({"pageview", "url", "event"})


def validate_funnel(funnel: Funnel) -> None:
    """Raise AnalyticsQueryError for funnels that cannot be analyzed."""
    if len(funnel.steps) < MIN_STEPS:
        raise AnalyticsQueryError(
            code="INVALID_FUNNEL",
            message=f"Funnel {funnel.id} needs at least {MIN_STEPS} steps, has {len(funnel.steps)}",
            field_name="steps",
        )
    for step in funnel.steps:
        if step.step_type not in STEP_TYPES:
            raise AnalyticsQueryError(
                code="INVALID_FUNNEL",
                message=f"Unknown funnel step type: {step.step_type}",
                field_name="step_type",
            )


def _match_session(steps: tuple[FunnelStep, ...], session: list[Event]) -> list[datetime]:
    """Timestamps of the events satisfying each reached step, in order."""
    reached: list[datetime] = []
    cursor = 0
    for step in steps:
        for index in range(cursor, len(session)):
            if event_hits(step.step_type, step.match_pattern, session[index]):
                reached.append(session[index].timestamp)
                cursor = index + 1
                break
        else:
            break
    return reached


def analyze_funnel(funnel: Funnel, events: Iterable[Event]) -> FunnelAnalysis:
    validate_funnel(funnel)
    step_count = len(funnel.steps)

    sessions: dict[str, list[Event]] = {}
    for event in events:
        sessions.setdefault(event.session_id, []).append(event)

    visitors: list[set[str]] = [set() for _ in range(step_count)]
    elapsed: list[list[float]] = [[] for _ in range(step_count)]

    for session_events in sessions.values():
        session_events.sort(key=lambda e: e.timestamp)
        reached = _match_session(funnel.steps, session_events)
        visitor = session_events[0].visitor_hash
        for index, ts in enumerate(reached):
            visitors[index].add(visitor)
            if index + 1 < len(reached):
                elapsed[index].append((reached[index + 1] - ts).total_seconds())

    entered = len(visitors[0])
    results = []
    for index, step in enumerate(funnel.steps):
        count = len(visitors[index])
        prev = len(visitors[index - 1]) if index > 0 else 0
        drop_off = (prev - count) / prev if index > 0 and prev > 0 else 0.0
        times = elapsed[index]
        results.append(
            FunnelStepResult(
                step_index=index,
                name=step.name,
                visitors_reached=count,
                drop_off_percent=drop_off,
                conversion_rate=count / entered if entered else 0.0,
                avg_time_to_next_step=sum(times) / len(times) if times else None,
            )
        )

    return FunnelAnalysis(
        funnel_id=funnel.id,
        name=funnel.name,
        total_sessions=len(sessions),
        steps=tuple(results),
    )
