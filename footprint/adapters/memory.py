"""
In-memory event store and definition repositories (dev/testing).
"""

from __future__ import annotations

from datetime import datetime

from footprint.adapters.privacy import scrub_event
from footprint.core.entities import ConversionGoal, Event, Funnel, Segment
from footprint.rules.models import PrivacyRules


class InMemoryEventStore:
    """In-memory event store for testing/dev."""

    def __init__(self, privacy: PrivacyRules | None = None) -> None:
        self._events: list[Event] = []
        self._privacy = privacy or PrivacyRules()

    def append(self, *events: Event) -> None:
        """Store events."""
        self._events.extend(events)

    def query_events(self, project_id: str, start: datetime, end: datetime) -> list[Event]:
        matched = [
            e for e in self._events if e.project_id == project_id and start <= e.timestamp < end
        ]
        matched.sort(key=lambda e: e.timestamp)
        return [scrub_event(e, self._privacy) for e in matched]

    def get_all(self) -> list[Event]:
        """Get all stored events (for testing)."""
        return list(self._events)


class InMemoryGoalRepo:
    def __init__(self) -> None:
        self._goals: dict[str, ConversionGoal] = {}

    def save(self, goal: ConversionGoal) -> ConversionGoal:
        self._goals[goal.id] = goal
        return goal

    def list_active_goals(self, project_id: str) -> list[ConversionGoal]:
        return [g for g in self._goals.values() if g.project_id == project_id and g.is_active]


class InMemoryFunnelRepo:
    def __init__(self) -> None:
        self._funnels: dict[str, Funnel] = {}

    def save(self, funnel: Funnel) -> Funnel:
        self._funnels[funnel.id] = funnel
        return funnel

    def get_funnel(self, project_id: str, funnel_id: str) -> Funnel | None:
        funnel = self._funnels.get(funnel_id)
        if funnel is None or funnel.project_id != project_id:
            return None
        return funnel


class InMemorySegmentRepo:
    def __init__(self) -> None:
        self._segments: dict[str, Segment] = {}

    def save(self, segment: Segment) -> Segment:
        self._segments[segment.id] = segment
        return segment

    def get_segment(self, project_id: str, segment_id: str) -> Segment | None:
        segment = self._segments.get(segment_id)
        if segment is None or segment.project_id != project_id:
            return None
        return segment
