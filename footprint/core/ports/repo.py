"""
Storage ports.

The event store is the only read surface over the durable event log.
Implementations must return events for one project inside the half-open
window [start, end), ordered by timestamp ascending.

Goal/funnel/segment repositories expose the saved definitions that the
analyzers consume.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from footprint.core.entities import ConversionGoal, Event, Funnel, Segment


class EventStorePort(Protocol):
    """Read-only query surface over the event log."""

    def query_events(self, project_id: str, start: datetime, end: datetime) -> list[Event]:
        """Events with start <= timestamp < end, oldest first."""
        ...


class GoalRepoPort(Protocol):
    """Conversion goal definitions."""

    def list_active_goals(self, project_id: str) -> list[ConversionGoal]:
        """Active goals for a project."""
        ...


class FunnelRepoPort(Protocol):
    """Funnel definitions."""

    def get_funnel(self, project_id: str, funnel_id: str) -> Funnel | None:
        """Funnel with its ordered steps, or None if not found in project."""
        ...


class SegmentRepoPort(Protocol):
    """Segment definitions."""

    def get_segment(self, project_id: str, segment_id: str) -> Segment | None:
        """Segment, or None if not found in project."""
        ...
