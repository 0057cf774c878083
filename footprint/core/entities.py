"""
Domain entities for footprint.

- Event: append-only visitor interaction fact (pageview, heartbeat, custom)
- ConversionGoal: URL or custom-event goal scoped to one project
- Funnel + FunnelStep: ordered conversion sequence (>= 2 steps)
- Segment: saved boolean filter tree over event fields

Entities are immutable from the aggregator's perspective. Events are only
created by the collection endpoint and only removed by retention purges.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "EventType",
    "Event",
    "GoalType",
    "ConversionGoal",
    "FunnelStep",
    "Funnel",
    "Segment",
]


EventType = Literal["pageview", "heartbeat", "custom"]
GoalType = Literal["url", "event"]


# --- Event ---


class Event(BaseModel):
    """
    Visitor interaction event.

    Invariants:
    - Attributed to exactly one project
    - visitor_hash is an opaque rotating token; never decoded
    - event_name present only for custom events

    Optional dimensions (referrer, geo, user agent) are None when the
    privacy mode or the collector did not populate them.
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    visitor_hash: str
    session_id: str
    event_type: EventType
    path: str
    timestamp: datetime  # UTC
    event_name: str | None = None
    referrer: str | None = None
    country: str | None = None
    city: str | None = None
    browser: str | None = None
    os: str | None = None
    device: str | None = None
    duration_seconds: int = 0

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from storage are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


# --- Conversion Goal ---


class ConversionGoal(BaseModel):
    """
    Conversion goal.

    A goal is hit by a visitor when, within the analyzed window:
    - url: any pageview path matches match_pattern
    - event: any custom event name matches match_pattern
    """

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    name: str
    goal_type: GoalType
    match_pattern: str
    is_active: bool = True


# --- Funnel ---


class FunnelStep(BaseModel):
    """
    Single funnel stage, matched by exact URL path or custom event name.

    step_type is "pageview" (or its stored alias "url") or "event"; it is
    checked when the funnel is analyzed so stored definitions with other
    types still load.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    step_type: str
    match_pattern: str


class Funnel(BaseModel):
    """
    Ordered conversion sequence.

    Step order is fixed at creation and is significant for analysis.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    name: str
    steps: tuple[FunnelStep, ...] = Field(default_factory=tuple)


# --- Segment ---


class Segment(BaseModel):
    """
    Saved visitor segment.

    filter_tree is kept in its serialized form:
    - leaf: {"field": ..., "operator": ..., "value": ...}
    - group: {"and": [...]} or {"or": [...]}
    A legacy flat list of {field, operator, value, logic} entries is also
    accepted. It is parsed and validated when the segment is analyzed.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    name: str
    filter_tree: dict[str, Any] | list[dict[str, Any]]
    description: str | None = None
