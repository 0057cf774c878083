"""
Core aggregator and time series builder.

Pure functions over an in-memory event collection already fetched for a
bounded [start, end) window.

Key behaviors:
- total_views counts pageviews; unique_visitors counts distinct visitor hashes
- Breakdowns sort by count descending, ties keep first-seen order
- Null dimensions are excluded unless an unknown label is configured
- Bounce = session with exactly one pageview and no heartbeat; 0.0 when
  there are no sessions
- Time series emits every bucket in the window, empty ones as zeros
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta, tzinfo

from footprint.core.entities import Event

from .models import CoreStats, Granularity, StatEntry, TimeSeriesPoint, VisitSnippet

BREAKDOWN_FIELDS: frozenset[str] = frozenset(
    {"path", "referrer", "browser", "os", "device", "country", "city", "event_name"}
)

DEFAULT_TOP_N = 10


# --- Bucket Calculation ---


def calculate_bucket_start(
    timestamp: datetime,
    granularity: Granularity,
    tz: tzinfo = UTC,
) -> datetime:
    """
    Calculate the start of the bucket containing `timestamp`.

    Hours are truncated in UTC. Days and weeks (Monday start) are aligned
    to local midnight in `tz`. The result is always UTC.
    """
    if timestamp.tzinfo is None:
        ts = timestamp.replace(tzinfo=UTC)
    else:
        ts = timestamp.astimezone(UTC)

    if granularity == Granularity.HOUR:
        return ts.replace(minute=0, second=0, microsecond=0)

    local = ts.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == Granularity.DAY:
        return midnight.astimezone(UTC)
    if granularity == Granularity.WEEK:
        monday = midnight - timedelta(days=midnight.weekday())
        return monday.astimezone(UTC)

    msg = f"Unknown granularity: {granularity}"
    raise ValueError(msg)


def calculate_bucket_end(
    bucket_start: datetime,
    granularity: Granularity,
    tz: tzinfo = UTC,
) -> datetime:
    """Calculate the end of a bucket (exclusive)."""
    if granularity == Granularity.HOUR:
        return bucket_start + timedelta(hours=1)

    # Wall-clock arithmetic so DST days stay aligned to local midnight
    local = bucket_start.astimezone(tz)
    if granularity == Granularity.DAY:
        return (local + timedelta(days=1)).astimezone(UTC)
    if granularity == Granularity.WEEK:
        return (local + timedelta(days=7)).astimezone(UTC)

    msg = f"Unknown granularity: {granularity}"
    raise ValueError(msg)


def iter_bucket_starts(
    start: datetime,
    end: datetime,
    granularity: Granularity,
    tz: tzinfo = UTC,
) -> list[datetime]:
    """Starts of every bucket overlapping [start, end), ascending."""
    buckets = []
    current = calculate_bucket_start(start, granularity, tz)
    while current < end:
        buckets.append(current)
        current = calculate_bucket_end(current, granularity, tz)
    return buckets


# --- Scalar Metrics ---


def count_views(events: Iterable[Event]) -> int:
    """Number of pageview events."""
    return sum(1 for e in events if e.event_type == "pageview")


def count_unique_visitors(events: Iterable[Event]) -> int:
    """Cardinality of distinct visitor hashes."""
    return len({e.visitor_hash for e in events})


def _group_sessions(events: Iterable[Event]) -> dict[str, list[Event]]:
    sessions: dict[str, list[Event]] = {}
    for event in events:
        sessions.setdefault(event.session_id, []).append(event)
    return sessions


def calculate_bounce_rate(events: Iterable[Event]) -> float:
    """
    Fraction of sessions that bounced.

    A bounced session has exactly one pageview and no heartbeat.
    """
    sessions = _group_sessions(events)
    if not sessions:
        return 0.0

    bounced = 0
    for session_events in sessions.values():
        pageviews = sum(1 for e in session_events if e.event_type == "pageview")
        has_heartbeat = any(e.event_type == "heartbeat" for e in session_events)
        if pageviews == 1 and not has_heartbeat:
            bounced += 1

    return bounced / len(sessions)


# --- Breakdowns ---


def top_n(
    events: Iterable[Event],
    field_name: str,
    limit: int = DEFAULT_TOP_N,
    *,
    other_label: str | None = None,
    unknown_label: str | None = None,
    event_type: str | None = "pageview",
) -> tuple[StatEntry, ...]:
    """
    Frequency table for one event field.

    Args:
        events: Events in the window (chronological order decides ties)
        field_name: Event attribute to group by
        limit: Number of rows to keep
        other_label: If set, rows past `limit` are folded into this label
        unknown_label: If set, null values are counted under this label
        event_type: Only count events of this type (None = all)

    Returns:
        Rows sorted by count descending
    """
    if field_name not in BREAKDOWN_FIELDS:
        msg = f"Unknown breakdown field: {field_name}"
        raise ValueError(msg)

    counts: Counter[str] = Counter()
    for event in events:
        if event_type is not None and event.event_type != event_type:
            continue
        value = getattr(event, field_name)
        if value is None or value == "":
            if unknown_label is None:
                continue
            value = unknown_label
        counts[value] += 1

    # sorted() is stable and Counter keeps insertion order, so ties stay first-seen
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    rows = [StatEntry(label=label, value=count) for label, count in ranked[:limit]]

    remainder = sum(count for _, count in ranked[limit:])
    if other_label is not None and remainder > 0:
        rows.append(StatEntry(label=other_label, value=remainder))

    return tuple(rows)


def last_visits(events: Sequence[Event], limit: int = 10) -> tuple[VisitSnippet, ...]:
    """Most recent pageviews, newest first."""
    if limit <= 0:
        return ()
    pageviews = [e for e in events if e.event_type == "pageview"]
    pageviews.sort(key=lambda e: e.timestamp, reverse=True)
    return tuple(
        VisitSnippet(path=e.path, timestamp=e.timestamp, city=e.city, country=e.country)
        for e in pageviews[:limit]
    )


# --- Core Aggregation ---


def aggregate(
    events: Sequence[Event],
    *,
    top_pages: int = 0,
    unknown_label: str | None = None,
) -> CoreStats:
    """Compute the core statistics for an event set. Empty input yields zeros."""
    return CoreStats(
        total_views=count_views(events),
        unique_visitors=count_unique_visitors(events),
        total_sessions=len({e.session_id for e in events}),
        bounce_rate=calculate_bounce_rate(events),
        top_pages=top_n(events, "path", top_pages, unknown_label=unknown_label)
        if top_pages > 0
        else (),
    )


# --- Time Series ---


def build_time_series(
    events: Iterable[Event],
    start: datetime,
    end: datetime,
    granularity: Granularity,
    tz: tzinfo = UTC,
) -> tuple[TimeSeriesPoint, ...]:
    """
    Bucket events into a contiguous series covering [start, end).

    Events outside the window are ignored. Every bucket is emitted.
    """
    bucket_starts = iter_bucket_starts(start, end, granularity, tz)
    views: dict[datetime, int] = {b: 0 for b in bucket_starts}
    visitors: dict[datetime, set[str]] = {b: set() for b in bucket_starts}

    for event in events:
        if not (start <= event.timestamp < end):
            continue
        bucket = calculate_bucket_start(event.timestamp, granularity, tz)
        if bucket not in views:
            continue
        visitors[bucket].add(event.visitor_hash)
        if event.event_type == "pageview":
            views[bucket] += 1

    return tuple(
        TimeSeriesPoint(bucket_start=b, views=views[b], unique_visitors=len(visitors[b]))
        for b in bucket_starts
    )