"""
Period resolver.

Maps a symbolic filter token (24h, 3d, 7d, 30d, 365d) or an explicit
[start, end) pair to a reporting window, its bucket granularity and the
immediately preceding window of identical duration.

Key behaviors:
- window <= 3 days -> hourly; <= 30 days -> daily; otherwise weekly
- prev_end == start, prev_start == start - (end - start)
- unknown tokens fall back to the default filter instead of erroring
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from .models import AnalyticsQueryError, Granularity, Period

logger = logging.getLogger(__name__)

FILTER_DURATIONS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "3d": timedelta(days=3),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "365d": timedelta(days=365),
}

DEFAULT_FILTER = "7d"


def _ensure_utc(ts: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def granularity_for(duration: timedelta) -> Granularity:
    """Bucket width for a window of the given length."""
    if duration <= timedelta(days=3):
        return Granularity.HOUR
    if duration <= timedelta(days=30):
        return Granularity.DAY
    return Granularity.WEEK


def resolve_range(start: datetime, end: datetime, filter_token: str | None = None) -> Period:
    """
    Resolve an explicit [start, end) window.

    Raises AnalyticsQueryError if end is not after start.
    """
    start = _ensure_utc(start)
    end = _ensure_utc(end)
    if end <= start:
        raise AnalyticsQueryError(
            code="INVALID_RANGE",
            message=f"Range end {end.isoformat()} must be after start {start.isoformat()}",
            field_name="end",
        )

    duration = end - start
    return Period(
        start=start,
        end=end,
        granularity=granularity_for(duration),
        prev_start=start - duration,
        prev_end=start,
        filter=filter_token,
    )


def resolve_period(
    filter_token: str | None,
    now: datetime,
    default_filter: str = DEFAULT_FILTER,
) -> Period:
    """
    Resolve a symbolic filter ending at `now`.

    Unknown or missing tokens resolve to `default_filter`.
    """
    token = filter_token
    if token not in FILTER_DURATIONS:
        if token is not None:
            logger.warning("Unknown period filter %r, falling back to %s", token, default_filter)
        token = default_filter if default_filter in FILTER_DURATIONS else DEFAULT_FILTER

    end = _ensure_utc(now)
    return resolve_range(end - FILTER_DURATIONS[token], end, filter_token=token)
