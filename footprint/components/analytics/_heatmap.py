"""
Activity heatmap, peak-time analysis and contribution calendar.

Key behaviors:
- Heatmap is a full 7x24 grid (day 0 = Sunday) over a trailing lookback
  window, counting pageview and heartbeat events in local time
- Peak analysis ranks hour and day totals; ties go to the earliest index
- Calendar emits one bucket per day ending today, with an intensity level
  relative to the busiest day in the window
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta, tzinfo

from footprint.core.entities import Event

from .models import (
    ActivityCell,
    ContributionCalendar,
    ContributionDay,
    PeakTimeAnalysis,
    StatEntry,
)

DAY_NAMES: tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

HEATMAP_EVENT_TYPES: frozenset[str] = frozenset({"pageview", "heartbeat"})

TOP_HOURS = 5
TOP_DAYS = 3
MAX_INTENSITY = 4


# --- Heatmap ---


def day_of_week_index(local_ts: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return local_ts.isoweekday() % 7


def build_heatmap(events: Iterable[Event], tz: tzinfo = UTC) -> tuple[ActivityCell, ...]:
    """
    Build the 7x24 activity grid.

    Every cell is emitted (zero-filled), ordered by day then hour.
    """
    grid = [[0] * 24 for _ in range(7)]
    for event in events:
        if event.event_type not in HEATMAP_EVENT_TYPES:
            continue
        local = event.timestamp.astimezone(tz)
        grid[day_of_week_index(local)][local.hour] += 1

    return tuple(
        ActivityCell(day_of_week=day, hour=hour, count=grid[day][hour])
        for day in range(7)
        for hour in range(24)
    )


def _rank(totals: list[int], limit: int) -> list[int]:
    """Indexes of the highest non-zero totals, earliest index first on ties."""
    order = sorted(range(len(totals)), key=lambda i: (-totals[i], i))
    return [i for i in order if totals[i] > 0][:limit]


def analyze_peak_times(heatmap: Iterable[ActivityCell]) -> PeakTimeAnalysis:
    """
    Derive top hours, top days and single peaks from the heatmap.

    Hours/days with no activity are not ranked. With no activity at all
    the peaks default to hour 0 and day 0.
    """
    hour_totals = [0] * 24
    day_totals = [0] * 7
    for cell in heatmap:
        hour_totals[cell.hour] += cell.count
        day_totals[cell.day_of_week] += cell.count

    top_hours = _rank(hour_totals, TOP_HOURS)
    top_days = _rank(day_totals, TOP_DAYS)

    return PeakTimeAnalysis(
        top_hours=tuple(StatEntry(label=f"{h}:00", value=hour_totals[h]) for h in top_hours),
        top_days=tuple(StatEntry(label=DAY_NAMES[d], value=day_totals[d]) for d in top_days),
        peak_hour=top_hours[0] if top_hours else 0,
        peak_day=top_days[0] if top_days else 0,
    )


# --- Contribution Calendar ---


def intensity_level(visits: int, max_visits: int) -> int:
    """
    Relative activity level 0-4.

    0 for no visits. Otherwise ceil(4 * visits / max_visits) clamped to
    [1, 4], so every day above three quarters of the maximum is level 4.
    """
    if visits <= 0 or max_visits <= 0:
        return 0
    level = -(-MAX_INTENSITY * visits // max_visits)  # integer ceil
    return max(1, min(MAX_INTENSITY, level))


def calendar_window(now: datetime, days: int, tz: tzinfo = UTC) -> tuple[datetime, datetime]:
    """UTC [start, end) covering `days` local days ending with today."""
    today = now.astimezone(tz).date()
    first = today - timedelta(days=days - 1)
    start = datetime(first.year, first.month, first.day, tzinfo=tz)
    tomorrow = today + timedelta(days=1)
    end = datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def build_contribution_calendar(
    events: Iterable[Event],
    today: date,
    days: int = 365,
    tz: tzinfo = UTC,
) -> ContributionCalendar:
    """
    Build `days` daily buckets ending at `today` (inclusive).

    visits counts pageviews; unique_visitors counts distinct hashes across
    all event types on that local day.
    """
    first = today - timedelta(days=days - 1)
    visits: dict[date, int] = {}
    visitors: dict[date, set[str]] = {}

    for event in events:
        day = event.timestamp.astimezone(tz).date()
        if day < first or day > today:
            continue
        visitors.setdefault(day, set()).add(event.visitor_hash)
        if event.event_type == "pageview":
            visits[day] = visits.get(day, 0) + 1

    max_visits = max(visits.values(), default=0)

    calendar_days = []
    for offset in range(days):
        day = first + timedelta(days=offset)
        day_visits = visits.get(day, 0)
        calendar_days.append(
            ContributionDay(
                date=day,
                visits=day_visits,
                unique_visitors=len(visitors.get(day, ())),
                intensity_level=intensity_level(day_visits, max_visits),
            )
        )

    return ContributionCalendar(
        days=tuple(calendar_days),
        max_visits=max_visits,
        start_date=first,
        end_date=today,
    )
