"""
Tests for the period resolver.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import pytest

from footprint.components.analytics import (
    AnalyticsQueryError,
    Granularity,
    granularity_for,
    resolve_period,
    resolve_range,
)

NOW = datetime(2024, 6, 15, 14, 30, 45, tzinfo=UTC)


class TestGranularity:
    @pytest.mark.parametrize(
        ("duration", "expected"),
        [
            (timedelta(hours=24), Granularity.HOUR),
            (timedelta(days=3), Granularity.HOUR),
            (timedelta(days=3, seconds=1), Granularity.DAY),
            (timedelta(days=30), Granularity.DAY),
            (timedelta(days=31), Granularity.WEEK),
            (timedelta(days=365), Granularity.WEEK),
        ],
    )
    def test_boundaries(self, duration: timedelta, expected: Granularity) -> None:
        assert granularity_for(duration) == expected


class TestResolvePeriod:
    @pytest.mark.parametrize(
        ("token", "days", "granularity"),
        [
            ("24h", 1, Granularity.HOUR),
            ("3d", 3, Granularity.HOUR),
            ("7d", 7, Granularity.DAY),
            ("30d", 30, Granularity.DAY),
            ("365d", 365, Granularity.WEEK),
        ],
    )
    def test_known_tokens(self, token: str, days: int, granularity: Granularity) -> None:
        period = resolve_period(token, NOW)

        assert period.end == NOW
        assert period.start == NOW - timedelta(days=days)
        assert period.granularity == granularity
        assert period.filter == token

    def test_previous_window_is_adjacent_and_equal_length(self) -> None:
        period = resolve_period("7d", NOW)

        assert period.prev_end == period.start
        assert period.end - period.start == period.prev_end - period.prev_start

    def test_unknown_token_falls_back_to_default(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            period = resolve_period("90d", NOW)

        assert period.filter == "7d"
        assert period.start == NOW - timedelta(days=7)
        assert "90d" in caplog.text

    def test_missing_token_uses_configured_default(self) -> None:
        period = resolve_period(None, NOW, default_filter="30d")

        assert period.filter == "30d"
        assert period.granularity == Granularity.DAY

    def test_naive_now_is_treated_as_utc(self) -> None:
        period = resolve_period("24h", NOW.replace(tzinfo=None))
        assert period.end == NOW


class TestResolveRange:
    def test_explicit_range(self) -> None:
        start = datetime(2024, 6, 1, tzinfo=UTC)
        end = datetime(2024, 6, 3, tzinfo=UTC)

        period = resolve_range(start, end)

        assert period.granularity == Granularity.HOUR
        assert period.prev_start == datetime(2024, 5, 30, tzinfo=UTC)
        assert period.prev_end == start
        assert period.filter is None

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=-1)])
    def test_end_not_after_start_is_rejected(self, offset: timedelta) -> None:
        with pytest.raises(AnalyticsQueryError) as exc:
            resolve_range(NOW, NOW + offset)
        assert exc.value.code == "INVALID_RANGE"
