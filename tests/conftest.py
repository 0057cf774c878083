import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from footprint.adapters.sqlite.migrator import SQLiteMigrator
from footprint.core.entities import Event

MIGRATIONS_DIR = str(Path(__file__).resolve().parent.parent / "migrations")

# Saturday 2024-06-15 14:30:45 UTC
FIXED_NOW = datetime(2024, 6, 15, 14, 30, 45, tzinfo=UTC)


class FakeTimePort:
    """Deterministic time provider."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self._now = now

    def now_utc(self) -> datetime:
        return self._now

    def set_now(self, now: datetime) -> None:
        self._now = now

    def advance(self, seconds: int) -> None:
        self._now += timedelta(seconds=seconds)


EventFactory = Callable[..., Event]


@pytest.fixture
def clock() -> FakeTimePort:
    return FakeTimePort()


@pytest.fixture
def make_event() -> EventFactory:
    """
    Build an Event with sensible defaults.

    `at` is a datetime or an offset in minutes before FIXED_NOW.
    """

    def _make(
        path: str = "/",
        *,
        at: datetime | int = 60,
        visitor: str = "v1",
        session: str | None = None,
        event_type: str = "pageview",
        project_id: str = "p1",
        **fields: Any,
    ) -> Event:
        timestamp = at if isinstance(at, datetime) else FIXED_NOW - timedelta(minutes=at)
        return Event(
            project_id=project_id,
            visitor_hash=visitor,
            session_id=session or f"s-{visitor}",
            event_type=event_type,
            path=path,
            timestamp=timestamp,
            **fields,
        )

    return _make


@pytest.fixture
def migrations_dir() -> str:
    return MIGRATIONS_DIR


@pytest.fixture
def db_path(tmp_path) -> str:
    """Migrated SQLite database on tmp_path."""
    path = os.path.join(str(tmp_path), "footprint.db")
    SQLiteMigrator(path, MIGRATIONS_DIR).run_migrations()
    return path
