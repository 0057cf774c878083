"""
SQLite event store and definition repositories.

Implements EventStorePort, GoalRepoPort, FunnelRepoPort and
SegmentRepoPort. Storage errors (sqlite3.Error) propagate unchanged.

Timestamps are stored as fixed-width UTC text so [start, end) range
scans can use the (project_id, timestamp) index.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Any

from footprint.adapters.privacy import scrub_event
from footprint.core.entities import ConversionGoal, Event, Funnel, FunnelStep, Segment
from footprint.rules.models import PrivacyRules

TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def format_ts(ts: datetime) -> str:
    """Fixed-width UTC text for a timestamp (naive = UTC)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).strftime(TS_FORMAT)


def parse_ts(s: str) -> datetime:
    return datetime.strptime(s, TS_FORMAT).replace(tzinfo=UTC)


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None


# -----------------------------------------------------------------------------
# Event Store
# -----------------------------------------------------------------------------


class SQLiteEventStore(SQLiteRepoBase):
    """
    SQLite implementation of EventStorePort.

    The privacy configuration is fixed at construction; every returned
    event has the fields hidden by the active mode set to None.
    """

    def __init__(
        self,
        db_path: str,
        privacy: PrivacyRules | None = None,
        connection: sqlite3.Connection | None = None,
    ):
        super().__init__(db_path, connection)
        self._privacy = privacy or PrivacyRules()

    def query_events(self, project_id: str, start: datetime, end: datetime) -> list[Event]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM events
                WHERE project_id = ? AND timestamp >= ? AND timestamp < ?
                ORDER BY timestamp ASC, id ASC
                """,
                (project_id, format_ts(start), format_ts(end)),
            ).fetchall()
            return [scrub_event(self._map_row(row), self._privacy) for row in rows]
        finally:
            if self._should_close():
                conn.close()

    def append(self, events: list[Event]) -> int:
        """Store events. Returns the number written."""
        conn = self._get_conn()
        try:
            conn.executemany(
                """
                INSERT INTO events (
                    project_id, visitor_hash, session_id, event_type, event_name,
                    path, referrer, country, city, browser, os, device,
                    duration_seconds, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        e.project_id,
                        e.visitor_hash,
                        e.session_id,
                        e.event_type,
                        e.event_name,
                        e.path,
                        e.referrer,
                        e.country,
                        e.city,
                        e.browser,
                        e.os,
                        e.device,
                        e.duration_seconds,
                        format_ts(e.timestamp),
                    )
                    for e in events
                ],
            )
            if self._should_close():
                conn.commit()
            return len(events)
        finally:
            if self._should_close():
                conn.close()

    def purge_before(self, cutoff: datetime) -> int:
        """Delete events older than `cutoff` (retention). Returns rows removed."""
        conn = self._get_conn()
        try:
            cursor = conn.execute("DELETE FROM events WHERE timestamp < ?", (format_ts(cutoff),))
            if self._should_close():
                conn.commit()
            return cursor.rowcount
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> Event:
        return Event(
            project_id=row["project_id"],
            visitor_hash=row["visitor_hash"],
            session_id=row["session_id"],
            event_type=row["event_type"],
            event_name=row["event_name"],
            path=row["path"],
            referrer=row["referrer"],
            country=row["country"],
            city=row["city"],
            browser=row["browser"],
            os=row["os"],
            device=row["device"],
            duration_seconds=row["duration_seconds"],
            timestamp=parse_ts(row["timestamp"]),
        )


# -----------------------------------------------------------------------------
# Definition Repositories
# -----------------------------------------------------------------------------


class SQLiteGoalRepo(SQLiteRepoBase):
    """SQLite implementation of GoalRepoPort."""

    def list_active_goals(self, project_id: str) -> list[ConversionGoal]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM conversion_goals
                WHERE project_id = ? AND is_active = 1
                ORDER BY created_at ASC, id ASC
                """,
                (project_id,),
            ).fetchall()
            return [self._map_row(row) for row in rows]
        finally:
            if self._should_close():
                conn.close()

    def save(self, goal: ConversionGoal) -> ConversionGoal:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO conversion_goals (
                    id, project_id, name, goal_type, match_pattern, is_active
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    goal.id,
                    goal.project_id,
                    goal.name,
                    goal.goal_type,
                    goal.match_pattern,
                    int(goal.is_active),
                ),
            )
            if self._should_close():
                conn.commit()
            return goal
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> ConversionGoal:
        return ConversionGoal(
            id=row["id"],
            project_id=row["project_id"],
            name=row["name"],
            goal_type=row["goal_type"],
            match_pattern=row["match_pattern"],
            is_active=bool(row["is_active"]),
        )


class SQLiteFunnelRepo(SQLiteRepoBase):
    """SQLite implementation of FunnelRepoPort."""

    def get_funnel(self, project_id: str, funnel_id: str) -> Funnel | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM funnels WHERE id = ? AND project_id = ?",
                (funnel_id, project_id),
            ).fetchone()
            if not row:
                return None

            step_rows = conn.execute(
                "SELECT * FROM funnel_steps WHERE funnel_id = ? ORDER BY step_order ASC",
                (funnel_id,),
            ).fetchall()
            return Funnel(
                id=row["id"],
                project_id=row["project_id"],
                name=row["name"],
                steps=tuple(
                    FunnelStep(
                        name=s["name"],
                        step_type=s["step_type"],
                        match_pattern=s["match_pattern"],
                    )
                    for s in step_rows
                ),
            )
        finally:
            if self._should_close():
                conn.close()

    def save(self, funnel: Funnel) -> Funnel:
        """Insert or replace a funnel together with its ordered steps."""
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO funnels (id, project_id, name) VALUES (?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    project_id = excluded.project_id, name = excluded.name
                """,
                (funnel.id, funnel.project_id, funnel.name),
            )
            conn.execute("DELETE FROM funnel_steps WHERE funnel_id = ?", (funnel.id,))
            conn.executemany(
                """
                INSERT INTO funnel_steps (funnel_id, step_order, name, step_type, match_pattern)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (funnel.id, index, step.name, step.step_type, step.match_pattern)
                    for index, step in enumerate(funnel.steps)
                ],
            )
            if self._should_close():
                conn.commit()
            return funnel
        finally:
            if self._should_close():
                conn.close()


class SQLiteSegmentRepo(SQLiteRepoBase):
    """SQLite implementation of SegmentRepoPort."""

    def get_segment(self, project_id: str, segment_id: str) -> Segment | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM segments WHERE id = ? AND project_id = ?",
                (segment_id, project_id),
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def save(self, segment: Segment) -> Segment:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO segments (
                    id, project_id, name, description, filter_tree_json
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    segment.id,
                    segment.project_id,
                    segment.name,
                    segment.description,
                    json.dumps(segment.filter_tree),
                ),
            )
            if self._should_close():
                conn.commit()
            return segment
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> Segment:
        return Segment(
            id=row["id"],
            project_id=row["project_id"],
            name=row["name"],
            description=row["description"],
            filter_tree=json.loads(row["filter_tree_json"]),
        )
