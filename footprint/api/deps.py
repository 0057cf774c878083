import os
from functools import lru_cache
from pathlib import Path

from footprint.adapters.clock import SystemClock
from footprint.adapters.sqlite_events import (
    SQLiteEventStore,
    SQLiteFunnelRepo,
    SQLiteGoalRepo,
    SQLiteSegmentRepo,
)
from footprint.components.analytics import AnalyticsService
from footprint.rules.loader import load_rules
from footprint.rules.models import AnalyticsRules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("FOOTPRINT_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "footprint.db")
        self.migrations_dir = str(self.base_dir / "migrations")
        self.rules_path = Path(os.environ.get("FOOTPRINT_RULES", self.base_dir / "rules.yaml"))


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules() -> AnalyticsRules:
    return load_rules(get_settings().rules_path)


# --- Component Services ---
@lru_cache
def get_analytics_service() -> AnalyticsService:
    """
    Process-wide analytics service.

    A single instance so the result cache is shared across requests.
    """
    settings = get_settings()
    rules = get_rules()
    return AnalyticsService(
        event_store=SQLiteEventStore(settings.db_path, privacy=rules.privacy),
        goal_repo=SQLiteGoalRepo(settings.db_path),
        funnel_repo=SQLiteFunnelRepo(settings.db_path),
        segment_repo=SQLiteSegmentRepo(settings.db_path),
        time_port=SystemClock(),
        rules=rules,
    )
