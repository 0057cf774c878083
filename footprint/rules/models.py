from enum import Enum

from pydantic import BaseModel, Field, field_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str

class PrivacyMode(str, Enum):
    STANDARD = "STANDARD"  # all dimensions collected
    STRICT = "STRICT"  # no city, browser or OS
    PARANOID = "PARANOID"  # no geolocation, no user agent details

class PrivacyRules(BaseModel):
    mode: PrivacyMode = PrivacyMode.STANDARD
    hash_rotation_hours: int = Field(24, ge=1)
    data_retention_days: int = Field(0, ge=0)  # 0 = keep forever

PERIOD_FILTERS = ("24h", "3d", "7d", "30d", "365d")

class PeriodRules(BaseModel):
    default_filter: str = "7d"

    @field_validator("default_filter")
    @classmethod
    def _known_filter(cls, value: str) -> str:
        if value not in PERIOD_FILTERS:
            raise ValueError(f"Unknown period filter: {value} (expected one of {PERIOD_FILTERS})")
        return value

class ReportRules(BaseModel):
    top_n: int = Field(10, ge=1)
    other_label: str = "Other"
    unknown_label: str | None = None
    last_visits_limit: int = Field(10, ge=0)
    stats_top_pages: int = Field(5, ge=0)

class HeatmapRules(BaseModel):
    lookback_days: int = Field(90, ge=1)
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

class CalendarRules(BaseModel):
    days: int = Field(365, ge=1)

class CacheRules(BaseModel):
    enabled: bool = True
    max_entries: int = Field(500, ge=1)
    ttl_seconds: int = Field(30, ge=1)

class AnalyticsRules(BaseModel):
    project: ProjectRules
    privacy: PrivacyRules = Field(default_factory=PrivacyRules)
    periods: PeriodRules = Field(default_factory=PeriodRules)
    reports: ReportRules = Field(default_factory=ReportRules)
    heatmap: HeatmapRules = Field(default_factory=HeatmapRules)
    calendar: CalendarRules = Field(default_factory=CalendarRules)
    cache: CacheRules = Field(default_factory=CacheRules)


def default_rules() -> AnalyticsRules:
    """Rules with every section at its default (tests, dev)."""
    return AnalyticsRules(project=ProjectRules(slug="footprint", rules_version="1"))
