import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from fastapi import FastAPI

from footprint.adapters.clock import SystemClock
from footprint.adapters.sqlite.migrator import SQLiteMigrator
from footprint.adapters.sqlite_events import SQLiteEventStore
from footprint.api.deps import get_rules, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and migrate on startup (fail-fast)
    try:
        rules = get_rules()
        os.makedirs(settings.data_dir, exist_ok=True)
        SQLiteMigrator(settings.db_path, settings.migrations_dir).run_migrations()
    except Exception:
        logger.critical("Startup failed (rules: %s)", settings.rules_path, exc_info=True)
        raise

    logger.info(
        "Startup complete (db=%s, privacy=%s, cache=%s)",
        settings.db_path,
        rules.privacy.mode.value,
        "on" if rules.cache.enabled else "off",
    )

    retention_days = rules.privacy.data_retention_days
    if retention_days:
        cutoff = SystemClock().now_utc() - timedelta(days=retention_days)
        purged = SQLiteEventStore(settings.db_path).purge_before(cutoff)
        logger.info("Retention purge removed %d events older than %s", purged, cutoff)
    yield


app = FastAPI(
    title="Footprint Analytics API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from footprint.api.routes import admin_analytics  # noqa: E402

app.include_router(admin_analytics.router, prefix="/api/analytics", tags=["Analytics"])


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
