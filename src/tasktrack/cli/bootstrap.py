# src/tasktrack/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist when persistence is on,
- wires the record store (SQLite, or none for in-memory mode), the task
  store, tracker, ticker and statistics into AppState.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import get_settings
from ..core.ports import Clock, Notifier, RecordStore
from ..core.session import User
from ..core.state import AppState
from ..stats.task_stats import TaskStatistics, WeekStart
from ..storage.sqlite_store import SQLiteRecordStore
from ..tasks.task_store import TaskStore
from ..tasks.time_ticker import TrackingTicker
from ..tasks.time_tracking import TimeTracker

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.records_db_path).parent.mkdir(parents=True, exist_ok=True)


def _build_records(settings) -> RecordStore | None:
    if not getattr(settings, "persistence_enabled", False):
        logger.info("Persistence disabled; running in-memory")
        return None
    try:
        _ensure_local_dirs(settings)
        return SQLiteRecordStore(settings.records_db_path)
    except Exception:
        # Fallback for read-only or broken data dirs: keep working in memory.
        logger.exception("Record store unavailable; running in-memory")
        return None


def create_initial_state(
    *,
    settings=None,
    records: RecordStore | None = None,
    clock: Clock | None = None,
    notifier: Notifier | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings(). An explicit `records`
    wins over the one settings would build.
    """
    if settings is None:
        settings = get_settings()

    if records is None:
        records = _build_records(settings)

    store = TaskStore(records, clock=clock, notifier=notifier)
    tracker = TimeTracker(store)
    ticker = TrackingTicker(tracker, interval_seconds=float(getattr(settings, "tick_interval_seconds", 1.0)))
    stats = TaskStatistics(store, week_start=WeekStart.parse(getattr(settings, "week_start", None)))

    return AppState(
        settings=settings,
        store=store,
        tracker=tracker,
        ticker=ticker,
        stats=stats,
    )


def identity_from_settings(settings) -> User:
    """The console has no login flow; the identity comes from settings."""
    return User(
        id=str(getattr(settings, "user_id", "local") or "local"),
        name=str(getattr(settings, "user_name", "Local User") or "Local User"),
        email=str(getattr(settings, "user_email", "") or ""),
    )
