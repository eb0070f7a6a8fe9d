# src/tasktrack/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..stats.task_stats import TaskStatistics
from ..tasks.task_store import TaskStore
from ..tasks.time_ticker import TrackingTicker
from ..tasks.time_tracking import TimeTracker
from .session import User


@dataclass
class AppState:
    # Settings object (Settings in production, SimpleNamespace in tests).
    settings: Any

    store: TaskStore
    tracker: TimeTracker
    ticker: TrackingTicker
    stats: TaskStatistics

    user: User | None = None
