# src/tasktrack/tasks/task_models.py

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time


def new_id() -> str:
    return uuid.uuid4().hex


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two instants (floored, never negative)."""
    return max(0, math.floor((end - start).total_seconds()))


@dataclass(slots=True)
class Category:
    id: str
    name: str
    color: str


@dataclass(slots=True)
class Tag:
    id: str
    name: str


@dataclass(slots=True)
class TimeLog:
    """
    One start/stop interval on a task.

    end_time is None while the log is open. For an open log `duration` is a
    cache refreshed by the tracker tick; for a closed log it is fixed.
    """

    id: str
    task_id: str
    start_time: datetime
    end_time: datetime | None = None
    duration: int = 0

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    category_id: str
    completed: bool
    created_at: datetime
    updated_at: datetime

    deadline: datetime | None = None
    scheduled_date: date | None = None
    scheduled_start_time: time | None = None
    scheduled_end_time: time | None = None

    tags: set[str] = field(default_factory=set)

    # Recurrence fields are only meaningful when is_recurring is set.
    is_recurring: bool = False
    recurrence_pattern: str | None = None
    recurrence_frequency: int | None = None
    recurrence_interval: str | None = None
    recurrence_end_date: date | None = None

    time_logs: list[TimeLog] = field(default_factory=list)

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_date is not None

    def open_log(self) -> TimeLog | None:
        for log in self.time_logs:
            if log.is_open:
                return log
        return None

    def total_seconds(self) -> int:
        return sum(log.duration for log in self.time_logs)


# Fields update_task() may merge. id/created_at/time_logs are owned by the store.
TASK_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "category_id",
        "completed",
        "deadline",
        "scheduled_date",
        "scheduled_start_time",
        "scheduled_end_time",
        "tags",
        "is_recurring",
        "recurrence_pattern",
        "recurrence_frequency",
        "recurrence_interval",
        "recurrence_end_date",
    }
)

# Seeded for an identity that has no categories / tags yet.
DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Work", "#4f46e5"),
    ("Personal", "#10b981"),
    ("Health", "#ef4444"),
    ("Learning", "#f59e0b"),
)

DEFAULT_TAGS: tuple[str, ...] = ("Urgent", "Important", "Low Priority")
