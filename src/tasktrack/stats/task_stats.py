# src/tasktrack/stats/task_stats.py

"""
Read-only statistics over the task store.

Views:
- category_time_distribution(): tracked seconds per category
- weekly_stats(): created / completed / tracked in the current calendar week
- daily_activity(): per-day counts for the last N days

Policies:
- Weeks start on Monday by default (WeekStart.SUNDAY is available).
- "Completed in window" means completed == True and updated_at in the window;
  there is no dedicated completion timestamp.
- Calendar boundaries are computed in the timezone of `now`.

Results are memoized per (store.revision, arguments); any mutation or tick
invalidates them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Any

from ..core.ports import Clock
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

_MEMO_LIMIT = 64


class WeekStart(StrEnum):
    MONDAY = "monday"
    SUNDAY = "sunday"

    @classmethod
    def parse(cls, raw: str | None) -> WeekStart:
        if not raw:
            return cls.MONDAY
        try:
            return cls(raw.strip().lower())
        except ValueError:
            logger.warning("Unknown week start %r; using monday", raw)
            return cls.MONDAY


@dataclass(frozen=True, slots=True)
class CategoryTime:
    category_id: str
    name: str
    color: str
    total_seconds: int
    task_count: int
    completed_count: int


@dataclass(frozen=True, slots=True)
class WeeklyStats:
    week_start: datetime
    week_end: datetime  # exclusive
    tasks_created: int
    tasks_completed: int
    tracked_seconds: int
    productivity_score: int


@dataclass(frozen=True, slots=True)
class DayActivity:
    day: date
    label: str
    scheduled: int
    completed: int
    tracked_seconds: int


def _round_half_up(x: float) -> int:
    return int(x + 0.5)


def productivity_score(completed: int, total: int) -> int:
    """Percent of tasks completed, rounded half-up, 0 without tasks, capped at 100."""
    if total <= 0:
        return 0
    return min(100, _round_half_up(completed / total * 100))


def start_of_week(now: datetime, week_start: WeekStart = WeekStart.MONDAY) -> datetime:
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    offset = now.weekday() if week_start == WeekStart.MONDAY else (now.weekday() + 1) % 7
    return midnight - timedelta(days=offset)


class TaskStatistics:
    def __init__(
        self,
        store: TaskStore,
        *,
        clock: Clock | None = None,
        week_start: WeekStart = WeekStart.MONDAY,
    ) -> None:
        self._store = store
        self._clock = clock or store.clock
        self.week_start = week_start
        self._memo: dict[tuple[Any, ...], Any] = {}
        self._memo_revision = -1

    def _cached(self, key: tuple[Any, ...], compute: Callable[[], Any]) -> Any:
        if self._memo_revision != self._store.revision or len(self._memo) >= _MEMO_LIMIT:
            self._memo.clear()
            self._memo_revision = self._store.revision
        if key not in self._memo:
            self._memo[key] = compute()
        return self._memo[key]

    def _local(self, dt: datetime, now: datetime) -> datetime:
        return dt.astimezone(now.tzinfo) if now.tzinfo is not None else dt

    # ---- views ----

    def total_tracked_seconds(self) -> int:
        return self._cached(("total",), lambda: sum(t.total_seconds() for t in self._store.tasks))

    def category_time_distribution(self) -> list[CategoryTime]:
        return self._cached(("categories",), self._category_time_distribution)

    def _category_time_distribution(self) -> list[CategoryTime]:
        by_category: dict[str, list[Task]] = {}
        for task in self._store.tasks:
            by_category.setdefault(task.category_id, []).append(task)

        out: list[CategoryTime] = []
        for category in self._store.categories:
            tasks = by_category.get(category.id, [])
            if not any(t.time_logs for t in tasks):
                continue
            out.append(
                CategoryTime(
                    category_id=category.id,
                    name=category.name,
                    color=category.color,
                    total_seconds=sum(t.total_seconds() for t in tasks),
                    task_count=len(tasks),
                    completed_count=sum(1 for t in tasks if t.completed),
                )
            )
        out.sort(key=lambda c: c.total_seconds, reverse=True)
        return out

    def weekly_stats(self, now: datetime | None = None) -> WeeklyStats:
        now = now or self._clock.now()
        return self._cached(("week", now, self.week_start), lambda: self._weekly_stats(now))

    def _weekly_stats(self, now: datetime) -> WeeklyStats:
        begin = start_of_week(now, self.week_start)
        end = begin + timedelta(days=7)

        def in_window(dt: datetime) -> bool:
            return begin <= self._local(dt, now) < end

        created = 0
        completed = 0
        tracked = 0
        for task in self._store.tasks:
            if in_window(task.created_at):
                created += 1
            if task.completed and in_window(task.updated_at):
                completed += 1
            tracked += sum(log.duration for log in task.time_logs if in_window(log.start_time))

        return WeeklyStats(
            week_start=begin,
            week_end=end,
            tasks_created=created,
            tasks_completed=completed,
            tracked_seconds=tracked,
            productivity_score=productivity_score(completed, created),
        )

    def daily_activity(self, now: datetime | None = None, days: int = 7) -> list[DayActivity]:
        now = now or self._clock.now()
        return self._cached(("days", now, days), lambda: self._daily_activity(now, days))

    def _daily_activity(self, now: datetime, days: int) -> list[DayActivity]:
        today = now.date()
        window = [today - timedelta(days=i) for i in range(max(1, int(days)) - 1, -1, -1)]
        scheduled = dict.fromkeys(window, 0)
        completed = dict.fromkeys(window, 0)
        tracked = dict.fromkeys(window, 0)

        for task in self._store.tasks:
            if task.scheduled_date in scheduled:
                scheduled[task.scheduled_date] += 1
            if task.completed:
                done_day = self._local(task.updated_at, now).date()
                if done_day in completed:
                    completed[done_day] += 1
            for log in task.time_logs:
                log_day = self._local(log.start_time, now).date()
                if log_day in tracked:
                    tracked[log_day] += log.duration

        return [
            DayActivity(
                day=d,
                label=d.strftime("%a"),
                scheduled=scheduled[d],
                completed=completed[d],
                tracked_seconds=tracked[d],
            )
            for d in window
        ]
