# src/tasktrack/tasks/time_tracking.py

"""
Time-tracking state machine.

States:
- IDLE:      no open time log anywhere in the store
- TRACKING:  exactly one open log, owned by `active_task_id`

All transitions go through start() / stop(); reset() is stop() + start().
tick() only refreshes the live duration of the open log, it never closes it
and never persists. Scheduling the tick is someone else's job (time_ticker).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from ..core.ports import Clock
from ..core.results import MutationResult
from .task_models import Task
from .task_store import StoreEvent, StoreEventKind, TaskStore

logger = logging.getLogger(__name__)


class TrackingState(StrEnum):
    IDLE = "idle"
    TRACKING = "tracking"


class TrackingEventKind(StrEnum):
    STARTED = "started"
    STOPPED = "stopped"
    TICK = "tick"
    CLEARED = "cleared"  # tracking dropped without a stop (task deleted, session reset)


@dataclass(frozen=True, slots=True)
class TrackingEvent:
    kind: TrackingEventKind
    task_id: str | None
    seconds: int = 0


TrackingListener = Callable[[TrackingEvent], None]


class TimeTracker:
    def __init__(self, store: TaskStore, *, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or store.clock
        self._active_task_id: str | None = None
        self._listeners: list[TrackingListener] = []
        store.add_listener(self._on_store_event)
        if store.user_id is not None:
            self.resume_from_store()

    # ---- events ----

    def add_listener(self, listener: TrackingListener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: TrackingEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Tracking listener failed event=%s", event.kind.value)

    def _on_store_event(self, event: StoreEvent) -> None:
        if event.kind == StoreEventKind.TASK_DELETED:
            if event.task_id is not None and event.task_id == self._active_task_id:
                logger.info("Tracked task %s deleted; tracking cleared", event.task_id)
                self._clear()
        elif event.kind == StoreEventKind.CLEARED:
            self._clear()
        elif event.kind == StoreEventKind.LOADED:
            # Reloaded records may carry an open log; adopt it.
            self._clear()
            self.resume_from_store()

    def _clear(self) -> None:
        if self._active_task_id is None:
            return
        task_id = self._active_task_id
        self._active_task_id = None
        self._emit(TrackingEvent(TrackingEventKind.CLEARED, task_id))

    # ---- state ----

    @property
    def active_task_id(self) -> str | None:
        return self._active_task_id

    @property
    def state(self) -> TrackingState:
        return TrackingState.TRACKING if self.current_task() is not None else TrackingState.IDLE

    @property
    def is_tracking(self) -> bool:
        return self.current_task() is not None

    def current_task(self) -> Task | None:
        """
        The task owning the open log, or None when idle.

        Looked up by id; if the store no longer has the task (or its open log),
        the tracker falls back to IDLE.
        """
        if self._active_task_id is None:
            return None
        task = self._store.get_task_by_id(self._active_task_id)
        if task is None or task.open_log() is None:
            logger.debug("Active task %s vanished; treating as idle", self._active_task_id)
            self._clear()
            return None
        return task

    def current_session_seconds(self) -> int:
        task = self.current_task()
        log = task.open_log() if task is not None else None
        return log.duration if log is not None else 0

    def total_seconds(self, task_id: str) -> int:
        """Closed logs plus the live value of the open one."""
        task = self._store.get_task_by_id(task_id)
        return task.total_seconds() if task is not None else 0

    # ---- transitions ----

    def start(self, task_id: str) -> MutationResult:
        """
        Start tracking task_id.

        If another task is being tracked, it is stopped first.
        Starting the task that is already tracked is a no-op.
        """
        task = self._store.get_task_by_id(task_id)
        if task is None:
            return self._store.publish(MutationResult.not_found("Task not found"))

        current = self.current_task()
        if current is not None and current.id == task_id:
            return self._store.publish(MutationResult.noop(f'Already tracking "{task.title}"', task.open_log()))

        if current is not None:
            self.stop(current.id)

        for other in self._store.tasks:
            if other.id != task_id and other.open_log() is not None:
                logger.warning("Closing stray open log task=%s", other.id)
                self._store.close_time_log(other.id, self._clock.now())

        dangling = task.open_log()
        if dangling is not None:
            # Open log left over from a previous session: adopt it.
            self._active_task_id = task_id
            self._emit(TrackingEvent(TrackingEventKind.STARTED, task_id, dangling.duration))
            return self._store.publish(MutationResult.noop(f'Resumed tracking "{task.title}"', dangling))

        result = self._store.open_time_log(task_id, self._clock.now())
        if result.ok:
            self._active_task_id = task_id
            logger.info("Tracking started task=%s", task_id)
            self._emit(TrackingEvent(TrackingEventKind.STARTED, task_id))
        return result

    def stop(self, task_id: str) -> MutationResult:
        """Stop tracking task_id; no-op unless it is the tracked task."""
        if self._active_task_id != task_id or self.current_task() is None:
            return self._store.publish(MutationResult.noop("Task is not being tracked"))

        result = self._store.close_time_log(task_id, self._clock.now())
        self._active_task_id = None
        seconds = result.value.duration if result.ok and result.value is not None else 0
        logger.info("Tracking stopped task=%s duration=%ss", task_id, seconds)
        self._emit(TrackingEvent(TrackingEventKind.STOPPED, task_id, seconds))
        return result

    def stop_current(self) -> MutationResult:
        task = self.current_task()
        if task is None:
            return self._store.publish(MutationResult.noop("Nothing is being tracked"))
        return self.stop(task.id)

    def reset(self, task_id: str | None = None) -> MutationResult:
        """
        Restart the current session: the open interval is closed and kept,
        a fresh one starts now (displayed session time goes back to zero).
        """
        current = self.current_task()
        if current is None or (task_id is not None and task_id != current.id):
            return self._store.publish(MutationResult.noop("Task is not being tracked"))

        self.stop(current.id)
        return self.start(current.id)

    def tick(self, now: datetime | None = None) -> int | None:
        """Refresh the live duration of the open log; returns it (None when idle)."""
        task = self.current_task()
        if task is None:
            return None
        seconds = self._store.refresh_open_log(task.id, now or self._clock.now())
        if seconds is not None:
            self._emit(TrackingEvent(TrackingEventKind.TICK, task.id, seconds))
        return seconds

    # ---- session ----

    def resume_from_store(self) -> Task | None:
        """
        Adopt a persisted open log after a reload.

        The most recently started open log becomes the active one. Any other
        open logs are closed at start_time + cached duration so at most one
        stays open.
        """
        self._active_task_id = None

        open_logs = [(task, log) for task in self._store.tasks for log in task.time_logs if log.is_open]
        if not open_logs:
            return None

        open_logs.sort(key=lambda pair: pair[1].start_time)
        *stale, (task, log) = open_logs
        for stale_task, stale_log in stale:
            end = stale_log.start_time + timedelta(seconds=stale_log.duration)
            logger.warning("Closing stale open log=%s task=%s", stale_log.id, stale_task.id)
            self._store.close_time_log(stale_task.id, end, log_id=stale_log.id)

        self._active_task_id = task.id
        self._store.refresh_open_log(task.id, self._clock.now())
        logger.info("Resumed tracking task=%s log=%s", task.id, log.id)
        self._emit(TrackingEvent(TrackingEventKind.STARTED, task.id, log.duration))
        return task
