# src/tasktrack/tasks/task_store.py

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from ..core.clock import SystemClock
from ..core.errors import (
    CategoryInUseError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..core.ports import Clock, EntityKind, Notifier, RecordStore
from ..core.results import MutationResult, MutationStatus
from ..storage import records as rec
from ..utils.durations import to_iso
from .task_models import (
    DEFAULT_CATEGORIES,
    DEFAULT_TAGS,
    TASK_UPDATABLE_FIELDS,
    Category,
    Tag,
    Task,
    TimeLog,
    elapsed_seconds,
    new_id,
)

logger = logging.getLogger(__name__)

Write = Callable[[RecordStore], Any]


class StoreEventKind(StrEnum):
    TASK_DELETED = "task_deleted"
    LOADED = "loaded"
    CLEARED = "cleared"


@dataclass(frozen=True, slots=True)
class StoreEvent:
    kind: StoreEventKind
    task_id: str | None = None


StoreListener = Callable[[StoreEvent], None]


class TaskStore:
    """
    Authoritative in-memory collections of categories, tags and tasks.

    Every mutation is two-phase:
    - apply to the local collections (this never gets rolled back),
    - then mirror it to the record store, if one is configured.
    A record store failure downgrades the result to "degraded".

    Without a record store (records=None) the store is purely in-memory and
    every successful mutation is "ok".

    Single writer: not thread-safe, all calls are expected from one session.
    """

    def __init__(
        self,
        records: RecordStore | None = None,
        *,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._records = records
        self.clock: Clock = clock or SystemClock()
        self._notifier = notifier
        self._listeners: list[StoreListener] = []

        self.user_id: str | None = None
        self._tasks: dict[str, Task] = {}
        self._categories: dict[str, Category] = {}
        self._tags: dict[str, Tag] = {}

        # Bumped on every change (including ticks); stats memoize on it.
        self.revision = 0

    # ---- snapshot ----

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    @property
    def categories(self) -> list[Category]:
        return list(self._categories.values())

    @property
    def tags(self) -> list[Tag]:
        return list(self._tags.values())

    @property
    def records(self) -> RecordStore | None:
        return self._records

    @property
    def has_records(self) -> bool:
        return self._records is not None

    # ---- events / notifications ----

    def add_listener(self, listener: StoreListener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Store listener failed event=%s", event.kind.value)

    def publish(self, result: MutationResult) -> MutationResult:
        """Hand a result to the notifier (user-facing transient notice)."""
        if self._notifier is not None:
            try:
                self._notifier(result)
            except Exception:
                logger.exception("Notifier failed for %r", result.message)
        return result

    # ---- low-level helpers ----

    def _now(self) -> datetime:
        return self.clock.now()

    def _sync(self, what: str, writes: Iterable[Write]) -> PersistenceError | None:
        """Mirror a local change to the record store (best-effort)."""
        if self._records is None or self.user_id is None:
            return None
        try:
            for write in writes:
                write(self._records)
        except Exception as exc:
            logger.warning("Persist failed (%s); keeping local change.", what, exc_info=True)
            return PersistenceError(f"{what}: {exc}")
        return None

    def _finish(self, message: str, value: Any, error: PersistenceError | None) -> MutationResult:
        self.revision += 1
        if error is None:
            return self.publish(MutationResult.success(message, value))
        return self.publish(
            MutationResult(
                MutationStatus.DEGRADED,
                f"{message} (saved locally, not persisted)",
                value,
                error,
            )
        )

    def _reject(self, message: str, error: Exception) -> MutationResult:
        logger.debug("Rejected: %s", message)
        return self.publish(MutationResult.rejected(message, error))

    def _missing(self, kind: str, entity_id: str) -> MutationResult:
        logger.debug("%s %s not found", kind, entity_id)
        return self.publish(
            MutationResult.not_found(f"{kind.capitalize()} not found", NotFoundError(kind, entity_id))
        )

    def _check_refs(self, category_id: str | None, tag_ids: Iterable[str] | None) -> str | None:
        if category_id is not None and category_id not in self._categories:
            return f"Unknown category: {category_id}"
        for tag_id in tag_ids or ():
            if tag_id not in self._tags:
                return f"Unknown tag: {tag_id}"
        return None

    def _uid(self) -> str:
        # Only called from writes, which _sync runs with a user set.
        return self.user_id or ""

    # ---- session lifecycle ----

    def _reset(self) -> None:
        self._tasks.clear()
        self._categories.clear()
        self._tags.clear()
        self.revision += 1

    def clear(self) -> None:
        """Drop everything (identity cleared)."""
        self._reset()
        self.user_id = None
        logger.info("Store cleared")
        self._emit(StoreEvent(StoreEventKind.CLEARED))

    def load(self, user_id: str) -> MutationResult:
        """
        Load the collections for user_id from the record store.

        Seeds the default categories / tags when the identity has none.
        A failing record store leaves an empty (seeded) local store and a
        degraded result.
        """
        self._reset()
        self.user_id = user_id

        error: PersistenceError | None = None
        if self._records is not None:
            try:
                self._load_records(self._records, user_id)
            except Exception as exc:
                logger.warning("Loading records failed for user=%s", user_id, exc_info=True)
                self._reset()
                error = PersistenceError(f"load: {exc}")

        seeded = self._seed_defaults(persist=error is None)
        if error is None:
            error = seeded

        logger.info(
            "Store loaded user=%s tasks=%d categories=%d tags=%d",
            user_id,
            len(self._tasks),
            len(self._categories),
            len(self._tags),
        )
        self._emit(StoreEvent(StoreEventKind.LOADED))
        return self._finish("Data loaded", None, error)

    def _load_records(self, records: RecordStore, user_id: str) -> None:
        for row in records.list_by_user(EntityKind.CATEGORY, user_id):
            category = rec.category_from_record(row)
            self._categories[category.id] = category

        for row in records.list_by_user(EntityKind.TAG, user_id):
            tag = rec.tag_from_record(row)
            self._tags[tag.id] = tag

        tasks = [rec.task_from_record(row) for row in records.list_by_user(EntityKind.TASK, user_id)]
        tasks.sort(key=lambda t: t.created_at)
        for task in tasks:
            self._tasks[task.id] = task

        for row in records.list_by_user(EntityKind.TASK_TAG, user_id):
            task = self._tasks.get(str(row.get("task_id")))
            tag_id = str(row.get("tag_id"))
            if task is not None and tag_id in self._tags:
                task.tags.add(tag_id)

        logs = [rec.time_log_from_record(row) for row in records.list_by_user(EntityKind.TIME_LOG, user_id)]
        logs.sort(key=lambda log: log.start_time)
        for log in logs:
            task = self._tasks.get(log.task_id)
            if task is None:
                logger.debug("Dropping orphan time log id=%s task=%s", log.id, log.task_id)
                continue
            task.time_logs.append(log)

    def _seed_defaults(self, *, persist: bool) -> PersistenceError | None:
        writes: list[Write] = []

        if not self._categories:
            for name, color in DEFAULT_CATEGORIES:
                category = Category(id=new_id(), name=name, color=color)
                self._categories[category.id] = category
                writes.append(lambda r, c=category: r.insert(EntityKind.CATEGORY, rec.category_to_record(c, self._uid())))
            logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))

        if not self._tags:
            for name in DEFAULT_TAGS:
                tag = Tag(id=new_id(), name=name)
                self._tags[tag.id] = tag
                writes.append(lambda r, t=tag: r.insert(EntityKind.TAG, rec.tag_to_record(t, self._uid())))
            logger.info("Seeded %d default tags", len(DEFAULT_TAGS))

        if not writes or not persist:
            return None
        return self._sync("seed defaults", writes)

    # ---- tasks ----

    def add_task(
        self,
        title: str,
        *,
        category_id: str,
        description: str = "",
        completed: bool = False,
        deadline: datetime | None = None,
        scheduled_date: date | None = None,
        scheduled_start_time=None,
        scheduled_end_time=None,
        tags: Iterable[str] = (),
        is_recurring: bool = False,
        recurrence_pattern: str | None = None,
        recurrence_frequency: int | None = None,
        recurrence_interval: str | None = None,
        recurrence_end_date: date | None = None,
    ) -> MutationResult:
        if not title or not title.strip():
            return self._reject("Task title is required", ValidationError("title is required"))

        if not category_id:
            return self._reject("Task category is required", ValidationError("category_id is required"))

        tag_ids = set(tags)
        problem = self._check_refs(category_id, tag_ids)
        if problem:
            return self._reject(problem, ValidationError(problem))

        now = self._now()
        task = Task(
            id=new_id(),
            title=title.strip(),
            description=(description or "").strip(),
            category_id=category_id,
            completed=bool(completed),
            created_at=now,
            updated_at=now,
            deadline=deadline,
            scheduled_date=scheduled_date,
            scheduled_start_time=scheduled_start_time,
            scheduled_end_time=scheduled_end_time,
            tags=tag_ids,
            is_recurring=bool(is_recurring),
            recurrence_pattern=recurrence_pattern,
            recurrence_frequency=recurrence_frequency,
            recurrence_interval=recurrence_interval,
            recurrence_end_date=recurrence_end_date,
        )
        self._tasks[task.id] = task
        logger.info("Task added id=%s category=%s tags=%d", task.id, category_id, len(tag_ids))

        writes: list[Write] = [lambda r: r.insert(EntityKind.TASK, rec.task_to_record(task, self._uid()))]
        for tag_id in sorted(tag_ids):
            writes.append(
                lambda r, t=tag_id: r.insert(EntityKind.TASK_TAG, rec.task_tag_to_record(task.id, t, self._uid()))
            )
        return self._finish("Task added successfully", task, self._sync("add task", writes))

    def update_task(self, task_id: str, **changes: Any) -> MutationResult:
        """
        Merge `changes` into the task and refresh updated_at.

        Only TASK_UPDATABLE_FIELDS are accepted; anything else rejects the
        whole update.
        """
        unknown = set(changes) - TASK_UPDATABLE_FIELDS
        if unknown:
            problem = f"Cannot update field(s): {', '.join(sorted(unknown))}"
            return self._reject(problem, ValidationError(problem))

        task = self._tasks.get(task_id)
        if task is None:
            return self._missing("task", task_id)

        if "title" in changes:
            title = changes["title"]
            if not title or not str(title).strip():
                return self._reject("Task title is required", ValidationError("title is required"))
            changes["title"] = str(title).strip()

        if "category_id" in changes and not changes["category_id"]:
            return self._reject("Task category is required", ValidationError("category_id is required"))

        if "tags" in changes:
            changes["tags"] = set(changes["tags"] or ())

        problem = self._check_refs(changes.get("category_id"), changes.get("tags"))
        if problem:
            return self._reject(problem, ValidationError(problem))

        old_tags = set(task.tags)
        for name, value in changes.items():
            setattr(task, name, value)
        task.updated_at = self._now()
        logger.info("Task updated id=%s fields=%s", task_id, ",".join(sorted(changes)) or "-")

        payload = rec.task_changes_to_record(changes)
        payload["updated_at"] = to_iso(task.updated_at)
        writes: list[Write] = [lambda r: r.update(EntityKind.TASK, task_id, payload)]
        if "tags" in changes:
            writes.extend(self._tag_link_writes(task_id, old_tags, task.tags))
        return self._finish("Task updated", task, self._sync("update task", writes))

    def _tag_link_writes(self, task_id: str, old: set[str], new: set[str]) -> list[Write]:
        writes: list[Write] = []
        for tag_id in sorted(old - new):
            writes.append(lambda r, t=tag_id: r.delete(EntityKind.TASK_TAG, rec.task_tag_id(task_id, t)))
        for tag_id in sorted(new - old):
            writes.append(
                lambda r, t=tag_id: r.insert(EntityKind.TASK_TAG, rec.task_tag_to_record(task_id, t, self._uid()))
            )
        return writes

    def delete_task(self, task_id: str) -> MutationResult:
        task = self._tasks.pop(task_id, None)
        if task is None:
            return self._missing("task", task_id)
        logger.info("Task deleted id=%s logs=%d", task_id, len(task.time_logs))

        # Tell the tracker before anything else can observe a dangling active id.
        self._emit(StoreEvent(StoreEventKind.TASK_DELETED, task_id))

        writes: list[Write] = []
        for log in task.time_logs:
            writes.append(lambda r, i=log.id: r.delete(EntityKind.TIME_LOG, i))
        for tag_id in sorted(task.tags):
            writes.append(lambda r, t=tag_id: r.delete(EntityKind.TASK_TAG, rec.task_tag_id(task_id, t)))
        writes.append(lambda r: r.delete(EntityKind.TASK, task_id))
        return self._finish("Task deleted", task, self._sync("delete task", writes))

    def toggle_task_completion(self, task_id: str) -> MutationResult:
        task = self._tasks.get(task_id)
        if task is None:
            return self._missing("task", task_id)

        task.completed = not task.completed
        task.updated_at = self._now()
        logger.info("Task %s completed=%s", task_id, task.completed)

        payload = {"completed": task.completed, "updated_at": to_iso(task.updated_at)}
        message = "Task completed" if task.completed else "Task marked as incomplete"
        return self._finish(
            message, task, self._sync("toggle completion", [lambda r: r.update(EntityKind.TASK, task_id, payload)])
        )

    # ---- categories ----

    def add_category(self, name: str, color: str) -> MutationResult:
        if not name or not name.strip():
            return self._reject("Category name is required", ValidationError("name is required"))

        category = Category(id=new_id(), name=name.strip(), color=(color or "").strip())
        self._categories[category.id] = category
        logger.info("Category added id=%s name=%s", category.id, category.name)

        write: Write = lambda r: r.insert(EntityKind.CATEGORY, rec.category_to_record(category, self._uid()))
        return self._finish("Category added", category, self._sync("add category", [write]))

    def update_category(
        self, category_id: str, *, name: str | None = None, color: str | None = None
    ) -> MutationResult:
        category = self._categories.get(category_id)
        if category is None:
            return self._missing("category", category_id)
        if name is not None and not name.strip():
            return self._reject("Category name is required", ValidationError("name is required"))

        payload: dict[str, Any] = {}
        if name is not None:
            category.name = name.strip()
            payload["name"] = category.name
        if color is not None:
            category.color = color.strip()
            payload["color"] = category.color

        write: Write = lambda r: r.update(EntityKind.CATEGORY, category_id, payload)
        return self._finish(
            "Category updated", category, self._sync("update category", [write] if payload else [])
        )

    def delete_category(self, category_id: str) -> MutationResult:
        if category_id not in self._categories:
            return self._missing("category", category_id)

        in_use = sum(1 for t in self._tasks.values() if t.category_id == category_id)
        if in_use:
            return self._reject(
                "Cannot delete category that has tasks assigned to it",
                CategoryInUseError(category_id, in_use),
            )

        category = self._categories.pop(category_id)
        logger.info("Category deleted id=%s", category_id)
        write: Write = lambda r: r.delete(EntityKind.CATEGORY, category_id)
        return self._finish("Category deleted", category, self._sync("delete category", [write]))

    # ---- tags ----

    def add_tag(self, name: str) -> MutationResult:
        if not name or not name.strip():
            return self._reject("Tag name is required", ValidationError("name is required"))

        tag = Tag(id=new_id(), name=name.strip())
        self._tags[tag.id] = tag
        logger.info("Tag added id=%s name=%s", tag.id, tag.name)

        write: Write = lambda r: r.insert(EntityKind.TAG, rec.tag_to_record(tag, self._uid()))
        return self._finish("Tag added", tag, self._sync("add tag", [write]))

    def update_tag(self, tag_id: str, name: str) -> MutationResult:
        tag = self._tags.get(tag_id)
        if tag is None:
            return self._missing("tag", tag_id)
        if not name or not name.strip():
            return self._reject("Tag name is required", ValidationError("name is required"))

        tag.name = name.strip()
        write: Write = lambda r: r.update(EntityKind.TAG, tag_id, {"name": tag.name})
        return self._finish("Tag updated", tag, self._sync("update tag", [write]))

    def delete_tag(self, tag_id: str) -> MutationResult:
        """Detach the tag from every task, then remove it."""
        if tag_id not in self._tags:
            return self._missing("tag", tag_id)

        now = self._now()
        writes: list[Write] = []
        detached = 0
        for task in self._tasks.values():
            if tag_id in task.tags:
                task.tags.discard(tag_id)
                task.updated_at = now
                detached += 1
                payload = {"updated_at": to_iso(now)}
                writes.append(lambda r, i=task.id: r.delete(EntityKind.TASK_TAG, rec.task_tag_id(i, tag_id)))
                writes.append(lambda r, i=task.id, p=payload: r.update(EntityKind.TASK, i, p))

        tag = self._tags.pop(tag_id)
        writes.append(lambda r: r.delete(EntityKind.TAG, tag_id))
        logger.info("Tag deleted id=%s detached_from=%d", tag_id, detached)
        return self._finish("Tag removed", tag, self._sync("delete tag", writes))

    # ---- time logs (driven by TimeTracker) ----

    def open_time_log(self, task_id: str, now: datetime | None = None) -> MutationResult:
        task = self._tasks.get(task_id)
        if task is None:
            return self._missing("task", task_id)
        if task.open_log() is not None:
            return self.publish(MutationResult.noop("Task already has an open time log", task.open_log()))

        log = TimeLog(id=new_id(), task_id=task_id, start_time=now or self._now())
        task.time_logs.append(log)
        logger.info("Time log opened task=%s log=%s", task_id, log.id)

        write: Write = lambda r: r.insert(EntityKind.TIME_LOG, rec.time_log_to_record(log, self._uid()))
        return self._finish(
            f'Started tracking time for "{task.title}"', log, self._sync("open time log", [write])
        )

    def close_time_log(
        self, task_id: str, now: datetime | None = None, *, log_id: str | None = None
    ) -> MutationResult:
        """Close the task's open log (or the given open log) at `now`."""
        task = self._tasks.get(task_id)
        if task is None:
            return self._missing("task", task_id)

        log = next(
            (lg for lg in task.time_logs if lg.is_open and (log_id is None or lg.id == log_id)),
            None,
        )
        if log is None:
            return self.publish(MutationResult.noop("No open time log"))

        end = now or self._now()
        log.end_time = end
        log.duration = elapsed_seconds(log.start_time, end)
        logger.info("Time log closed task=%s log=%s duration=%ss", task_id, log.id, log.duration)

        payload = {"end_time": to_iso(end), "duration": log.duration}
        write: Write = lambda r: r.update(EntityKind.TIME_LOG, log.id, payload)
        return self._finish(
            f'Stopped tracking time for "{task.title}"', log, self._sync("close time log", [write])
        )

    def refresh_open_log(self, task_id: str, now: datetime | None = None) -> int | None:
        """
        Recompute the live duration of the task's open log.

        Display-only: never persisted, never closes the log. The cached value
        never decreases, even if the clock steps backwards.
        """
        task = self._tasks.get(task_id)
        log = task.open_log() if task is not None else None
        if log is None:
            return None

        seconds = elapsed_seconds(log.start_time, now or self._now())
        if seconds > log.duration:
            log.duration = seconds
            self.revision += 1
        return log.duration

    # ---- queries ----

    def get_task_by_id(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def get_category_by_id(self, category_id: str) -> Category | None:
        return self._categories.get(category_id)

    def get_tag_by_id(self, tag_id: str) -> Tag | None:
        return self._tags.get(tag_id)

    def search_tasks(self, query: str) -> list[Task]:
        """Case-insensitive substring match on title and description."""
        needle = (query or "").lower()
        return [
            t
            for t in self._tasks.values()
            if needle in t.title.lower() or needle in t.description.lower()
        ]

    def filter_tasks(
        self,
        *,
        category_ids: Collection[str] | None = None,
        tag_ids: Collection[str] | None = None,
        completed: bool | None = None,
        scheduled: bool | None = None,
    ) -> list[Task]:
        """
        Conjunctive filter; every clause is optional.

        - category_ids: task.category_id in the set (ignored if empty)
        - tag_ids:      task shares at least one tag (ignored if empty)
        - completed:    exact match
        - scheduled:    exact match against "has a scheduled_date"
        """
        cats = set(category_ids or ())
        tags = set(tag_ids or ())

        out: list[Task] = []
        for task in self._tasks.values():
            if cats and task.category_id not in cats:
                continue
            if tags and not (task.tags & tags):
                continue
            if completed is not None and task.completed != completed:
                continue
            if scheduled is not None and task.is_scheduled != scheduled:
                continue
            out.append(task)
        return out

    def tasks_for_date(self, day: date) -> list[Task]:
        """Tasks scheduled on `day`, untimed ones last."""
        found = [t for t in self._tasks.values() if t.scheduled_date == day]
        found.sort(key=lambda t: (t.scheduled_start_time is None, t.scheduled_start_time or datetime.min.time()))
        return found

    def recent_open_tasks(self, limit: int = 3, *, exclude: str | None = None) -> list[Task]:
        """Incomplete tasks, most recently updated first."""
        found = [t for t in self._tasks.values() if not t.completed and t.id != exclude]
        found.sort(key=lambda t: t.updated_at, reverse=True)
        return found[: max(0, int(limit))]
