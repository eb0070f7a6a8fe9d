# src/tasktrack/tasks/task_api.py

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from ..utils.durations import format_duration, format_time, relative_date_label
from .task_models import Category, Tag, Task
from .task_store import TaskStore


T = TypeVar("T", Task, Category, Tag)


class AmbiguousReference(LookupError):
    def __init__(self, ref: str, matches: int) -> None:
        super().__init__(f"'{ref}' matches {matches} items; use more characters")
        self.ref = ref
        self.matches = matches


def _resolve(items: Iterable[T], ref: str, *, by_name: bool) -> T | None:
    """
    Find an item by exact id, (optionally) name, then unique id prefix.

    Raises AmbiguousReference when a name/prefix matches several items.
    """
    ref = (ref or "").strip()
    if not ref:
        return None
    pool = list(items)

    for item in pool:
        if item.id == ref:
            return item

    matches: list[T] = []
    if by_name:
        low = ref.lower()
        matches = [item for item in pool if getattr(item, "name", "").lower() == low]
    if not matches:
        matches = [item for item in pool if item.id.startswith(ref)]

    if len(matches) > 1:
        raise AmbiguousReference(ref, len(matches))
    return matches[0] if matches else None


def resolve_task(store: TaskStore, ref: str) -> Task | None:
    return _resolve(store.tasks, ref, by_name=False)


def resolve_category(store: TaskStore, ref: str) -> Category | None:
    return _resolve(store.categories, ref, by_name=True)


def resolve_tag(store: TaskStore, ref: str) -> Tag | None:
    return _resolve(store.tags, ref, by_name=True)


def short_id(entity_id: str) -> str:
    return entity_id[:8]


def describe_task(store: TaskStore, task: Task, *, active_task_id: str | None = None) -> str:
    """
    One-line summary used by connectors:
    "[x] 1a2b3c4d  Title  (Work) #urgent  Today 09:00  12m 3s  [tracking]"
    """
    mark = "x" if task.completed else " "
    category = store.get_category_by_id(task.category_id)
    parts = [f"[{mark}] {short_id(task.id)}  {task.title}"]
    if category is not None:
        parts.append(f"({category.name})")

    tag_names = sorted(
        tag.name for tag in (store.get_tag_by_id(tid) for tid in task.tags) if tag is not None
    )
    if tag_names:
        parts.append(" ".join(f"#{name.lower().replace(' ', '-')}" for name in tag_names))

    if task.scheduled_date is not None:
        when = relative_date_label(task.scheduled_date)
        if task.scheduled_start_time is not None:
            when += f" {format_time(task.scheduled_start_time)}"
        parts.append(when)

    total = task.total_seconds()
    if total:
        parts.append(format_duration(total))
    if active_task_id == task.id:
        parts.append("[tracking]")
    return "  ".join(parts)
