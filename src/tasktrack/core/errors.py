# src/tasktrack/core/errors.py

from __future__ import annotations


class TaskTrackError(Exception):
    """Base class for domain errors."""


class ValidationError(TaskTrackError):
    """Input rejected before any mutation happened."""


class CategoryInUseError(TaskTrackError):
    """A category cannot be deleted while tasks reference it."""

    def __init__(self, category_id: str, task_count: int) -> None:
        super().__init__(f"category {category_id} is used by {task_count} task(s)")
        self.category_id = category_id
        self.task_count = task_count


class NotFoundError(TaskTrackError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class PersistenceError(TaskTrackError):
    """
    The record store rejected or failed a write.

    Never raised out of a store mutation: it is attached to a degraded
    MutationResult while the in-memory change stays applied.
    """
