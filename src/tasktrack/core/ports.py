# src/tasktrack/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the record store and the clock swappable and makes testing easier
(tests inject a fake clock and an in-memory record store with failure knobs).
"""

from collections.abc import Callable
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol

Record = dict[str, Any]
# Flat snake_case mapping, one per persisted row.


class EntityKind(StrEnum):
    CATEGORY = "categories"
    TAG = "tags"
    TASK = "tasks"
    TASK_TAG = "task_tags"
    TIME_LOG = "time_logs"


class Clock(Protocol):
    """Source of "now" (timezone-aware)."""
    def now(self) -> datetime: ...


class RecordStore(Protocol):
    """
    Durable record store, scoped by user id.

    Records carry their own "id" (assigned by the core at mutation time) and a
    "user_id". Implementations may raise any exception on failure; the task
    store catches it and reports a degraded result.
    """

    def list_by_user(self, kind: EntityKind, user_id: str) -> list[Record]: ...

    def insert(self, kind: EntityKind, record: Record) -> Record: ...

    def update(self, kind: EntityKind, record_id: str, changes: Record) -> None: ...

    def delete(self, kind: EntityKind, record_id: str) -> None: ...


Notifier = Callable[[Any], None]
# Receives every MutationResult (transient user-facing notification).
