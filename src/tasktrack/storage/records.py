# src/tasktrack/storage/records.py

"""
Codec between in-memory entities and flat persisted records.

Records use snake_case keys, ISO strings for instants / dates / times, and
always carry "id" and "user_id". Tag membership is stored as task_tags link
records with a deterministic id so a link can be deleted by id alone.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from ..core.ports import Record
from ..tasks.task_models import Category, Tag, Task, TimeLog
from ..utils.durations import parse_timestamp, to_iso


def _ts(value: datetime | None) -> str | None:
    return to_iso(value) if value is not None else None


def _parse_ts(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    return parse_timestamp(raw)


def _parse_date(raw: Any) -> date | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw)[:10])


def _parse_time(raw: Any) -> time | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, time):
        return raw
    return time.fromisoformat(str(raw))


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


# ---- categories / tags ----


def category_to_record(category: Category, user_id: str) -> Record:
    return {"id": category.id, "user_id": user_id, "name": category.name, "color": category.color}


def category_from_record(row: Record) -> Category:
    return Category(id=str(row["id"]), name=str(row.get("name") or ""), color=str(row.get("color") or ""))


def tag_to_record(tag: Tag, user_id: str) -> Record:
    return {"id": tag.id, "user_id": user_id, "name": tag.name}


def tag_from_record(row: Record) -> Tag:
    return Tag(id=str(row["id"]), name=str(row.get("name") or ""))


# ---- tasks ----


def task_to_record(task: Task, user_id: str) -> Record:
    """Task row without tags / logs (those live in their own record kinds)."""
    return {
        "id": task.id,
        "user_id": user_id,
        "title": task.title,
        "description": task.description,
        "category_id": task.category_id,
        "completed": bool(task.completed),
        "created_at": _ts(task.created_at),
        "updated_at": _ts(task.updated_at),
        "deadline": _ts(task.deadline),
        "scheduled_date": _encode_value(task.scheduled_date),
        "scheduled_start_time": _encode_value(task.scheduled_start_time),
        "scheduled_end_time": _encode_value(task.scheduled_end_time),
        "is_recurring": bool(task.is_recurring),
        "recurrence_pattern": task.recurrence_pattern,
        "recurrence_frequency": task.recurrence_frequency,
        "recurrence_interval": task.recurrence_interval,
        "recurrence_end_date": _encode_value(task.recurrence_end_date),
    }


def task_changes_to_record(changes: dict[str, Any]) -> Record:
    """Encode a partial task update; tags are handled as link records."""
    return {k: _encode_value(v) for k, v in changes.items() if k != "tags"}


def task_from_record(row: Record) -> Task:
    created_at = _parse_ts(row.get("created_at"))
    updated_at = _parse_ts(row.get("updated_at")) or created_at
    if created_at is None or updated_at is None:
        raise ValueError(f"task record {row.get('id')} has no created_at")

    frequency = row.get("recurrence_frequency")
    return Task(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        description=str(row.get("description") or ""),
        category_id=str(row.get("category_id") or ""),
        completed=bool(row.get("completed")),
        created_at=created_at,
        updated_at=updated_at,
        deadline=_parse_ts(row.get("deadline")),
        scheduled_date=_parse_date(row.get("scheduled_date")),
        scheduled_start_time=_parse_time(row.get("scheduled_start_time")),
        scheduled_end_time=_parse_time(row.get("scheduled_end_time")),
        is_recurring=bool(row.get("is_recurring")),
        recurrence_pattern=row.get("recurrence_pattern"),
        recurrence_frequency=int(frequency) if frequency is not None else None,
        recurrence_interval=row.get("recurrence_interval"),
        recurrence_end_date=_parse_date(row.get("recurrence_end_date")),
    )


# ---- task <-> tag links ----


def task_tag_id(task_id: str, tag_id: str) -> str:
    return f"{task_id}:{tag_id}"


def task_tag_to_record(task_id: str, tag_id: str, user_id: str) -> Record:
    return {"id": task_tag_id(task_id, tag_id), "user_id": user_id, "task_id": task_id, "tag_id": tag_id}


# ---- time logs ----


def time_log_to_record(log: TimeLog, user_id: str) -> Record:
    return {
        "id": log.id,
        "user_id": user_id,
        "task_id": log.task_id,
        "start_time": _ts(log.start_time),
        "end_time": _ts(log.end_time),
        "duration": int(log.duration),
    }


def time_log_from_record(row: Record) -> TimeLog:
    start = _parse_ts(row.get("start_time"))
    if start is None:
        raise ValueError(f"time log {row.get('id')} has no start_time")
    return TimeLog(
        id=str(row["id"]),
        task_id=str(row["task_id"]),
        start_time=start,
        end_time=_parse_ts(row.get("end_time")),
        duration=int(row.get("duration") or 0),
    )
