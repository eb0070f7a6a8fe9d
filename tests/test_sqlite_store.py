# tests/test_sqlite_store.py

from __future__ import annotations

from datetime import date, time
from pathlib import Path

import pytest

from tasktrack.core.ports import EntityKind
from tasktrack.storage.sqlite_store import SQLiteRecordStore
from tasktrack.tasks.task_store import TaskStore
from tasktrack.tasks.time_tracking import TimeTracker

from .fakes import FakeClock


def test_insert_list_update_delete(tmp_path: Path) -> None:
    db = SQLiteRecordStore(tmp_path / "records.sqlite3")

    db.insert(EntityKind.TAG, {"id": "t1", "user_id": "u1", "name": "Urgent"})
    db.insert(EntityKind.TAG, {"id": "t2", "user_id": "u2", "name": "Other"})

    assert db.list_by_user(EntityKind.TAG, "u1") == [{"id": "t1", "user_id": "u1", "name": "Urgent"}]

    db.update(EntityKind.TAG, "t1", {"name": "ASAP"})
    assert db.list_by_user(EntityKind.TAG, "u1")[0]["name"] == "ASAP"

    db.delete(EntityKind.TAG, "t1")
    assert db.list_by_user(EntityKind.TAG, "u1") == []
    assert db.count(EntityKind.TAG) == 1


def test_rejects_bad_records(tmp_path: Path) -> None:
    db = SQLiteRecordStore(tmp_path / "records.sqlite3")

    with pytest.raises(ValueError):
        db.insert(EntityKind.TAG, {"id": "", "user_id": "u1", "name": "x"})
    with pytest.raises(ValueError):
        db.insert(EntityKind.TAG, {"id": "t1", "name": "x"})

    db.insert(EntityKind.TAG, {"id": "t1", "user_id": "u1", "name": "x"})
    with pytest.raises(ValueError):
        db.update(EntityKind.TAG, "t1", {"colour": "red"})


def test_boolean_columns_round_trip(tmp_path: Path) -> None:
    db = SQLiteRecordStore(tmp_path / "records.sqlite3")
    db.insert(
        EntityKind.TASK,
        {
            "id": "k1",
            "user_id": "u1",
            "title": "t",
            "category_id": "c1",
            "completed": True,
            "created_at": "2024-05-15T10:00:00+00:00",
            "updated_at": "2024-05-15T10:00:00+00:00",
        },
    )
    row = db.list_by_user(EntityKind.TASK, "u1")[0]
    assert row["completed"] is True
    assert row["is_recurring"] is False


def test_schema_is_idempotent(tmp_path: Path) -> None:
    path = tmp_path / "records.sqlite3"
    SQLiteRecordStore(path).insert(EntityKind.TAG, {"id": "t1", "user_id": "u1", "name": "x"})
    assert SQLiteRecordStore(path).count(EntityKind.TAG, "u1") == 1


def test_store_survives_reload(tmp_path: Path) -> None:
    path = tmp_path / "records.sqlite3"
    clock = FakeClock()

    store = TaskStore(SQLiteRecordStore(path), clock=clock)
    store.load("u1")
    urgent = next(t.id for t in store.tags if t.name == "Urgent")
    task = store.add_task(
        "Write report",
        category_id=store.categories[0].id,
        tags=[urgent],
        scheduled_date=date(2024, 5, 16),
        scheduled_start_time=time(9, 30),
    ).value

    tracker = TimeTracker(store)
    tracker.start(task.id)
    clock.advance(42)
    tracker.stop(task.id)
    tracker.start(task.id)
    clock.advance(18)
    tracker.stop(task.id)
    store.toggle_task_completion(task.id)

    again = TaskStore(SQLiteRecordStore(path), clock=clock)
    again.load("u1")
    loaded = again.get_task_by_id(task.id)

    assert loaded is not None
    assert loaded.title == "Write report"
    assert loaded.completed
    assert loaded.tags == {urgent}
    assert loaded.scheduled_date == date(2024, 5, 16)
    assert loaded.scheduled_start_time == time(9, 30)
    assert [log.duration for log in loaded.time_logs] == [42, 18]
    assert loaded.total_seconds() == task.total_seconds() == 60
    assert len(again.categories) == 4


def test_identities_are_isolated(tmp_path: Path) -> None:
    path = tmp_path / "records.sqlite3"
    clock = FakeClock()

    alice = TaskStore(SQLiteRecordStore(path), clock=clock)
    alice.load("alice")
    alice.add_task("private", category_id=alice.categories[0].id)

    bob = TaskStore(SQLiteRecordStore(path), clock=clock)
    bob.load("bob")

    assert bob.tasks == []
    assert {c.id for c in bob.categories}.isdisjoint({c.id for c in alice.categories})
