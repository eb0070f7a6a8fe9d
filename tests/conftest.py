# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasktrack.cli.bootstrap import create_initial_state
from tasktrack.core.session import User, activate_identity
from tasktrack.core.state import AppState
from tasktrack.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeRecordStore, NoticeCollector


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasktrack-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        records_db_path=tmp_path / "records.sqlite3",
        # Tests inject a FakeRecordStore explicitly.
        persistence_enabled=False,
        tick_interval_seconds=0.01,
        week_start="monday",
        user_id="u1",
        user_name="Test User",
        user_email="test@example.com",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def records() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture()
def notices() -> NoticeCollector:
    return NoticeCollector()


@pytest.fixture()
def store(records: FakeRecordStore, clock: FakeClock, notices: NoticeCollector) -> TaskStore:
    """Store loaded (and seeded) for user u1 on top of the fake record store."""
    s = TaskStore(records, clock=clock, notifier=notices)
    s.load("u1")
    notices.results.clear()
    return s


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    records: FakeRecordStore,
    clock: FakeClock,
    notices: NoticeCollector,
) -> AppState:
    """AppState wired with deterministic fakes and an active identity."""
    st = create_initial_state(settings=settings, records=records, clock=clock, notifier=notices)
    activate_identity(st, User(id="u1", name="Test User", email="test@example.com"))
    notices.results.clear()
    return st
