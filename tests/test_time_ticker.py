# tests/test_time_ticker.py

from __future__ import annotations

import asyncio

import pytest

from tasktrack.tasks.task_store import TaskStore
from tasktrack.tasks.time_ticker import TrackingTicker, run_tracking_ticker
from tasktrack.tasks.time_tracking import TimeTracker, TrackingEventKind

from .fakes import FakeClock


def _tracked(store: TaskStore) -> tuple[TimeTracker, str]:
    tracker = TimeTracker(store)
    task = store.add_task("a", category_id=store.categories[0].id).value
    return tracker, task.id


@pytest.mark.asyncio
async def test_ticker_loop_refreshes_live_duration(store: TaskStore, clock: FakeClock) -> None:
    tracker, task_id = _tracked(store)
    ticks = []
    tracker.add_listener(lambda e: ticks.append(e) if e.kind == TrackingEventKind.TICK else None)
    tracker.start(task_id)

    loop_task = asyncio.create_task(run_tracking_ticker(tracker, interval_seconds=0.01))
    for _ in range(3):
        clock.advance(1)
        await asyncio.sleep(0.03)
    tracker.stop(task_id)
    await asyncio.wait_for(loop_task, timeout=1.0)

    assert ticks
    assert [e.seconds for e in ticks] == sorted(e.seconds for e in ticks)
    assert store.get_task_by_id(task_id).time_logs[0].duration == 3


@pytest.mark.asyncio
async def test_ticker_loop_exits_when_idle(store: TaskStore) -> None:
    tracker, _ = _tracked(store)
    await asyncio.wait_for(run_tracking_ticker(tracker, interval_seconds=0.01), timeout=1.0)


@pytest.mark.asyncio
async def test_tracking_ticker_follows_tracker_events(store: TaskStore, clock: FakeClock) -> None:
    tracker, task_id = _tracked(store)
    ticker = TrackingTicker(tracker, interval_seconds=0.01)

    tracker.start(task_id)
    assert ticker.running

    clock.advance(2)
    await asyncio.sleep(0.05)
    assert tracker.current_session_seconds() == 2

    tracker.stop(task_id)
    assert not ticker.running
    await ticker.aclose()


@pytest.mark.asyncio
async def test_tracking_ticker_cancelled_when_task_deleted(store: TaskStore) -> None:
    tracker, task_id = _tracked(store)
    ticker = TrackingTicker(tracker, interval_seconds=0.01)
    tracker.start(task_id)
    assert ticker.running

    store.delete_task(task_id)

    assert not ticker.running
    await ticker.aclose()


def test_tracking_ticker_without_loop_is_inert(store: TaskStore, clock: FakeClock) -> None:
    tracker, task_id = _tracked(store)
    ticker = TrackingTicker(tracker)

    tracker.start(task_id)

    assert not ticker.running
    clock.advance(3)
    assert tracker.tick() == 3
