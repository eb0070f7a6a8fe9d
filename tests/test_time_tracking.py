# tests/test_time_tracking.py

from __future__ import annotations

from datetime import timedelta

from tasktrack.core.results import MutationStatus
from tasktrack.tasks.task_store import TaskStore
from tasktrack.tasks.time_tracking import TimeTracker, TrackingEventKind, TrackingState

from .fakes import FakeClock, FakeRecordStore, NoticeCollector


def _new_task(store: TaskStore, title: str = "a"):
    return store.add_task(title, category_id=store.categories[0].id).value


def _open_logs(store: TaskStore) -> list:
    return [log for t in store.tasks for log in t.time_logs if log.is_open]


def test_track_three_seconds(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)

    assert tracker.state == TrackingState.IDLE
    assert tracker.start(task.id).ok
    assert tracker.state == TrackingState.TRACKING
    assert tracker.current_task() is task

    for _ in range(3):
        clock.advance(1)
        tracker.tick()
    assert tracker.current_session_seconds() == 3

    res = tracker.stop(task.id)

    assert res.ok
    assert tracker.state == TrackingState.IDLE
    assert len(task.time_logs) == 1
    log = task.time_logs[0]
    assert log.end_time is not None
    assert log.duration == 3
    assert tracker.total_seconds(task.id) == 3


def test_at_most_one_open_log(store: TaskStore, clock: FakeClock, notices: NoticeCollector) -> None:
    tracker = TimeTracker(store)
    a = _new_task(store, "a")
    b = _new_task(store, "b")

    tracker.start(a.id)
    clock.advance(10)
    tracker.start(b.id)

    assert tracker.active_task_id == b.id
    assert len(_open_logs(store)) == 1
    assert a.open_log() is None
    assert a.time_logs[0].duration == 10
    assert b.open_log() is not None


def test_start_same_task_is_noop(store: TaskStore) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)
    tracker.start(task.id)

    res = tracker.start(task.id)

    assert res.status == MutationStatus.NOOP
    assert len(task.time_logs) == 1


def test_start_unknown_and_stop_idle(store: TaskStore) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)

    assert tracker.start("missing").status == MutationStatus.NOT_FOUND
    assert tracker.stop(task.id).status == MutationStatus.NOOP
    assert tracker.stop_current().status == MutationStatus.NOOP
    assert tracker.tick() is None
    assert task.time_logs == []


def test_stop_other_task_is_noop(store: TaskStore) -> None:
    tracker = TimeTracker(store)
    a = _new_task(store, "a")
    b = _new_task(store, "b")
    tracker.start(a.id)

    assert tracker.stop(b.id).status == MutationStatus.NOOP
    assert tracker.active_task_id == a.id


def test_reset_closes_interval_and_starts_fresh(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)
    tracker.start(task.id)
    clock.advance(7)
    tracker.tick()

    assert tracker.reset().ok

    assert tracker.current_session_seconds() == 0
    assert [log.duration for log in task.time_logs] == [7, 0]
    assert task.time_logs[1].is_open
    assert tracker.total_seconds(task.id) == 7


def test_tick_refreshes_without_persisting(store: TaskStore, clock: FakeClock, records: FakeRecordStore) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)
    tracker.start(task.id)
    before = list(records.calls)

    clock.advance(5)
    assert tracker.tick() == 5
    clock.advance(1)
    assert tracker.tick() == 6

    assert records.calls == before
    assert task.open_log().end_time is None


def test_events_are_published(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    events = []
    tracker.add_listener(events.append)
    task = _new_task(store)

    tracker.start(task.id)
    clock.advance(2)
    tracker.tick()
    tracker.stop(task.id)

    assert [e.kind for e in events] == [
        TrackingEventKind.STARTED,
        TrackingEventKind.TICK,
        TrackingEventKind.STOPPED,
    ]
    assert events[-1].seconds == 2


def test_deleting_tracked_task_goes_idle(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    events = []
    tracker.add_listener(events.append)
    task = _new_task(store)
    tracker.start(task.id)
    clock.advance(3)

    store.delete_task(task.id)

    assert tracker.state == TrackingState.IDLE
    assert tracker.active_task_id is None
    assert events[-1].kind == TrackingEventKind.CLEARED
    assert _open_logs(store) == []


def test_persistence_failure_still_tracks(store: TaskStore, clock: FakeClock, records: FakeRecordStore) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)
    records.fail = True

    res = tracker.start(task.id)
    assert res.status == MutationStatus.DEGRADED
    assert tracker.is_tracking

    clock.advance(4)
    stopped = tracker.stop(task.id)
    assert stopped.status == MutationStatus.DEGRADED
    assert task.time_logs[0].duration == 4


def test_resume_adopts_latest_open_log(records: FakeRecordStore, clock: FakeClock) -> None:
    first = TaskStore(records, clock=clock)
    first.load("u1")
    a = _new_task(first, "a")
    b = _new_task(first, "b")
    first.open_time_log(a.id)
    clock.advance(10)
    first.open_time_log(b.id)
    clock.advance(20)

    # Fresh session on the same records.
    store = TaskStore(records, clock=clock)
    store.load("u1")
    tracker = TimeTracker(store)
    resumed = tracker.resume_from_store()

    assert resumed is not None and resumed.id == b.id
    assert tracker.active_task_id == b.id
    assert len(_open_logs(store)) == 1
    assert tracker.current_session_seconds() == 20

    stale = store.get_task_by_id(a.id).time_logs[0]
    assert stale.end_time == stale.start_time + timedelta(seconds=stale.duration)


def test_resume_without_open_logs(store: TaskStore) -> None:
    tracker = TimeTracker(store)
    _new_task(store)
    assert tracker.resume_from_store() is None
    assert tracker.state == TrackingState.IDLE


def test_start_adopts_dangling_log(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)
    store.open_time_log(task.id)

    res = tracker.start(task.id)

    assert res.status == MutationStatus.NOOP
    assert tracker.active_task_id == task.id
    assert len(task.time_logs) == 1


def test_fresh_tracker_on_reloaded_store_keeps_one_open_log(records: FakeRecordStore, clock: FakeClock) -> None:
    first = TaskStore(records, clock=clock)
    first.load("u1")
    a = _new_task(first, "a")
    b = _new_task(first, "b")
    TimeTracker(first).start(a.id)
    clock.advance(15)

    store = TaskStore(records, clock=clock)
    store.load("u1")
    tracker = TimeTracker(store)

    assert tracker.active_task_id == a.id
    tracker.start(b.id)

    assert len(_open_logs(store)) == 1
    assert tracker.active_task_id == b.id
    assert store.get_task_by_id(a.id).time_logs[0].duration == 15


def test_reload_under_existing_tracker_adopts_open_log(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    a = _new_task(store, "a")
    b = _new_task(store, "b")
    tracker.start(a.id)
    clock.advance(5)

    store.load("u1")

    assert tracker.active_task_id == a.id
    tracker.start(b.id)
    assert len(_open_logs(store)) == 1


def test_start_closes_stray_open_log(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    a = _new_task(store, "a")
    b = _new_task(store, "b")
    store.open_time_log(a.id)
    clock.advance(4)

    tracker.start(b.id)

    assert [t.id for t in store.tasks if t.open_log() is not None] == [b.id]
    assert a.time_logs[0].duration == 4


def test_live_duration_never_drops_when_clock_steps_back(store: TaskStore, clock: FakeClock) -> None:
    tracker = TimeTracker(store)
    task = _new_task(store)
    tracker.start(task.id)

    clock.advance(10)
    assert tracker.tick() == 10

    clock.advance(-6)
    assert tracker.tick() == 10
    assert tracker.current_session_seconds() == 10

    clock.advance(8)
    assert tracker.tick() == 12
