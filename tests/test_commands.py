# tests/test_commands.py

from __future__ import annotations

from datetime import date, time

from tasktrack.cli.commands import CommandRegistry, registry
from tasktrack.core.state import AppState
from tasktrack.tasks.task_api import short_id

from .fakes import FakeClock, NoticeCollector


def _add(state: AppState, line: str):
    before = {t.id for t in state.store.tasks}
    registry.handle(state, line)
    (task,) = [t for t in state.store.tasks if t.id not in before]
    return task


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bb"])

    notes: list[str] = []
    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/BB y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_help_lists_commands(state) -> None:
    out = registry.handle(state, "/help") or ""
    for name in ("/add", "/start", "/stop", "/week", "/rmtag"):
        assert name in out


def test_add_with_category_tags_and_schedule(state) -> None:
    task = _add(state, "/add Plan sprint | Learning | Urgent,important | 2024-05-16 09:00-10:30")

    category = state.store.get_category_by_id(task.category_id)
    assert task.title == "Plan sprint"
    assert category.name == "Learning"
    assert {state.store.get_tag_by_id(t).name for t in task.tags} == {"Urgent", "Important"}
    assert task.scheduled_date == date(2024, 5, 16)
    assert task.scheduled_start_time == time(9, 0)
    assert task.scheduled_end_time == time(10, 30)


def test_add_defaults_to_first_category(state) -> None:
    task = _add(state, "/add Quick note")
    assert task.category_id == state.store.categories[0].id
    assert task.tags == set()


def test_add_errors_are_messages(state) -> None:
    assert "Usage" in registry.handle(state, "/add")
    assert "No category" in registry.handle(state, "/add x | Nowhere")
    assert "Bad date" in registry.handle(state, "/add x | Work | | someday")
    assert state.store.tasks == []


def test_start_stop_by_prefix(state, clock: FakeClock, notices: NoticeCollector) -> None:
    task = _add(state, "/add Deep work")
    notices.results.clear()

    registry.handle(state, f"/start {short_id(task.id)}")
    assert state.tracker.active_task_id == task.id

    clock.advance(65)
    state.tracker.tick()
    assert "00:01:05" in registry.handle(state, "/now")

    registry.handle(state, "/stop")
    assert not state.tracker.is_tracking
    assert task.total_seconds() == 65
    assert notices.messages == [
        'Started tracking time for "Deep work"',
        'Stopped tracking time for "Deep work"',
    ]


def test_now_when_idle_lists_recent_tasks(state) -> None:
    assert registry.handle(state, "/now") == "No task being tracked."
    task = _add(state, "/add Inbox zero")
    out = registry.handle(state, "/now")
    assert short_id(task.id) in out and "Inbox zero" in out


def test_unknown_task_reference(state) -> None:
    assert "No task matches" in registry.handle(state, "/start zzzz")
    assert "Usage" in registry.handle(state, "/done")


def test_list_filters(state) -> None:
    a = _add(state, "/add Alpha | Work")
    b = _add(state, "/add Beta | Health | Urgent")
    registry.handle(state, f"/done {a.id}")

    assert "Beta" in registry.handle(state, "/list")
    assert "Alpha" not in registry.handle(state, "/list")
    assert "Alpha" in registry.handle(state, "/list done")
    out = registry.handle(state, "/list all tag=Urgent")
    assert "Beta" in out and "Alpha" not in out
    assert "#urgent" in out
    assert registry.handle(state, "/list cat=Personal") == "No tasks found"
    assert "Usage" in registry.handle(state, "/list bogus")
    assert b.completed is False


def test_edit_and_tag_toggle(state) -> None:
    task = _add(state, "/add Draft")

    registry.handle(state, f"/edit {task.id} title Final draft")
    registry.handle(state, f"/edit {task.id} date tomorrow")
    registry.handle(state, f"/edit {task.id} start 14:00")
    registry.handle(state, f"/tag {task.id} Important")

    assert task.title == "Final draft"
    assert task.scheduled_date == date(2024, 5, 16)
    assert task.scheduled_start_time == time(14, 0)
    assert {state.store.get_tag_by_id(t).name for t in task.tags} == {"Important"}

    registry.handle(state, f"/tag {task.id} Important")
    registry.handle(state, f"/edit {task.id} date -")
    assert task.tags == set()
    assert task.scheduled_date is None


def test_rm_deletes_tracked_task(state) -> None:
    task = _add(state, "/add Doomed")
    registry.handle(state, f"/start {task.id}")

    registry.handle(state, f"/rm {task.id}")

    assert state.store.get_task_by_id(task.id) is None
    assert not state.tracker.is_tracking


def test_category_and_tag_commands(state, notices: NoticeCollector) -> None:
    registry.handle(state, "/addcat Errands #123456")
    errands = next(c for c in state.store.categories if c.name == "Errands")
    assert errands.color == "#123456"

    _add(state, "/add Groceries | Errands")
    notices.results.clear()
    registry.handle(state, "/rmcat Errands")
    assert notices.messages == ["Cannot delete category that has tasks assigned to it"]
    assert "Errands" in registry.handle(state, "/cats")

    registry.handle(state, "/addtag Someday")
    assert "Someday" in registry.handle(state, "/tags")
    registry.handle(state, "/rmtag someday")
    assert "Someday" not in registry.handle(state, "/tags")


def test_stats_commands(state, clock: FakeClock) -> None:
    assert registry.handle(state, "/stats") == "No tracked time yet."

    task = _add(state, "/add Report | Work")
    registry.handle(state, f"/start {task.id}")
    clock.advance(120)
    registry.handle(state, "/stop")
    registry.handle(state, f"/done {task.id}")

    assert "Work" in registry.handle(state, "/stats")
    week = registry.handle(state, "/week")
    assert "1/1" in week and "100%" in week and "2m 0s" in week
    days = registry.handle(state, "/days")
    assert days.count("\n") == 7


def test_today_and_search(state) -> None:
    task = _add(state, "/add Standup | Work | | today 09:30")
    assert "Standup" in registry.handle(state, "/today")
    assert "Nothing scheduled" in registry.handle(state, "/today 2024-06-01")
    assert short_id(task.id) in registry.handle(state, "/search stand")
    assert registry.handle(state, "/search nothing-like-this") == "No tasks found"


def test_status(state) -> None:
    out = registry.handle(state, "/status")
    assert "Test User (u1)" in out
    assert "record store" in out
    assert "Tracking: nothing" in out
