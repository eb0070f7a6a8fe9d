# src/tasktrack/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import cast

from ..core.state import AppState
from ..tasks.task_api import (
    AmbiguousReference,
    describe_task,
    resolve_category,
    resolve_tag,
    resolve_task,
    short_id,
)
from ..tasks.task_models import Task
from ..utils.durations import (
    format_clock,
    format_datetime_for_display,
    format_duration,
    format_time,
    relative_date_label,
)

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Bad arguments; the message is shown to the user as-is."""


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, /start, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except (CommandError, AmbiguousReference) as e:
            logger.debug("Command /%s refused: %s", name, e)
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def _need_task(state: AppState, args: list[str], usage: str) -> Task:
    if not args:
        raise CommandError(f"Usage: {usage}")
    task = resolve_task(state.store, args[0])
    if task is None:
        raise CommandError(f"No task matches '{args[0]}'.")
    return task


def _parse_date(raw: str, today: date) -> date:
    low = raw.strip().lower()
    if low == "today":
        return today
    if low == "tomorrow":
        return today + timedelta(days=1)
    try:
        return date.fromisoformat(low)
    except ValueError:
        raise CommandError(f"Bad date '{raw}' (use YYYY-MM-DD, today or tomorrow).") from None


def _parse_time(raw: str) -> time:
    try:
        return time.fromisoformat(raw.strip())
    except ValueError:
        raise CommandError(f"Bad time '{raw}' (use HH:MM).") from None


def _parse_schedule(raw: str, today: date) -> tuple[date, time | None, time | None]:
    """'2024-05-01 09:00-10:30' -> (date, start, end)."""
    bits = raw.split()
    if not bits:
        raise CommandError("Empty schedule.")
    day = _parse_date(bits[0], today)
    start = end = None
    if len(bits) > 1:
        span = bits[1].split("-", 1)
        start = _parse_time(span[0])
        if len(span) > 1 and span[1]:
            end = _parse_time(span[1])
    return day, start, end


def _tag_ids(state: AppState, raw: str) -> set[str]:
    out: set[str] = set()
    for ref in (p.strip() for p in raw.split(",")):
        if not ref:
            continue
        tag = resolve_tag(state.store, ref)
        if tag is None:
            raise CommandError(f"No tag matches '{ref}'.")
        out.add(tag.id)
    return out


def _today(state: AppState) -> date:
    return state.store.clock.now().date()


# ---- general ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    user = state.user
    who = f"{user.name} ({user.id})" if user is not None else "nobody"
    storage = "record store" if state.store.has_records else "in-memory"
    current = state.tracker.current_task()
    tracking = f'"{current.title}"' if current is not None else "nothing"
    return (
        "Status:\n"
        f"  User: {who}\n"
        f"  Storage: {storage}\n"
        f"  Tasks: {len(state.store.tasks)}  Categories: {len(state.store.categories)}"
        f"  Tags: {len(state.store.tags)}\n"
        f"  Tracking: {tracking}\n"
        f"  Week starts: {state.stats.week_start.value}"
    )


# ---- tasks ----


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Title [| category] [| tag1,tag2] [| YYYY-MM-DD [HH:MM[-HH:MM]]]
    """
    fields = [f.strip() for f in " ".join(args).split("|")]
    title = fields[0] if fields else ""
    if not title:
        raise CommandError("Usage: /add Title [| category] [| tag1,tag2] [| date [start[-end]]]")

    if len(fields) > 1 and fields[1]:
        category = resolve_category(state.store, fields[1])
        if category is None:
            raise CommandError(f"No category matches '{fields[1]}'.")
    elif state.store.categories:
        category = state.store.categories[0]
    else:
        raise CommandError("Create a category first (/addcat).")

    tags = _tag_ids(state, fields[2]) if len(fields) > 2 else set()

    day = start = end = None
    if len(fields) > 3 and fields[3]:
        day, start, end = _parse_schedule(fields[3], _today(state))

    result = state.store.add_task(
        title,
        category_id=category.id,
        tags=tags,
        scheduled_date=day,
        scheduled_start_time=start,
        scheduled_end_time=end,
    )
    if not result.ok:
        return ""
    return describe_task(state.store, result.value)


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list [all|open|done|scheduled] [cat=<ref>] [tag=<ref>]
    """
    completed: bool | None = False
    scheduled: bool | None = None
    category_ids: list[str] = []
    tag_ids: list[str] = []

    for arg in args:
        low = arg.lower()
        if low == "all":
            completed = None
        elif low == "open":
            completed = False
        elif low == "done":
            completed = True
        elif low == "scheduled":
            completed, scheduled = None, True
        elif low.startswith("cat="):
            category = resolve_category(state.store, arg[4:])
            if category is None:
                raise CommandError(f"No category matches '{arg[4:]}'.")
            category_ids.append(category.id)
        elif low.startswith("tag="):
            tag_ids.extend(_tag_ids(state, arg[4:]))
        else:
            raise CommandError("Usage: /list [all|open|done|scheduled] [cat=<ref>] [tag=<ref>]")

    tasks = state.store.filter_tasks(
        category_ids=category_ids,
        tag_ids=tag_ids,
        completed=completed,
        scheduled=scheduled,
    )
    if not tasks:
        return "No tasks found"
    active = state.tracker.active_task_id
    return "\n".join(describe_task(state.store, t, active_task_id=active) for t in tasks)


def cmd_show(state: AppState, args: list[str]) -> str:
    task = _need_task(state, args, "/show <task>")
    category = state.store.get_category_by_id(task.category_id)
    lines = [
        describe_task(state.store, task, active_task_id=state.tracker.active_task_id),
        f"  id: {task.id}",
        f"  category: {category.name if category else '-'}",
        f"  created: {format_datetime_for_display(task.created_at)}",
        f"  updated: {format_datetime_for_display(task.updated_at)}",
    ]
    if task.description:
        lines.append(f"  description: {task.description}")
    if task.deadline is not None:
        lines.append(f"  deadline: {format_datetime_for_display(task.deadline)}")
    if task.scheduled_date is not None:
        span = format_time(task.scheduled_start_time)
        if task.scheduled_end_time is not None:
            span += f"-{format_time(task.scheduled_end_time)}"
        lines.append(f"  scheduled: {relative_date_label(task.scheduled_date)} {span}".rstrip())
    if task.is_recurring:
        lines.append(f"  recurring: {task.recurrence_pattern or 'yes'}")

    lines.append(f"  tracked: {format_duration(task.total_seconds())} in {len(task.time_logs)} session(s)")
    for log in task.time_logs[-5:]:
        end = format_datetime_for_display(log.end_time) if log.end_time else "running"
        lines.append(f"    {format_datetime_for_display(log.start_time)} -> {end}  {format_duration(log.duration)}")
    return "\n".join(lines)


_EDIT_FIELDS = ("title", "description", "category", "tags", "date", "start", "end", "deadline")


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <task> <field> <value...>
    fields: title, description, category, tags, date, start, end, deadline ("-" clears)
    """
    usage = f"Usage: /edit <task> <{'|'.join(_EDIT_FIELDS)}> <value>"
    if len(args) < 3:
        raise CommandError(usage)
    task = _need_task(state, args, usage)
    field = args[1].lower()
    value = " ".join(args[2:]).strip()
    clear = value == "-"
    today = _today(state)

    changes: dict[str, object]
    if field == "title":
        changes = {"title": value}
    elif field == "description":
        changes = {"description": "" if clear else value}
    elif field == "category":
        category = resolve_category(state.store, value)
        if category is None:
            raise CommandError(f"No category matches '{value}'.")
        changes = {"category_id": category.id}
    elif field == "tags":
        changes = {"tags": set() if clear else _tag_ids(state, value)}
    elif field == "date":
        changes = {"scheduled_date": None if clear else _parse_date(value, today)}
    elif field == "start":
        changes = {"scheduled_start_time": None if clear else _parse_time(value)}
    elif field == "end":
        changes = {"scheduled_end_time": None if clear else _parse_time(value)}
    elif field == "deadline":
        if clear:
            changes = {"deadline": None}
        else:
            day, start, _ = _parse_schedule(value, today)
            tz = state.store.clock.now().tzinfo
            changes = {"deadline": datetime.combine(day, start or time(23, 59), tzinfo=tz)}
    else:
        raise CommandError(usage)

    result = state.store.update_task(task.id, **changes)
    if not result.ok:
        return ""
    return describe_task(state.store, task, active_task_id=state.tracker.active_task_id)


def cmd_done(state: AppState, args: list[str]) -> str:
    task = _need_task(state, args, "/done <task>")
    state.store.toggle_task_completion(task.id)
    return ""


def cmd_rm(state: AppState, args: list[str]) -> str:
    task = _need_task(state, args, "/rm <task>")
    state.store.delete_task(task.id)
    return ""


def cmd_search(state: AppState, args: list[str]) -> str:
    if not args:
        raise CommandError("Usage: /search <text>")
    found = state.store.search_tasks(" ".join(args))
    if not found:
        return "No tasks found"
    active = state.tracker.active_task_id
    return "\n".join(describe_task(state.store, t, active_task_id=active) for t in found)


def cmd_today(state: AppState, args: list[str]) -> str:
    day = _parse_date(args[0], _today(state)) if args else _today(state)
    found = state.store.tasks_for_date(day)
    if not found:
        return f"Nothing scheduled for {relative_date_label(day, state.store.clock.now())}."
    active = state.tracker.active_task_id
    return "\n".join(describe_task(state.store, t, active_task_id=active) for t in found)


# ---- tracking ----


def cmd_start(state: AppState, args: list[str]) -> str:
    task = _need_task(state, args, "/start <task>")
    state.tracker.start(task.id)
    return ""


def cmd_stop(state: AppState, args: list[str]) -> str:
    if args:
        task = _need_task(state, args, "/stop [task]")
        state.tracker.stop(task.id)
    else:
        state.tracker.stop_current()
    return ""


def cmd_reset(state: AppState, args: list[str]) -> str:
    state.tracker.reset()
    return ""


def cmd_now(state: AppState, args: list[str]) -> str:
    task = state.tracker.current_task()
    if task is None:
        recent = state.store.recent_open_tasks(3)
        if not recent:
            return "No task being tracked."
        lines = ["No task being tracked. Recent tasks:"]
        lines.extend(f"  {short_id(t.id)}  {t.title}" for t in recent)
        return "\n".join(lines)
    session = state.tracker.current_session_seconds()
    total = state.tracker.total_seconds(task.id)
    return f'Tracking "{task.title}"  session {format_clock(session)}  total {format_duration(total)}'


# ---- categories / tags ----


def cmd_cats(state: AppState, args: list[str]) -> str:
    if not state.store.categories:
        return "No categories."
    lines = []
    for c in state.store.categories:
        used = len(state.store.filter_tasks(category_ids=[c.id]))
        lines.append(f"  {short_id(c.id)}  {c.name} {c.color}  ({used} task(s))")
    return "\n".join(lines)


def cmd_addcat(state: AppState, args: list[str]) -> str:
    if not args:
        raise CommandError("Usage: /addcat <name> [#color]")
    color = "#6b7280"
    if len(args) > 1 and args[-1].startswith("#"):
        color = args[-1]
        args = args[:-1]
    state.store.add_category(" ".join(args), color)
    return ""


def cmd_rmcat(state: AppState, args: list[str]) -> str:
    if not args:
        raise CommandError("Usage: /rmcat <category>")
    category = resolve_category(state.store, " ".join(args))
    if category is None:
        raise CommandError(f"No category matches '{' '.join(args)}'.")
    state.store.delete_category(category.id)
    return ""


def cmd_tags(state: AppState, args: list[str]) -> str:
    if not state.store.tags:
        return "No tags."
    return "\n".join(f"  {short_id(t.id)}  {t.name}" for t in state.store.tags)


def cmd_addtag(state: AppState, args: list[str]) -> str:
    if not args:
        raise CommandError("Usage: /addtag <name>")
    state.store.add_tag(" ".join(args))
    return ""


def cmd_rmtag(state: AppState, args: list[str]) -> str:
    if not args:
        raise CommandError("Usage: /rmtag <tag>")
    tag = resolve_tag(state.store, " ".join(args))
    if tag is None:
        raise CommandError(f"No tag matches '{' '.join(args)}'.")
    state.store.delete_tag(tag.id)
    return ""


def cmd_tag(state: AppState, args: list[str]) -> str:
    """/tag <task> <tag> toggles membership."""
    if len(args) < 2:
        raise CommandError("Usage: /tag <task> <tag>")
    task = _need_task(state, args, "/tag <task> <tag>")
    tag = resolve_tag(state.store, " ".join(args[1:]))
    if tag is None:
        raise CommandError(f"No tag matches '{' '.join(args[1:])}'.")
    tags = set(task.tags) ^ {tag.id}
    state.store.update_task(task.id, tags=tags)
    return describe_task(state.store, task, active_task_id=state.tracker.active_task_id)


# ---- statistics ----


def cmd_stats(state: AppState, args: list[str]) -> str:
    rows = state.stats.category_time_distribution()
    if not rows:
        return "No tracked time yet."
    total = sum(r.total_seconds for r in rows) or 1
    lines = ["Time by category:"]
    for r in rows:
        share = round(r.total_seconds / total * 100)
        lines.append(
            f"  {r.name:<12} {format_duration(r.total_seconds):>9}  {share:>3}%"
            f"  ({r.completed_count}/{r.task_count} done)"
        )
    return "\n".join(lines)


def cmd_week(state: AppState, args: list[str]) -> str:
    w = state.stats.weekly_stats()
    last_day = (w.week_end - timedelta(days=1)).date()
    return (
        f"Week {w.week_start.date().isoformat()} .. {last_day.isoformat()}:\n"
        f"  Tasks completed: {w.tasks_completed}/{w.tasks_created}\n"
        f"  Time tracked: {format_duration(w.tracked_seconds)}\n"
        f"  Productivity score: {w.productivity_score}%"
    )


def cmd_days(state: AppState, args: list[str]) -> str:
    lines = ["Last 7 days (scheduled / completed / tracked):"]
    for d in state.stats.daily_activity():
        lines.append(
            f"  {d.label} {d.day.isoformat()}  {d.scheduled:>2} / {d.completed:>2} / {format_duration(d.tracked_seconds)}"
        )
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, storage and tracking status.")
registry.register("add", cmd_add, help_text="Add a task: /add Title | category | tag1,tag2 | date [start-end].")
registry.register("list", cmd_list, help_text="List tasks: /list [all|open|done|scheduled] [cat=..] [tag=..].", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show task details and recent sessions.")
registry.register("edit", cmd_edit, help_text="Edit a task field: /edit <task> <field> <value>.")
registry.register("done", cmd_done, help_text="Toggle task completion.")
registry.register("rm", cmd_rm, help_text="Delete a task and its time logs.")
registry.register("search", cmd_search, help_text="Search titles and descriptions.")
registry.register("today", cmd_today, help_text="Tasks scheduled today (or /today <date>).")
registry.register("start", cmd_start, help_text="Start tracking a task (stops any other).")
registry.register("stop", cmd_stop, help_text="Stop tracking.")
registry.register("reset", cmd_reset, help_text="Close the current session and start a fresh one.")
registry.register("now", cmd_now, help_text="Show the tracked task and its live time.")
registry.register("cats", cmd_cats, help_text="List categories.")
registry.register("addcat", cmd_addcat, help_text="Add a category: /addcat <name> [#color].")
registry.register("rmcat", cmd_rmcat, help_text="Delete an unused category.")
registry.register("tags", cmd_tags, help_text="List tags.")
registry.register("addtag", cmd_addtag, help_text="Add a tag.")
registry.register("rmtag", cmd_rmtag, help_text="Delete a tag (removed from every task).")
registry.register("tag", cmd_tag, help_text="Toggle a tag on a task: /tag <task> <tag>.")
registry.register("stats", cmd_stats, help_text="Tracked time per category.")
registry.register("week", cmd_week, help_text="This week's completion and tracked time.")
registry.register("days", cmd_days, help_text="Activity over the last 7 days.")
