# src/tasktrack/utils/durations.py

"""
Duration and date formatting helpers.

Pure functions only: they take raw second counts, datetimes or ISO strings
and return display strings / relative labels. Nothing here reads store state.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

DateLike = datetime | date | str


def parse_timestamp(value: datetime | str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Accepts a trailing "Z". Naive values are assumed to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


def _as_local_date(value: DateLike, tz=None) -> date:
    if isinstance(value, datetime):
        return value.astimezone(tz).date() if tz is not None else value.date()
    if isinstance(value, date):
        return value
    raw = value.strip()
    # Plain "YYYY-MM-DD" is a calendar date, not an instant.
    if len(raw) == 10:
        return date.fromisoformat(raw)
    dt = parse_timestamp(raw)
    return dt.astimezone(tz).date() if tz is not None else dt.date()


def format_duration(seconds: int | float) -> str:
    """
    Compact duration label.

    < 1 minute -> "42s", < 1 hour -> "5m 3s", otherwise "2h 15m".
    """
    total = max(0, int(seconds))
    if total < 60:
        return f"{total}s"

    minutes = total // 60
    if minutes < 60:
        return f"{minutes}m {total % 60}s"

    hours = minutes // 60
    return f"{hours}h {minutes % 60}m"


def format_clock(seconds: int | float) -> str:
    """Stopwatch rendering: HH:MM:SS."""
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_time(value: time | str | None) -> str:
    """Return "HH:MM" for a time value or an "HH:MM[:SS]" string."""
    if value is None or value == "":
        return ""
    if isinstance(value, time):
        return value.strftime("%H:%M")

    parts = value.split(":")
    if len(parts) >= 2:
        return f"{parts[0]}:{parts[1]}"
    return value


def format_time_for_display(value: datetime | str) -> str:
    dt = parse_timestamp(value)
    return dt.strftime("%H:%M")


def format_date_for_display(value: DateLike) -> str:
    d = _as_local_date(value)
    return f"{d.strftime('%b')} {d.day}, {d.year}"


def format_datetime_for_display(value: datetime | str) -> str:
    return f"{format_date_for_display(value)} at {format_time_for_display(value)}"


def is_today(value: DateLike, now: datetime | None = None) -> bool:
    now = now or datetime.now().astimezone()
    return _as_local_date(value, now.tzinfo) == now.date()


def is_tomorrow(value: DateLike, now: datetime | None = None) -> bool:
    now = now or datetime.now().astimezone()
    return _as_local_date(value, now.tzinfo) == now.date() + timedelta(days=1)


def relative_date_label(value: DateLike | None, now: datetime | None = None) -> str:
    """Label a date as Today / Tomorrow / display date ("No date" when empty)."""
    if value is None or value == "":
        return "No date"
    if is_today(value, now):
        return "Today"
    if is_tomorrow(value, now):
        return "Tomorrow"
    return format_date_for_display(value)
