# src/tasktrack/core/clock.py

from __future__ import annotations

from datetime import datetime


class SystemClock:
    """Wall clock, aware, in the machine's local timezone (calendar views use it)."""

    def now(self) -> datetime:
        return datetime.now().astimezone()
