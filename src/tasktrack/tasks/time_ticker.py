# src/tasktrack/tasks/time_ticker.py

from __future__ import annotations

"""
Live tick scheduler.

A small asyncio loop that refreshes the open log's duration once per
interval while the tracker is tracking, and exits as soon as it is idle.

TrackingTicker wires the loop to tracker events: started -> run the loop,
stopped / cleared -> cancel it right away so no recurring timer leaks.
"""

import asyncio
import contextlib
import logging

from .time_tracking import TimeTracker, TrackingEvent, TrackingEventKind

logger = logging.getLogger(__name__)


async def run_tracking_ticker(
        tracker: TimeTracker,
        *,
        interval_seconds: float = 1.0,
) -> None:
    """
    Tick loop.

    Every interval_seconds:
    - stop if the tracker went idle
    - tracker.tick() (recompute live duration, publish snapshot)

    Tick failures are logged; the loop keeps going. Cancel the coroutine to
    stop it early.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while tracker.is_tracking:
        await asyncio.sleep(sleep_s)
        try:
            if tracker.tick() is None:
                break
        except Exception:
            logger.exception("tracker tick failed")

    logger.debug("Tick loop finished")


class TrackingTicker:
    """Owns the asyncio task running run_tracking_ticker()."""

    def __init__(self, tracker: TimeTracker, *, interval_seconds: float = 1.0) -> None:
        self._tracker = tracker
        self._interval = float(interval_seconds)
        self._task: asyncio.Task[None] | None = None
        tracker.add_listener(self._on_event)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_event(self, event: TrackingEvent) -> None:
        if event.kind == TrackingEventKind.STARTED:
            self.ensure_running()
        elif event.kind in (TrackingEventKind.STOPPED, TrackingEventKind.CLEARED):
            self.cancel()

    def ensure_running(self) -> None:
        if self.running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the caller drives tracker.tick() itself.
            logger.debug("No running event loop; live tick not scheduled")
            return
        self._task = loop.create_task(
            run_tracking_ticker(self._tracker, interval_seconds=self._interval),
            name="tracking-ticker",
        )
        logger.debug("Tick loop scheduled (interval=%ss)", self._interval)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("Tick loop cancelled")
        self._task = None

    async def aclose(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
