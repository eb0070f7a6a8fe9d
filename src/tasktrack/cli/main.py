# src/tasktrack/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, activates the configured identity and
runs the console REPL on an asyncio loop (the live ticker shares that loop).
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, identity_from_settings
from ..config import get_settings
from ..connectors.console_connector import console_notifier, run_console_loop
from ..core.session import activate_identity
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.ticker.aclose()
    except Exception:
        logger.debug("Ticker close failed.", exc_info=True)

    # An open session is closed so its time is not lost.
    try:
        if state.tracker.is_tracking:
            state.tracker.stop_current()
    except Exception:
        logger.exception("Failed to stop tracking on shutdown.")

    try:
        records = getattr(state.store, "records", None)
        if records is not None and hasattr(records, "close"):
            records.close()
    except Exception:
        logger.debug("Record store close failed.", exc_info=True)


async def _run(state: AppState) -> None:
    activate_identity(state, identity_from_settings(state.settings))
    try:
        await run_console_loop(state)
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tasktrack")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "tasktrack"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings, notifier=console_notifier)

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
