# src/tasktrack/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.results import MutationResult, MutationStatus
from ..core.state import AppState

logger = logging.getLogger(__name__)

_NOTICE_PREFIX = {
    MutationStatus.OK: "[ok]",
    MutationStatus.DEGRADED: "[!]",
    MutationStatus.REJECTED: "[x]",
    MutationStatus.NOT_FOUND: "[?]",
    MutationStatus.NOOP: "[-]",
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def console_notifier(result: MutationResult) -> None:
    """Transient notice for every user-visible store outcome."""
    if not result.message:
        return
    _print_ts(f"{_NOTICE_PREFIX.get(result.status, '')} {result.message}".strip())


async def run_console_loop(state: AppState) -> None:
    """
    REPL on top of the asyncio loop.

    input() runs in a worker thread; commands run on the loop thread so they
    never interleave with ticker callbacks.
    """
    logger.info("Console connector started (user=%s).", getattr(state.user, "id", None))
    _print_ts("[CONSOLE] Type /help for commands. Use /exit to quit.\n")

    state.ticker.ensure_running()

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            cmd_response = command_registry.handle(state, user_input, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is None:
            _print_ts("Commands start with '/'. Use /help to list them.")
        elif cmd_response:
            _print_ts(cmd_response)

    logger.info("Console connector finished.")
