# src/tasktrack/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "tasktrack.log"

# Loggers that fire every tick; console shows them only at WARNING+.
_TICK_LOGGERS = ("tasktrack.tasks.time_ticker",)


class _ConsoleNoiseFilter(logging.Filter):
    """Console gets tasktrack records, minus tick chatter; everything else only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(_TICK_LOGGERS):
            return record.levelno >= logging.WARNING
        if record.name.startswith("tasktrack."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasktrack",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route logs to a filtered stderr console and a full file under log_dir.

    Call once at startup; returns the log file path.
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in (console, file_handler):
        h.setFormatter(fmt)
        root.addHandler(h)

    # warnings.warn(...) arrives as 'py.warnings' (console: ERROR+ only).
    logging.captureWarnings(True)
    return log_file
