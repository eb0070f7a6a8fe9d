# src/tasktrack/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Works with zero configuration (in-memory or local SQLite, local identity).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKTRACK"

# Real environment wins over .env.
load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Storage ----
    data_dir: Path
    records_db_path: Path
    persistence_enabled: bool

    # ---- Tracking / stats ----
    tick_interval_seconds: float
    week_start: str

    # ---- Local identity (the console has no login flow) ----
    user_id: str
    user_name: str
    user_email: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasktrack") or "tasktrack"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasktrack"))
        records_db_path = _env_path(_k("DB_PATH"), data_dir / "records.sqlite3")
        persistence_enabled = _env_bool(_k("PERSISTENCE"), True)

        tick_interval_seconds = max(0.1, _env_float(_k("TICK_INTERVAL"), 1.0))
        week_start = _env(_k("WEEK_START"), "monday").strip().lower() or "monday"

        user_id = _env(_k("USER_ID"), "local").strip() or "local"
        user_name = _env(_k("USER_NAME"), "Local User").strip() or "Local User"
        user_email = _env(_k("USER_EMAIL"), "").strip()

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            records_db_path=records_db_path,
            persistence_enabled=persistence_enabled,
            tick_interval_seconds=tick_interval_seconds,
            week_start=week_start,
            user_id=user_id,
            user_name=user_name,
            user_email=user_email,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
