# src/tasktrack/storage/sqlite_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..core.ports import EntityKind, Record

logger = logging.getLogger(__name__)

# kind -> ordered (column, declaration). "id" and "user_id" are implicit.
_COLUMNS: dict[EntityKind, tuple[tuple[str, str], ...]] = {
    EntityKind.CATEGORY: (
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("color", "TEXT NOT NULL DEFAULT ''"),
    ),
    EntityKind.TAG: (
        ("name", "TEXT NOT NULL DEFAULT ''"),
    ),
    EntityKind.TASK: (
        ("title", "TEXT NOT NULL DEFAULT ''"),
        ("description", "TEXT NOT NULL DEFAULT ''"),
        ("category_id", "TEXT NOT NULL DEFAULT ''"),
        ("completed", "INTEGER NOT NULL DEFAULT 0"),
        ("created_at", "TEXT NOT NULL DEFAULT ''"),
        ("updated_at", "TEXT NOT NULL DEFAULT ''"),
        ("deadline", "TEXT"),
        ("scheduled_date", "TEXT"),
        ("scheduled_start_time", "TEXT"),
        ("scheduled_end_time", "TEXT"),
        ("is_recurring", "INTEGER NOT NULL DEFAULT 0"),
        ("recurrence_pattern", "TEXT"),
        ("recurrence_frequency", "INTEGER"),
        ("recurrence_interval", "TEXT"),
        ("recurrence_end_date", "TEXT"),
    ),
    EntityKind.TASK_TAG: (
        ("task_id", "TEXT NOT NULL"),
        ("tag_id", "TEXT NOT NULL"),
    ),
    EntityKind.TIME_LOG: (
        ("task_id", "TEXT NOT NULL"),
        ("start_time", "TEXT NOT NULL"),
        ("end_time", "TEXT"),
        ("duration", "INTEGER NOT NULL DEFAULT 0"),
    ),
}

_BOOL_COLUMNS = {"completed", "is_recurring"}


class SQLiteRecordStore:
    """
    SQLite record store (one table per entity kind).

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasktrack.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SQLiteRecordStore ready db=%s", self._db_path)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            for kind, columns in _COLUMNS.items():
                table = kind.value
                body = ",\n".join(f"{name} {decl}" for name, decl in columns)
                cur.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        {body}
                    )
                    """
                )

                # Migrations (safe): add missing columns.
                cur.execute(f"PRAGMA table_info({table})")
                existing = {row["name"] for row in cur.fetchall()}
                for name, decl in columns:
                    if name in existing:
                        continue
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                    logger.info("Schema migration: added column %s.%s", table, name)

                cur.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_user ON {table}(user_id)")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_time_logs_task ON time_logs(task_id)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _columns(kind: EntityKind) -> set[str]:
        return {"id", "user_id", *(name for name, _ in _COLUMNS[kind])}

    @staticmethod
    def _to_db(name: str, value: Any) -> Any:
        if name in _BOOL_COLUMNS:
            return 1 if value else 0
        return value

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        out: Record = dict(row)
        for name in _BOOL_COLUMNS & out.keys():
            out[name] = bool(out[name])
        return out

    # ---- RecordStore ----

    def list_by_user(self, kind: EntityKind, user_id: str) -> list[Record]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM {kind.value} WHERE user_id = ? ORDER BY rowid ASC", (user_id,))
            return [self._row_to_record(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def insert(self, kind: EntityKind, record: Record) -> Record:
        if not record.get("id"):
            raise ValueError("record id is required")
        if not record.get("user_id"):
            raise ValueError("record user_id is required")

        allowed = self._columns(kind)
        names = [k for k in record if k in allowed]
        placeholders = ", ".join("?" for _ in names)

        conn = self._get_conn()
        try:
            conn.execute(
                f"INSERT INTO {kind.value}({', '.join(names)}) VALUES ({placeholders})",
                [self._to_db(n, record[n]) for n in names],
            )
            conn.commit()
            logger.debug("Inserted %s id=%s", kind.value, record["id"])
            return {k: record[k] for k in names}
        finally:
            conn.close()

    def update(self, kind: EntityKind, record_id: str, changes: Record) -> None:
        allowed = self._columns(kind) - {"id", "user_id"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"unknown column(s) for {kind.value}: {', '.join(sorted(unknown))}")
        if not changes:
            return

        names = list(changes)
        params = [self._to_db(n, changes[n]) for n in names]
        params.append(record_id)

        sql = f"UPDATE {kind.value} SET {', '.join(f'{n} = ?' for n in names)} WHERE id = ?"

        conn = self._get_conn()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def delete(self, kind: EntityKind, record_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(f"DELETE FROM {kind.value} WHERE id = ?", (record_id,))
            conn.commit()
        finally:
            conn.close()

    def count(self, kind: EntityKind, user_id: str | None = None) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if user_id is None:
                cur.execute(f"SELECT COUNT(*) FROM {kind.value}")
            else:
                cur.execute(f"SELECT COUNT(*) FROM {kind.value} WHERE user_id = ?", (user_id,))
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()
