"""SQLite-backed cursor persistence.

Holds the last listing cursor under a single well-known key so the next run
continues where the previous one stopped. WAL mode plus a commit per write
means a set() in one process is visible to get() in the next. Each thread
gets its own connection.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from .errors import CursorStoreError

log = logger.bind(stage="cursor")

CURSOR_KEY = "dropbox_cursor"

_SCHEMA = """\
PRAGMA journal_mode=WAL;
PRAGMA busy_timeout=5000;

CREATE TABLE IF NOT EXISTS kv_state (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class CursorStore:
    """Get/set store for the opaque listing cursor."""

    def __init__(self, db_path: Path, key: str = CURSOR_KEY) -> None:
        self.db_path = db_path
        self.key = key
        self._local = threading.local()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create a per-thread SQLite connection."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), timeout=10.0)
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA busy_timeout=5000")
            except (OSError, sqlite3.Error) as e:
                raise CursorStoreError(
                    f"Cannot open cursor database {self.db_path}: {e}"
                ) from e
            self._local.conn = conn
        return conn

    def _init_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.executescript(_SCHEMA)
            conn.commit()
        except sqlite3.Error as e:
            raise CursorStoreError(f"Cannot initialize cursor schema: {e}") from e

    def close(self) -> None:
        """Close the current thread's connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def get(self) -> str | None:
        """Return the persisted cursor, or None on first run."""
        try:
            row = self._get_conn().execute(
                "SELECT value FROM kv_state WHERE key = ?", (self.key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise CursorStoreError(f"Cannot read cursor: {e}") from e
        cursor = row[0] if row else None
        log.debug(f"get() -> {'<none>' if cursor is None else cursor[:16] + '...'}")
        return cursor

    def set(self, cursor: str) -> None:
        """Persist a cursor, replacing any previous value."""
        if not cursor:
            raise CursorStoreError("Refusing to persist an empty cursor")
        conn = self._get_conn()
        try:
            conn.execute(
                """INSERT INTO kv_state (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (self.key, cursor, _utcnow()),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise CursorStoreError(f"Cannot persist cursor: {e}") from e
        log.debug(f"set({cursor[:16]}...)")

    def updated_at(self) -> str | None:
        """Timestamp of the last set(), or None if never set."""
        row = self._get_conn().execute(
            "SELECT updated_at FROM kv_state WHERE key = ?", (self.key,)
        ).fetchone()
        return row[0] if row else None
