"""SQLite-backed key-value persistence.

Each key holds one JSON list (the note collection, the tombstone set,
the pending archive queue). Writes replace the whole list atomically.
"""

import contextlib
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Union

from scraps.protocols import ScrapsError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class StorageError(ScrapsError):
    """Raised when persisted data cannot be read back."""

    pass


class SQLiteKeyValueStore:
    """Durable ``get(key) -> list`` / ``set(key, list)`` storage."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that commits on success, rolls back on error, always closes."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def get(self, key: str) -> List[Any]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        if row is None:
            return []
        try:
            value = json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for '{key}' is not valid JSON: {e}") from e
        if not isinstance(value, list):
            raise StorageError(f"Stored value for '{key}' is not a list")
        return value

    def set(self, key: str, records: List[Any]) -> None:
        payload = json.dumps(list(records))
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                (key, payload, self._now()),
            )

    def close(self):
        """Connections are per-operation; nothing to release."""
        pass
