"""Database operations for ProxyRoute.

This module provides SQLite-based persistence for settings (the force list
and the enabled flag) and for session redirect markers. Uses WAL mode for
concurrency and JSON serialization for setting values.
"""

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from proxyroute.core.exceptions import DatabaseError


class Database:
    """SQLite database manager for ProxyRoute.

    A single connection is shared between threads; every statement runs
    under an internal lock so event handlers for different sessions can
    call in concurrently.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file (":memory:" for tests)
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection.

        Returns:
            SQLite connection with row factory
        """
        if self._conn is None:
            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def init_db(self) -> None:
        """Bring the schema up to date.

        Raises:
            DatabaseError: If migration fails
        """
        from proxyroute.storage.schema import migrate

        try:
            with self._lock:
                migrate(self._get_connection())
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to initialize database: {e}") from e

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Read a JSON-encoded setting.

        Args:
            key: Setting key
            default: Value returned when the key is absent

        Returns:
            Decoded value or default

        Raises:
            DatabaseError: If the read fails or the stored value is not JSON
        """
        try:
            with self._lock:
                row = self._get_connection().execute(
                    "SELECT value FROM settings WHERE key = ?", (key,)
                ).fetchone()
            if row is None:
                return default
            return json.loads(row["value"])
        except (sqlite3.Error, ValueError) as e:
            raise DatabaseError(f"Failed to read setting {key}: {e}") from e

    def has_setting(self, key: str) -> bool:
        try:
            with self._lock:
                row = self._get_connection().execute(
                    "SELECT 1 FROM settings WHERE key = ?", (key,)
                ).fetchone()
            return row is not None
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read setting {key}: {e}") from e

    def set_settings(self, values: dict[str, Any]) -> None:
        """Write several settings in one transaction.

        Args:
            values: Mapping of key to JSON-serializable value

        Raises:
            DatabaseError: If the write fails
        """
        now = datetime.now(timezone.utc).isoformat()
        try:
            rows = [(key, json.dumps(value), now) for key, value in values.items()]
        except (TypeError, ValueError) as e:
            raise DatabaseError(f"Setting value is not serializable: {e}") from e

        with self._lock:
            conn = self._get_connection()
            try:
                conn.executemany("""
                    INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                """, rows)
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise DatabaseError(f"Failed to write settings {sorted(values)}: {e}") from e

    def set_setting(self, key: str, value: Any) -> None:
        self.set_settings({key: value})

    # ------------------------------------------------------------------
    # Session markers
    # ------------------------------------------------------------------

    def add_marker(self, session_id: int) -> None:
        """Set the redirect marker for a session (idempotent).

        Raises:
            DatabaseError: If the write fails
        """
        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO session_markers (session_id, marked_at) VALUES (?, ?)",
                    (session_id, datetime.now(timezone.utc).isoformat()),
                )
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise DatabaseError(f"Failed to mark session {session_id}: {e}") from e

    def delete_marker(self, session_id: int) -> bool:
        """Remove the redirect marker for a session.

        Returns:
            True if a marker was present
        """
        with self._lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    "DELETE FROM session_markers WHERE session_id = ?", (session_id,)
                )
                deleted = cursor.rowcount > 0
                conn.commit()
                return deleted
            except sqlite3.Error as e:
                conn.rollback()
                raise DatabaseError(f"Failed to clear session {session_id}: {e}") from e

    def has_marker(self, session_id: int) -> bool:
        try:
            with self._lock:
                row = self._get_connection().execute(
                    "SELECT 1 FROM session_markers WHERE session_id = ?", (session_id,)
                ).fetchone()
            return row is not None
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read session {session_id}: {e}") from e

    def count_markers(self) -> int:
        try:
            with self._lock:
                row = self._get_connection().execute(
                    "SELECT COUNT(*) FROM session_markers"
                ).fetchone()
            return row[0]
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to count session markers: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
