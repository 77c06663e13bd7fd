"""SQLite schema for ProxyRoute.

Versions are tracked with ``PRAGMA user_version``; each entry in
MIGRATIONS brings the database from version N-1 to N.
"""

import logging
import sqlite3
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    statements: tuple[str, ...]


MIGRATIONS = (
    Migration(
        version=1,
        name="settings_and_markers",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS session_markers (
                session_id INTEGER PRIMARY KEY,
                marked_at TEXT NOT NULL
            )
            """,
        ),
    ),
)


def current_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def migrate(conn: sqlite3.Connection) -> list[Migration]:
    """Apply every migration newer than the database's user_version.

    Args:
        conn: Open SQLite connection

    Returns:
        Migrations applied, in order
    """
    version = current_version(conn)
    pending = [m for m in MIGRATIONS if m.version > version]

    if not pending:
        logger.debug("Schema up to date")
        return []

    applied = []
    for migration in pending:
        logger.info(f"Applying migration {migration.version}: {migration.name}")
        try:
            for statement in migration.statements:
                conn.execute(statement)
            # PRAGMA does not accept bound parameters
            conn.execute(f"PRAGMA user_version = {int(migration.version)}")
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Migration {migration.version} failed: {e}")
            raise
        applied.append(migration)

    return applied
