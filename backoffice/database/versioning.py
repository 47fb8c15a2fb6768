# database/versioning.py
import sqlite3

from ..constants import TABLE_SCHEMA_VERSION
from ..utils.loggers import get_logger

_log = get_logger(__name__)


def _ensure_table(conn: sqlite3.Connection):
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}(
            id INTEGER PRIMARY KEY CHECK (id=1),
            version TEXT NOT NULL,
            applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
    """)


def get_current_version(conn: sqlite3.Connection) -> str | None:
    _ensure_table(conn)
    row = conn.execute(f"SELECT version FROM {TABLE_SCHEMA_VERSION} WHERE id=1;").fetchone()
    return row["version"] if row else None


def set_current_version(conn: sqlite3.Connection, version: str) -> None:
    """Upsert the single version row. No commit; the caller owns the transaction."""
    _ensure_table(conn)
    conn.execute(
        f"""
        INSERT INTO {TABLE_SCHEMA_VERSION}(id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET version = excluded.version,
                                      applied_at = CURRENT_TIMESTAMP;
        """,
        (version,),
    )


def ensure_version(conn: sqlite3.Connection, expected: str) -> str:
    """
    Stamp a fresh database with `expected`. An existing database keeps its
    stamp; a mismatch is logged since the idempotent schema has already been
    applied on top of it.
    """
    current = get_current_version(conn)
    if current is None:
        set_current_version(conn, expected)
        return expected
    if current != expected:
        _log.warning("database schema version %s, code expects %s", current, expected)
    return current
