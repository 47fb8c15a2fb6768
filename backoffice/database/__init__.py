# database/__init__.py
from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Optional
import sqlite3

from ..config import DB_PATH
from ..constants import SCHEMA_VERSION
from . import schema as schema_module
from .repositories.errors import PersistenceError
from .seeders.default_data import seed as seed_default_data
from .versioning import ensure_version

# NUMERIC columns take the exact decimal text; reads come back as int/float
# and are re-quantized by utils.helpers.to_money.
sqlite3.register_adapter(Decimal, str)


def get_connection(
    db_path: str | Path | None = None,
    *,
    omit_columns: Optional[Mapping[str, Iterable[str]]] = None,
) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures schema & seed data are applied idempotently.

    omit_columns lets a caller reproduce a deployment that lacks some of the
    optional columns (see schema.OPTIONAL_COLUMNS).
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    # Always apply the schema (idempotent: uses CREATE IF NOT EXISTS / DROP TRIGGER IF EXISTS)
    schema_module.init_schema(path, omit_columns=omit_columns)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA journal_mode = WAL;")

    ensure_version(conn, SCHEMA_VERSION)

    # Seeders should be safe to run repeatedly (idempotent).
    seed_default_data(conn)

    conn.commit()
    return conn


@contextmanager
def immediate_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a block under BEGIN IMMEDIATE so a read-then-write sequence holds the
    write lock from the first read. Commits on success, rolls back on error.

    If the connection is already inside a transaction the caller owns it and
    this is a no-op wrapper. A write lock that cannot be taken before the
    busy timeout runs out raises PersistenceError; nothing has been read yet.
    """
    if conn.in_transaction:
        yield conn
        return
    try:
        conn.execute("BEGIN IMMEDIATE;")
    except sqlite3.OperationalError as e:
        raise PersistenceError(f"Could not lock the database for writing: {e}") from e
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


__all__ = [
    "get_connection",
    "immediate_transaction",
]
