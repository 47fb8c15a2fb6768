from pathlib import Path
import logging
import sqlite3
import sys
from typing import Iterable, Mapping, Optional

_log = logging.getLogger(__name__)

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- parties -------- */
CREATE TABLE IF NOT EXISTS clients (
    client_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT NOT NULL,
    phone      TEXT,
    address    TEXT,
    is_active  INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- orders (created upstream; payment_status is a projection) -------- */
CREATE TABLE IF NOT EXISTS orders (
    order_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    order_number    TEXT UNIQUE NOT NULL,
    client_id       INTEGER,
    order_date      DATE NOT NULL DEFAULT CURRENT_DATE,
    total_amount    NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(total_amount AS REAL) >= 0),
    payment_status  TEXT NOT NULL DEFAULT 'pending'
                    CHECK (payment_status IN ('pending','partial','paid','refunded')),
    FOREIGN KEY (client_id) REFERENCES clients(client_id)
);
CREATE INDEX IF NOT EXISTS idx_orders_client ON orders(client_id);

/* -------- invoices (paid_amount/remaining_amount/status are projections) -------- */
CREATE TABLE IF NOT EXISTS invoices (
    invoice_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number  TEXT UNIQUE NOT NULL,
    order_id        INTEGER,
    client_id       INTEGER,
    client_name     TEXT,
    invoice_date    DATE NOT NULL DEFAULT CURRENT_DATE,
    due_date        DATE,
    subtotal        NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(subtotal AS REAL) >= 0),
    total_amount    NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(total_amount AS REAL) >= 0),
    status          TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft','sent','paid')),
    FOREIGN KEY (order_id)  REFERENCES orders(order_id),
    FOREIGN KEY (client_id) REFERENCES clients(client_id)
);
CREATE INDEX IF NOT EXISTS idx_invoices_order ON invoices(order_id);

/* ======================== LEDGER ======================== */

CREATE TABLE IF NOT EXISTS payments (
    payment_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    payment_number    TEXT UNIQUE NOT NULL,
    order_id          INTEGER,
    invoice_id        INTEGER,
    client_id         INTEGER,
    amount            NUMERIC NOT NULL CHECK (CAST(amount AS REAL) > 0),
    method            TEXT NOT NULL
                      CHECK (method IN ('cash','check','bank_transfer','credit','other')),
    status            TEXT NOT NULL
                      CHECK (status IN ('pending','completed','failed','refunded')),
    payment_date      DATE NOT NULL DEFAULT CURRENT_DATE,
    bank_name         TEXT,
    check_number      TEXT,
    check_date        DATE,
    credit_due_date   DATE,
    reference_number  TEXT,
    transaction_id    TEXT,
    notes             TEXT,
    refund_of         INTEGER,
    created_at        TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CHECK (order_id IS NOT NULL OR invoice_id IS NOT NULL),
    FOREIGN KEY (order_id)   REFERENCES orders(order_id),
    FOREIGN KEY (invoice_id) REFERENCES invoices(invoice_id),
    FOREIGN KEY (client_id)  REFERENCES clients(client_id),
    FOREIGN KEY (refund_of)  REFERENCES payments(payment_id)
);
CREATE INDEX IF NOT EXISTS idx_payments_order   ON payments(order_id, status);
CREATE INDEX IF NOT EXISTS idx_payments_invoice ON payments(invoice_id, status);

/* Ledger is append-only: corrections are new refund rows, never edits. */
DROP TRIGGER IF EXISTS trg_payments_no_update;
CREATE TRIGGER trg_payments_no_update
BEFORE UPDATE ON payments
BEGIN
  SELECT RAISE(ABORT, 'payments are append-only');
END;

DROP TRIGGER IF EXISTS trg_payments_no_delete;
CREATE TRIGGER trg_payments_no_delete
BEFORE DELETE ON payments
BEGIN
  SELECT RAISE(ABORT, 'payments are append-only');
END;
"""

# Columns some deployments never received. Added by migration unless the
# caller asks for a lean schema (used to reproduce schema drift).
OPTIONAL_COLUMNS: dict[str, dict[str, str]] = {
    "orders": {
        "payment_method": "TEXT",
        "updated_at": "TIMESTAMP",
    },
    "invoices": {
        "client_phone": "TEXT",
        "client_address": "TEXT",
        "items": "TEXT",
        "tax_rate": "NUMERIC NOT NULL DEFAULT 0",
        "tax_amount": "NUMERIC NOT NULL DEFAULT 0",
        "discount_amount": "NUMERIC NOT NULL DEFAULT 0",
        "paid_amount": "NUMERIC NOT NULL DEFAULT 0",
        "remaining_amount": "NUMERIC NOT NULL DEFAULT 0",
        "payment_method": "TEXT",
        "bank_name": "TEXT",
        "check_number": "TEXT",
        "check_date": "DATE",
        "credit_due_date": "DATE",
        "notes": "TEXT",
        "created_at": "TIMESTAMP",
        "updated_at": "TIMESTAMP",
    },
}


def table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    cur = conn.execute(f"PRAGMA table_info({table});")
    return {row[1] for row in cur.fetchall()}  # row[1] = name


def unknown_columns(conn: sqlite3.Connection, table: str, names: Iterable[str]) -> set[str]:
    """Names from `names` that `table` does not have in this deployment."""
    return set(names) - table_columns(conn, table)


def _ensure_optional_columns(
    conn: sqlite3.Connection,
    omit_columns: Optional[Mapping[str, Iterable[str]]] = None,
) -> None:
    """
    Safe migration for older DBs created before the optional columns existed.
    Adds each missing column unless listed in omit_columns. No-op if present.
    """
    omit = {t: set(cols) for t, cols in (omit_columns or {}).items()}
    for table, columns in OPTIONAL_COLUMNS.items():
        present = table_columns(conn, table)
        for name, ddl in columns.items():
            if name in present or name in omit.get(table, set()):
                continue
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {ddl};")


def init_schema(
    db_path: Path | str = "backoffice.db",
    *,
    omit_columns: Optional[Mapping[str, Iterable[str]]] = None,
) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        # Apply (idempotent) schema
        conn.executescript(SQL)
        _ensure_optional_columns(conn, omit_columns)
        conn.commit()
    finally:
        conn.close()
    _log.debug("schema applied to %s", db_path)


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "backoffice.db"
    init_schema(target)
