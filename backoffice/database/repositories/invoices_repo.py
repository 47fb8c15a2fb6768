# database/repositories/invoices_repo.py
from __future__ import annotations

from dataclasses import dataclass, field, fields as dc_fields
from decimal import Decimal
import json
import sqlite3
from typing import Any, Optional

from ...constants import INVOICE_NUMBER_PREFIX
from ...utils.helpers import to_money
from ..schema import unknown_columns
from .errors import PersistenceError, SchemaDriftError

_MONEY_FIELDS = (
    "subtotal",
    "tax_rate",
    "tax_amount",
    "discount_amount",
    "total_amount",
    "paid_amount",
    "remaining_amount",
)


@dataclass
class Invoice:
    invoice_id: int
    invoice_number: str
    order_id: int | None
    client_id: int | None
    client_name: str | None
    invoice_date: str
    due_date: str | None
    subtotal: Decimal
    total_amount: Decimal
    status: str
    # optional columns; absent in lean deployments
    client_phone: str | None = None
    client_address: str | None = None
    items: list[dict] = field(default_factory=list)
    tax_rate: Decimal = Decimal("0.00")
    tax_amount: Decimal = Decimal("0.00")
    discount_amount: Decimal = Decimal("0.00")
    paid_amount: Decimal = Decimal("0.00")
    remaining_amount: Decimal = Decimal("0.00")
    payment_method: str | None = None
    bank_name: str | None = None
    check_number: str | None = None
    check_date: str | None = None
    credit_due_date: str | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Invoice":
        known = {f.name for f in dc_fields(cls)}
        data = {k: row[k] for k in row.keys() if k in known}
        for k in _MONEY_FIELDS:
            if k in data:
                data[k] = to_money(data[k])
        raw_items = data.get("items")
        data["items"] = json.loads(raw_items) if raw_items else []
        return cls(**data)


class InvoicesRepo:
    """
    Invoices (billing documents).

    Writes are checked against the deployment's actual columns first: a payload
    naming a column this database lacks raises SchemaDriftError (and nothing is
    written), any other storage failure raises PersistenceError.
    No commit here; the caller controls the transaction boundary.
    """

    TABLE = "invoices"

    def __init__(self, conn: sqlite3.Connection):
        # ensure rows behave like dicts/tuples
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    def _prepare(self, payload: dict[str, Any]) -> dict[str, Any]:
        missing = unknown_columns(self.conn, self.TABLE, payload)
        if missing:
            raise SchemaDriftError(self.TABLE, missing)
        data = dict(payload)
        if isinstance(data.get("items"), (list, tuple)):
            data["items"] = json.dumps(data["items"], default=str)
        return data

    # ---- Writes -----------------------------------------------------------

    def insert(self, payload: dict[str, Any]) -> int:
        data = self._prepare(payload)
        cols = list(data)
        sql = (
            f"INSERT INTO {self.TABLE} ({', '.join(cols)}) "
            f"VALUES ({', '.join(':' + c for c in cols)})"
        )
        try:
            cur = self.conn.execute(sql, data)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not save invoice: {e}") from e
        return int(cur.lastrowid)

    def update(self, invoice_id: int, payload: dict[str, Any]) -> None:
        if not payload:
            return
        data = self._prepare(payload)
        assignments = ", ".join(f"{c} = :{c}" for c in data)
        try:
            cur = self.conn.execute(
                f"UPDATE {self.TABLE} SET {assignments} WHERE invoice_id = :_invoice_id",
                {**data, "_invoice_id": invoice_id},
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not update invoice {invoice_id}: {e}") from e
        if cur.rowcount == 0:
            raise PersistenceError(f"Invoice not found: {invoice_id}")

    # ---- Reads ------------------------------------------------------------

    def get(self, invoice_id: int) -> Optional[Invoice]:
        row = self.conn.execute(
            "SELECT * FROM invoices WHERE invoice_id = ?;", (invoice_id,)
        ).fetchone()
        return Invoice.from_row(row) if row else None

    def find_by_order(self, order_id: int) -> Optional[Invoice]:
        """The invoice billed for an order (earliest one if several exist)."""
        row = self.conn.execute(
            "SELECT * FROM invoices WHERE order_id = ? ORDER BY invoice_id ASC LIMIT 1;",
            (order_id,),
        ).fetchone()
        return Invoice.from_row(row) if row else None

    def next_number(self, date_str: str) -> str:
        """
        Invoice numbers use prefix INV + yyyymmdd + -NNNN
        """
        d = date_str.replace("-", "")
        prefix = f"{INVOICE_NUMBER_PREFIX}{d}-"
        row = self.conn.execute(
            "SELECT MAX(invoice_number) AS m FROM invoices WHERE invoice_number LIKE ?",
            (prefix + "%",),
        ).fetchone()
        last = int(row["m"].split("-")[-1]) if row and row["m"] else 0
        return f"{prefix}{last+1:04d}"
