# database/repositories/payments_repo.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import sqlite3
from typing import Iterable, Optional

from ...utils.helpers import to_money
from .errors import PersistenceError


@dataclass(frozen=True)
class PaymentScope:
    """
    The order and/or invoice a ledger computation is keyed to.

    Listing a scope with both keys returns every entry that references either
    of them. Invoice and order projections read each key on its own.
    """
    order_id: int | None = None
    invoice_id: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.order_id is None and self.invoice_id is None

    def with_invoice(self, invoice_id: int | None) -> "PaymentScope":
        return PaymentScope(order_id=self.order_id, invoice_id=invoice_id)


@dataclass(frozen=True)
class Payment:
    payment_id: int
    payment_number: str
    order_id: int | None
    invoice_id: int | None
    client_id: int | None
    amount: Decimal
    method: str
    status: str
    payment_date: str
    bank_name: str | None = None
    check_number: str | None = None
    check_date: str | None = None
    credit_due_date: str | None = None
    reference_number: str | None = None
    transaction_id: str | None = None
    notes: str | None = None
    refund_of: int | None = None
    created_at: str | None = None

    @property
    def scope(self) -> PaymentScope:
        return PaymentScope(order_id=self.order_id, invoice_id=self.invoice_id)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Payment":
        data = dict(row)
        data["amount"] = to_money(data["amount"])
        return cls(**data)


class PaymentsRepo:
    """
    Ledger store: rows in `payments`.

    Conventions:
      • Append-only. The schema aborts any UPDATE/DELETE; corrections are new
        rows with status='refunded'.
      • Amounts are always positive; status says which way the money moved.
      • No commit here; the caller controls the transaction boundary.
    """

    COLUMNS: tuple[str, ...] = (
        "payment_number",
        "order_id",
        "invoice_id",
        "client_id",
        "amount",
        "method",
        "status",
        "payment_date",
        "bank_name",
        "check_number",
        "check_date",
        "credit_due_date",
        "reference_number",
        "transaction_id",
        "notes",
        "refund_of",
    )

    def __init__(self, conn: sqlite3.Connection):
        # ensure rows behave like dicts/tuples
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Writes -----------------------------------------------------------

    def insert(self, **fields) -> int:
        """
        Append one ledger row and return its payment_id.
        Unknown keys are a programming error; storage failures become PersistenceError.
        """
        unknown = set(fields) - set(self.COLUMNS)
        if unknown:
            raise TypeError(f"Unknown payment field(s): {', '.join(sorted(unknown))}")

        cols = [c for c in self.COLUMNS if c in fields]
        sql = (
            f"INSERT INTO payments ({', '.join(cols)}) "
            f"VALUES ({', '.join(':' + c for c in cols)})"
        )
        try:
            cur = self.conn.execute(sql, {c: fields[c] for c in cols})
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not record payment: {e}") from e
        return int(cur.lastrowid)

    # ---- Reads ------------------------------------------------------------

    def get(self, payment_id: int) -> Optional[Payment]:
        row = self.conn.execute(
            "SELECT * FROM payments WHERE payment_id = ?;", (payment_id,)
        ).fetchone()
        return Payment.from_row(row) if row else None

    def list_by_scope(
        self,
        scope: PaymentScope,
        statuses: Iterable[str] | None = None,
    ) -> list[Payment]:
        """
        Return ledger rows referencing the scope's order or invoice (chronological).
        statuses narrows the result (e.g. ('completed', 'refunded')).
        """
        if scope.is_empty:
            return []

        where = []
        params: list = []
        keys = []
        if scope.order_id is not None:
            keys.append("order_id = ?")
            params.append(scope.order_id)
        if scope.invoice_id is not None:
            keys.append("invoice_id = ?")
            params.append(scope.invoice_id)
        where.append("(" + " OR ".join(keys) + ")")

        if statuses is not None:
            statuses = list(statuses)
            if not statuses:
                return []
            where.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params += statuses

        sql = f"""
            SELECT *
              FROM payments
             WHERE {' AND '.join(where)}
             ORDER BY payment_date ASC, payment_id ASC;
        """
        return [Payment.from_row(r) for r in self.conn.execute(sql, params).fetchall()]

    def refunded_against(self, payment_id: int) -> Decimal:
        """Sum of refund rows linked to payment_id through refund_of."""
        row = self.conn.execute(
            """
            SELECT COALESCE(SUM(amount), 0) AS s
              FROM payments
             WHERE refund_of = ? AND status = 'refunded';
            """,
            (payment_id,),
        ).fetchone()
        return to_money(row["s"])

    def next_number(self, prefix: str, date_str: str) -> str:
        """
        Payment numbers use prefix + yyyymmdd + -NNNN (e.g. PAY20250110-0003).
        """
        d = date_str.replace("-", "")
        head = f"{prefix}{d}-"
        row = self.conn.execute(
            "SELECT MAX(payment_number) AS m FROM payments WHERE payment_number LIKE ?",
            (head + "%",),
        ).fetchone()
        last = int(row["m"].split("-")[-1]) if row and row["m"] else 0
        return f"{head}{last+1:04d}"
