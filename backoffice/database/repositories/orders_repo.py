# database/repositories/orders_repo.py
from __future__ import annotations

from dataclasses import dataclass, fields as dc_fields
from decimal import Decimal
import sqlite3
from typing import Any, Optional

from ...utils.helpers import to_money
from ..schema import unknown_columns
from .errors import PersistenceError, SchemaDriftError


@dataclass
class Order:
    order_id: int
    order_number: str
    client_id: int | None
    order_date: str
    total_amount: Decimal
    payment_status: str
    payment_method: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Order":
        known = {f.name for f in dc_fields(cls)}
        data = {k: row[k] for k in row.keys() if k in known}
        data["total_amount"] = to_money(data["total_amount"])
        return cls(**data)


class OrdersRepo:
    """
    Orders are created upstream; this side only reads them and writes the
    payment projection (payment_status, payment_method).
    No commit here; the caller controls the transaction boundary.
    """

    TABLE = "orders"

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def create(
        self,
        *,
        order_number: str,
        total_amount: Decimal | float,
        client_id: int | None = None,
        order_date: str | None = None,
    ) -> int:
        try:
            cur = self.conn.execute(
                """
                INSERT INTO orders (order_number, client_id, order_date, total_amount)
                VALUES (:order_number, :client_id, COALESCE(:order_date, CURRENT_DATE), :total_amount)
                """,
                {
                    "order_number": order_number,
                    "client_id": client_id,
                    "order_date": order_date,
                    "total_amount": to_money(total_amount),
                },
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not create order {order_number}: {e}") from e
        return int(cur.lastrowid)

    def update(self, order_id: int, payload: dict[str, Any]) -> None:
        if not payload:
            return
        missing = unknown_columns(self.conn, self.TABLE, payload)
        if missing:
            raise SchemaDriftError(self.TABLE, missing)
        assignments = ", ".join(f"{c} = :{c}" for c in payload)
        try:
            cur = self.conn.execute(
                f"UPDATE {self.TABLE} SET {assignments} WHERE order_id = :_order_id",
                {**payload, "_order_id": order_id},
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not update order {order_id}: {e}") from e
        if cur.rowcount == 0:
            raise PersistenceError(f"Order not found: {order_id}")

    def get(self, order_id: int) -> Optional[Order]:
        row = self.conn.execute(
            "SELECT * FROM orders WHERE order_id = ?;", (order_id,)
        ).fetchone()
        return Order.from_row(row) if row else None
