# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Every test gets its own SQLite file under tmp_path (schema + seed applied)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (via get_connection)
# - `lean_conn` reproduces a deployment missing the optional projection columns
# - Provide small factories for orders/invoices
# ---------------------------------------------------------------------

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import sqlite3
from decimal import Decimal
from typing import Optional

import pytest

from backoffice.database import get_connection
from backoffice.database.repositories import ClientsRepo, InvoicesRepo, OrdersRepo
from backoffice.database.schema import OPTIONAL_COLUMNS

TODAY = "2025-01-10"


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


# ---------- Per-test database ----------
@pytest.fixture()
def conn(tmp_path):
    con = get_connection(tmp_path / "backoffice.db")
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def lean_conn(tmp_path):
    """A database whose invoices/orders tables only have the base columns."""
    con = get_connection(
        tmp_path / "lean.db",
        omit_columns={table: list(cols) for table, cols in OPTIONAL_COLUMNS.items()},
    )
    try:
        yield con
    finally:
        con.close()


# ---------- Handy factories ----------
def _make_client(con: sqlite3.Connection, name: str = "Acme Traders") -> int:
    with con:
        return ClientsRepo(con).create(name, phone="0300-1234567", address="12 Mall Road")


def _make_order(
    con: sqlite3.Connection,
    total,
    *,
    client_id: Optional[int] = None,
    number: Optional[str] = None,
) -> int:
    repo = OrdersRepo(con)
    if number is None:
        n = con.execute("SELECT COUNT(*) AS n FROM orders").fetchone()["n"]
        number = f"SO{TODAY.replace('-', '')}-{n + 1:04d}"
    with con:
        return repo.create(
            order_number=number,
            total_amount=Decimal(str(total)),
            client_id=client_id,
            order_date=TODAY,
        )


def _make_invoice(
    con: sqlite3.Connection,
    total,
    *,
    order_id: Optional[int] = None,
    client_id: Optional[int] = None,
) -> int:
    repo = InvoicesRepo(con)
    total = Decimal(str(total))
    with con:
        return repo.insert(
            {
                "invoice_number": repo.next_number(TODAY),
                "order_id": order_id,
                "client_id": client_id,
                "client_name": "Acme Traders",
                "invoice_date": TODAY,
                "due_date": TODAY,
                "subtotal": total,
                "total_amount": total,
                "status": "draft",
            }
        )


@pytest.fixture()
def client_id(conn) -> int:
    return _make_client(conn)


@pytest.fixture()
def make_order(conn):
    def factory(total, **kw) -> int:
        return _make_order(conn, total, **kw)
    return factory


@pytest.fixture()
def make_invoice(conn):
    def factory(total, **kw) -> int:
        return _make_invoice(conn, total, **kw)
    return factory


@pytest.fixture()
def order_with_invoice(conn, client_id):
    """(order_id, invoice_id) for a 1000.00 sale billed to one client."""
    order_id = _make_order(conn, 1000, client_id=client_id)
    invoice_id = _make_invoice(conn, 1000, order_id=order_id, client_id=client_id)
    return order_id, invoice_id


@pytest.fixture()
def lean_order_with_invoice(lean_conn):
    order_id = _make_order(lean_conn, 1000)
    invoice_id = _make_invoice(lean_conn, 1000, order_id=order_id)
    return order_id, invoice_id


@pytest.fixture()
def open_db(tmp_path):
    """Open extra databases (e.g. with a custom omit_columns); closed at teardown."""
    opened: list[sqlite3.Connection] = []

    def factory(name: str = "extra.db", **kw) -> sqlite3.Connection:
        con = get_connection(tmp_path / name, **kw)
        opened.append(con)
        return con

    yield factory
    for con in opened:
        con.close()


@pytest.fixture()
def factories():
    """Order/invoice factories that take an explicit connection."""
    class _Factories:
        make_client = staticmethod(_make_client)
        make_order = staticmethod(_make_order)
        make_invoice = staticmethod(_make_invoice)
    return _Factories
