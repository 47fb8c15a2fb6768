# tests/test_sales_controller.py
from decimal import Decimal

import pytest

from backoffice.constants import WALK_IN_CLIENT_NAME
from backoffice.database.repositories import (
    InvoicesRepo,
    OrdersRepo,
    PaymentScope,
    PersistenceError,
    ValidationError,
)
from backoffice.modules.invoices import InvoiceLine
from backoffice.modules.payments import (
    ORDER_PAYMENT_UPDATED,
    PAYMENT_UPDATED,
    Ledger,
    PaymentDetails,
    PaymentEventBus,
)
from backoffice.modules.sales import InvoiceDraft, PaymentsController, SaleContext

D = Decimal


@pytest.fixture()
def bus():
    return PaymentEventBus()


@pytest.fixture()
def received(bus):
    seen = []
    bus.subscribe(seen.append)
    return seen


@pytest.fixture()
def ctrl(conn, bus):
    return PaymentsController(conn, bus)


def _cart(*prices):
    return [InvoiceLine(f"Item {i}", 1, p, product_id=i) for i, p in enumerate(prices, 1)]


def _payments(con):
    return con.execute("SELECT * FROM payments ORDER BY payment_id").fetchall()


# --------------------------- confirm_sale ---------------------------

def test_cash_sale_pays_invoice_in_full(conn, ctrl, received, make_order, client_id):
    order_id = make_order(1000, client_id=client_id)
    ctx = SaleContext(
        lines=_cart("600", "400"), client_id=client_id, order_id=order_id, invoice_date="2025-01-10"
    )

    result = ctrl.confirm_sale(ctx, "cash")

    assert result.ok
    assert result.order_id == order_id
    assert result.payment.amount == D("1000.00")
    assert result.payment.invoice_id == result.invoice_id
    inv = InvoicesRepo(conn).get(result.invoice_id)
    assert inv.invoice_number == "INV20250110-0001"
    assert (inv.status, inv.paid_amount, inv.remaining_amount) == ("paid", D("1000.00"), D("0.00"))
    assert inv.client_name == "Acme Traders"
    assert [i["description"] for i in inv.items] == ["Item 1", "Item 2"]
    order = OrdersRepo(conn).get(order_id)
    assert (order.payment_status, order.payment_method) == ("paid", "cash")
    assert [u.type for u in received] == [PAYMENT_UPDATED, ORDER_PAYMENT_UPDATED]
    assert received[0].payment_status == "paid"
    assert result.events == [PAYMENT_UPDATED, ORDER_PAYMENT_UPDATED]


def test_partial_sale_amount(conn, ctrl):
    ctx = SaleContext(lines=_cart("1000"))
    result = ctrl.confirm_sale(ctx, "bank_transfer", PaymentDetails(transaction_id="TX1"), amount=600)

    inv = InvoicesRepo(conn).get(result.invoice_id)
    assert (inv.status, inv.paid_amount, inv.remaining_amount) == ("sent", D("600.00"), D("400.00"))
    assert result.payment.transaction_id == "TX1"


def test_sale_without_client_uses_walk_in(conn, ctrl):
    result = ctrl.confirm_sale(SaleContext(lines=_cart("50")), "cash")
    inv = InvoicesRepo(conn).get(result.invoice_id)
    assert inv.client_name == WALK_IN_CLIENT_NAME
    assert result.payment.client_id == inv.client_id


def test_credit_sale_records_no_ledger_entry(conn, ctrl, received):
    ctx = SaleContext(lines=_cart("800"), due_date="2025-02-10")
    result = ctrl.confirm_sale(ctx, "credit")

    assert result.payment is None
    assert _payments(conn) == []
    inv = InvoicesRepo(conn).get(result.invoice_id)
    assert (inv.status, inv.paid_amount, inv.remaining_amount) == ("draft", D("0.00"), D("800.00"))
    assert inv.credit_due_date == "2025-02-10"
    assert inv.payment_method == "credit"
    assert len(received) == 2


def test_credit_sale_needs_due_date(conn, ctrl):
    with pytest.raises(ValidationError, match="due date"):
        ctrl.confirm_sale(SaleContext(lines=_cart("10")), "credit")
    assert conn.execute("SELECT COUNT(*) FROM invoices").fetchone()[0] == 0


def test_zero_total_cash_sale_is_settled(conn, ctrl):
    result = ctrl.confirm_sale(SaleContext(lines=[InvoiceLine("Gift", 1, 0)]), "cash")
    assert result.payment is None
    assert InvoicesRepo(conn).get(result.invoice_id).status == "paid"


def test_check_sale_without_details_writes_nothing(conn, ctrl):
    with pytest.raises(ValidationError):
        ctrl.confirm_sale(SaleContext(lines=_cart("10")), "check")
    assert conn.execute("SELECT COUNT(*) FROM invoices").fetchone()[0] == 0
    assert _payments(conn) == []


def test_sale_on_lean_schema(lean_conn):
    ctrl = PaymentsController(lean_conn)
    result = ctrl.confirm_sale(SaleContext(lines=_cart("100"), tax_rate=5), "cash")

    assert result.invoice_reduced
    assert result.ok
    inv = InvoicesRepo(lean_conn).get(result.invoice_id)
    assert inv.status == "paid"
    assert inv.total_amount == D("105.00")
    assert inv.items == []


# --------------------------- process_refund ---------------------------

def test_refund_resyncs_invoice_and_order(conn, ctrl, received, make_order):
    order_id = make_order(1000)
    sale = ctrl.confirm_sale(SaleContext(lines=_cart("1000"), order_id=order_id), "cash")
    received.clear()

    result = ctrl.process_refund(sale.payment.payment_id, 1000, "cancelled")

    assert result.payment.status == "refunded"
    assert result.invoice_id == sale.invoice_id
    inv = InvoicesRepo(conn).get(sale.invoice_id)
    assert (inv.status, inv.paid_amount) == ("draft", D("0.00"))
    assert OrdersRepo(conn).get(order_id).payment_status == "refunded"
    assert [u.type for u in received] == [PAYMENT_UPDATED, ORDER_PAYMENT_UPDATED]
    assert received[-1].payment_status == "refunded"


def test_refund_too_large_leaves_everything_alone(conn, ctrl, received):
    sale = ctrl.confirm_sale(SaleContext(lines=_cart("200")), "cash")
    received.clear()

    with pytest.raises(ValidationError):
        ctrl.process_refund(sale.payment.payment_id, 500, "nope")

    assert len(_payments(conn)) == 1
    assert received == []
    assert Ledger(conn).compute_net_paid(PaymentScope(invoice_id=sale.invoice_id)).net_paid == D("200.00")


def test_refund_on_one_invoice_leaves_its_sibling_paid(conn, ctrl, make_order):
    order_id = make_order(1000)
    first = ctrl.confirm_sale(SaleContext(lines=_cart("600"), order_id=order_id), "cash")
    second = ctrl.confirm_sale(SaleContext(lines=_cart("400"), order_id=order_id), "cash")
    assert OrdersRepo(conn).get(order_id).payment_status == "paid"
    assert InvoicesRepo(conn).get(first.invoice_id).paid_amount == D("600.00")

    result = ctrl.process_refund(first.payment.payment_id, 600, "returned")

    assert result.invoice_id == first.invoice_id
    inv = InvoicesRepo(conn).get(first.invoice_id)
    assert (inv.status, inv.paid_amount) == ("draft", D("0.00"))
    sibling = InvoicesRepo(conn).get(second.invoice_id)
    assert (sibling.status, sibling.paid_amount, sibling.remaining_amount) == ("paid", D("400.00"), D("0.00"))
    assert OrdersRepo(conn).get(order_id).payment_status == "partial"
    assert result.payment_status == "partial"


# --------------------------- save_invoice ---------------------------

def test_save_invoice_create_then_edit(conn, ctrl, client_id):
    draft = InvoiceDraft(lines=_cart("300"), client_id=client_id, notes="first")
    created = ctrl.save_invoice(draft)
    inv = InvoicesRepo(conn).get(created.invoice_id)
    assert (inv.status, inv.total_amount, inv.remaining_amount) == ("draft", D("300.00"), D("300.00"))

    ctrl.recorder.record_payment(PaymentScope(invoice_id=created.invoice_id), None, 300, "cash")

    edited = ctrl.save_invoice(
        InvoiceDraft(
            lines=_cart("300", "200"),
            client_id=client_id,
            invoice_id=created.invoice_id,
            notes="second",
        )
    )
    inv = InvoicesRepo(conn).get(edited.invoice_id)
    assert inv.invoice_number == "INV" + inv.invoice_date.replace("-", "") + "-0001"
    assert inv.notes == "second"
    assert inv.total_amount == D("500.00")
    # derived fields follow the ledger, not the editor
    assert (inv.status, inv.paid_amount, inv.remaining_amount) == ("sent", D("300.00"), D("200.00"))


def test_save_invoice_unknown_id(ctrl):
    with pytest.raises(ValidationError, match="Invoice not found"):
        ctrl.save_invoice(InvoiceDraft(lines=_cart("1"), invoice_id=777))


# --------------------------- record_order_payment ---------------------------

def test_order_payment_reaches_linked_invoice(conn, ctrl, received, order_with_invoice):
    order_id, invoice_id = order_with_invoice

    result = ctrl.record_order_payment(order_id, 250, "cash")

    assert result.invoice_id == invoice_id
    assert result.payment.invoice_id == invoice_id
    assert OrdersRepo(conn).get(order_id).payment_status == "partial"
    assert InvoicesRepo(conn).get(invoice_id).remaining_amount == D("750.00")
    assert [u.type for u in received] == [ORDER_PAYMENT_UPDATED]
    assert received[0].payment_status == "partial"


def test_failed_ledger_write_publishes_nothing(conn, ctrl, received, order_with_invoice):
    order_id, invoice_id = order_with_invoice
    with conn:
        conn.execute(
            "CREATE TRIGGER trg_ledger_offline BEFORE INSERT ON payments "
            "BEGIN SELECT RAISE(ABORT, 'ledger offline'); END;"
        )

    with pytest.raises(PersistenceError):
        ctrl.record_order_payment(order_id, 250, "cash")

    assert _payments(conn) == []
    assert received == []
    assert OrdersRepo(conn).get(order_id).payment_status == "pending"
    assert InvoicesRepo(conn).get(invoice_id).status == "draft"
