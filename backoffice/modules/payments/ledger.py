# modules/payments/ledger.py
from __future__ import annotations

from decimal import Decimal
import sqlite3

from ...database.repositories import InvoicesRepo, OrdersRepo, Payment, PaymentScope, PaymentsRepo
from ...utils.helpers import ZERO
from .errors import ValidationError
from .payment_utilities.calculations import (
    RECONCILED_STATES,
    LedgerTotals,
    clamp_non_negative,
    compute_net_paid,
    max_refundable,
)


class Ledger:
    """
    Read side of the ledger: scope resolution and net-paid derivation.

    Nothing here is cached; every call goes back to the payments table.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.payments = PaymentsRepo(conn)
        self.invoices = InvoicesRepo(conn)
        self.orders = OrdersRepo(conn)

    def resolve(self, scope: PaymentScope) -> PaymentScope:
        """
        Check the scope's records exist and fill in the other side of the
        order/invoice link, so new rows carry both keys. Raises
        ValidationError for an empty or dangling scope.
        """
        if scope.is_empty:
            raise ValidationError("A payment must reference an order or an invoice.")

        order_id, invoice_id = scope.order_id, scope.invoice_id

        if invoice_id is not None:
            invoice = self.invoices.get(invoice_id)
            if invoice is None:
                raise ValidationError(f"Invoice not found: {invoice_id}")
            if order_id is None:
                order_id = invoice.order_id
            elif invoice.order_id is not None and invoice.order_id != order_id:
                raise ValidationError(
                    f"Invoice {invoice_id} belongs to order {invoice.order_id}, not {order_id}."
                )

        if order_id is not None:
            if self.orders.get(order_id) is None:
                raise ValidationError(f"Order not found: {order_id}")
            if invoice_id is None:
                linked = self.invoices.find_by_order(order_id)
                invoice_id = linked.invoice_id if linked else None

        return PaymentScope(order_id=order_id, invoice_id=invoice_id)

    def entries(self, scope: PaymentScope) -> list[Payment]:
        return self.payments.list_by_scope(scope)

    def compute_net_paid(self, scope: PaymentScope) -> LedgerTotals:
        """
        total_paid / total_refunded / net_paid over every row the scope
        references, straight from the ledger. Projections use the keyed reads
        below instead, since an order can carry several invoices.
        """
        return compute_net_paid(self.payments.list_by_scope(scope, RECONCILED_STATES))

    def invoice_totals(self, invoice_id: int) -> LedgerTotals:
        """Totals over rows stamped with this invoice only."""
        return self.compute_net_paid(PaymentScope(invoice_id=invoice_id))

    def order_totals(self, order_id: int) -> LedgerTotals:
        """Totals over rows stamped with this order, whichever invoice they name."""
        return self.compute_net_paid(PaymentScope(order_id=order_id))

    def refundable(self, scope: PaymentScope, original: Payment | None = None) -> Decimal:
        """
        Largest refund the resolved scope can take right now: the smallest net
        paid among its keys, further capped by what is left of `original`.
        """
        caps = []
        if scope.invoice_id is not None:
            caps.append(max_refundable(self.invoice_totals(scope.invoice_id)))
        if scope.order_id is not None:
            caps.append(max_refundable(self.order_totals(scope.order_id)))
        if original is not None:
            already = self.payments.refunded_against(original.payment_id)
            caps.append(clamp_non_negative(original.amount - already))
        return min(caps) if caps else ZERO
