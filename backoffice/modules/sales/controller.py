# modules/sales/controller.py
"""
Command surface for point-of-sale checkout, invoice editing, refunds and
order payments.

Every command follows the same pipeline:

    validate -> (invoice document write) -> ledger append -> propagate -> publish

Validation problems raise ValidationError before anything is written.
A failed ledger or invoice document write raises PersistenceError.
Projection trouble after the ledger write never raises; it comes back as
warnings on CommandResult.propagation.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
import sqlite3
from typing import Any, Optional

from ...database.repositories import (
    ClientsRepo,
    Invoice,
    Payment,
    PaymentScope,
    ValidationError,
)
from ...utils.helpers import ZERO, fmt_money, now_str, today_str
from ...utils.loggers import get_logger
from ..invoices import InvoiceLine, InvoiceTotals, compose_totals, line_items
from ..payments import (
    ORDER_PAYMENT_UPDATED,
    PAYMENT_UPDATED,
    PaymentDetails,
    PaymentEventBus,
    PaymentRecorder,
    PaymentUpdate,
    PropagationResult,
    SyncPropagator,
    TieredPayload,
    write_tiered,
)
from ..payments.ledger import Ledger
from ..payments.payment_utilities import ensure_valid_method, normalize

_log = get_logger(__name__)

# Columns every deployment's invoices table has; the rest are optional.
INVOICE_BASE_FIELDS: tuple[str, ...] = (
    "invoice_number",
    "order_id",
    "client_id",
    "client_name",
    "invoice_date",
    "due_date",
    "subtotal",
    "total_amount",
    "status",
)


@dataclass
class SaleContext:
    """Everything a checkout needs, passed in explicitly by the caller."""
    lines: list[InvoiceLine]
    client_id: Optional[int] = None           # None -> walk-in client
    order_id: Optional[int] = None
    tax_rate: Any = 0
    discount_amount: Any = 0
    notes: Optional[str] = None
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    invoice_date: Optional[str] = None        # defaults to today
    due_date: Optional[str] = None


@dataclass
class InvoiceDraft(SaleContext):
    """Invoice editor payload; invoice_id set means edit, else create."""
    invoice_id: Optional[int] = None
    payment_method: Optional[str] = None


@dataclass
class CommandResult:
    order_id: Optional[int]
    invoice_id: Optional[int]
    payment: Optional[Payment] = None
    propagation: Optional[PropagationResult] = None
    invoice_reduced: bool = False             # invoice document saved without optional columns
    events: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.propagation is None or self.propagation.ok

    @property
    def payment_status(self) -> Optional[str]:
        return self.propagation.payment_status if self.propagation else None


class PaymentsController:
    def __init__(self, conn: sqlite3.Connection, bus: PaymentEventBus | None = None):
        self.conn = conn
        self.ledger = Ledger(conn)
        self.recorder = PaymentRecorder(conn, self.ledger)
        self.propagator = SyncPropagator(conn, self.ledger)
        self.clients = ClientsRepo(conn)
        self.bus = bus or PaymentEventBus()

    # ---- commands ---------------------------------------------------------

    def confirm_sale(
        self,
        context: SaleContext,
        payment_method: str,
        details: Optional[PaymentDetails] = None,
        *,
        amount=None,
    ) -> CommandResult:
        """
        Checkout: write the invoice, take the payment, sync, notify.

        `amount` defaults to the invoice total. A `credit` sale is a sale on
        account: no ledger entry is written and the invoice stays unpaid until
        payments arrive.
        """
        details = details or PaymentDetails()
        if normalize(payment_method) == "credit" and details.credit_due_date is None and context.due_date:
            details = replace(details, credit_due_date=context.due_date)
        method = self.recorder.validate_method(payment_method, details)

        totals = compose_totals(context.lines, context.tax_rate, context.discount_amount)
        on_account = method == "credit"
        if not on_account:
            amount = totals.total_amount if amount is None else self.recorder.positive_amount(amount)

        scope = PaymentScope(order_id=context.order_id)
        if context.order_id is not None:
            # order must exist before an invoice points at it
            self.ledger.resolve(scope)

        invoice_id, reduced = self._insert_invoice(context, totals, method=method, details=details)
        scope = scope.with_invoice(invoice_id)

        payment = None
        if not on_account and amount > 0:
            try:
                payment = self.recorder.record_payment(
                    scope, self._invoice_client(invoice_id), amount, method, details
                )
            except Exception:
                _log.error(
                    "invoice %s saved but the sale payment was not recorded", invoice_id
                )
                raise

        propagation = self.propagator.propagate(
            scope, payment_method=method, settled_zero_total=not on_account
        )
        result = CommandResult(
            order_id=propagation.scope.order_id,
            invoice_id=invoice_id,
            payment=payment,
            propagation=propagation,
            invoice_reduced=reduced,
        )
        self._publish(result, method, PAYMENT_UPDATED, ORDER_PAYMENT_UPDATED)
        _log.info(
            "sale confirmed: invoice %s total %s via %s -> %s",
            invoice_id, fmt_money(totals.total_amount), method, result.payment_status,
        )
        return result

    def process_refund(self, payment_id: int, amount, reason: Optional[str] = None) -> CommandResult:
        refund = self.recorder.record_refund(amount, reason, payment_id=payment_id)
        propagation = self.propagator.propagate(refund.scope)
        result = CommandResult(
            order_id=propagation.scope.order_id,
            invoice_id=propagation.scope.invoice_id,
            payment=refund,
            propagation=propagation,
        )
        self._publish(result, refund.method, PAYMENT_UPDATED, ORDER_PAYMENT_UPDATED)
        return result

    def save_invoice(self, invoice_data: InvoiceDraft) -> CommandResult:
        """
        Create or edit an invoice document. Only non-derived fields are
        written here; status/paid/remaining are re-synced from the ledger.
        """
        totals = compose_totals(
            invoice_data.lines, invoice_data.tax_rate, invoice_data.discount_amount
        )
        details = PaymentDetails()
        method = None
        if invoice_data.payment_method:
            # the editor only records the intended method; instrument details
            # are checked when money is actually recorded
            try:
                method = ensure_valid_method(invoice_data.payment_method)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            if method == "credit":
                details = replace(details, credit_due_date=invoice_data.due_date)

        settled_zero_total = False
        if invoice_data.invoice_id is None:
            if invoice_data.order_id is not None:
                self.ledger.resolve(PaymentScope(order_id=invoice_data.order_id))
            invoice_id, reduced = self._insert_invoice(invoice_data, totals, method=method, details=details)
        else:
            invoice_id = invoice_data.invoice_id
            existing = self.ledger.invoices.get(invoice_id)
            if existing is None:
                raise ValidationError(f"Invoice not found: {invoice_id}")
            # a settled zero-total invoice keeps its paid state across edits
            settled_zero_total = existing.status == "paid" and existing.total_amount <= 0
            reduced = self._update_invoice(existing, invoice_data, totals, method=method, details=details)

        propagation = self.propagator.propagate(
            PaymentScope(invoice_id=invoice_id), settled_zero_total=settled_zero_total
        )
        result = CommandResult(
            order_id=propagation.scope.order_id,
            invoice_id=invoice_id,
            propagation=propagation,
            invoice_reduced=reduced,
        )
        self._publish(result, method, PAYMENT_UPDATED)
        return result

    def record_order_payment(
        self,
        order_id: int,
        amount,
        method: str,
        details: Optional[PaymentDetails] = None,
    ) -> CommandResult:
        payment = self.recorder.record_payment(
            PaymentScope(order_id=order_id), None, amount, method, details
        )
        propagation = self.propagator.propagate(payment.scope, payment_method=payment.method)
        result = CommandResult(
            order_id=order_id,
            invoice_id=propagation.scope.invoice_id,
            payment=payment,
            propagation=propagation,
        )
        self._publish(result, payment.method, ORDER_PAYMENT_UPDATED)
        return result

    # ---- invoice document -------------------------------------------------

    def _client_fields(self, context: SaleContext) -> dict[str, Any]:
        if context.client_id is None:
            client = self.clients.walk_in()
        else:
            client = self.clients.get(context.client_id)
            if client is None:
                raise ValidationError(f"Client not found: {context.client_id}")
        return {
            "client_id": client.client_id,
            "client_name": context.client_name or client.name,
            "client_phone": context.client_phone or client.phone,
            "client_address": context.client_address or client.address,
        }

    def _document_payload(
        self,
        context: SaleContext,
        totals: InvoiceTotals,
        *,
        method: Optional[str],
        details: PaymentDetails,
    ) -> dict[str, Any]:
        invoice_date = context.invoice_date or today_str()
        payload: dict[str, Any] = {
            "order_id": context.order_id,
            **self._client_fields(context),
            "invoice_date": invoice_date,
            "due_date": context.due_date or details.credit_due_date or invoice_date,
            "subtotal": totals.subtotal,
            "total_amount": totals.total_amount,
            "items": line_items(context.lines),
            "tax_rate": totals.tax_rate,
            "tax_amount": totals.tax_amount,
            "discount_amount": totals.discount_amount,
            "notes": context.notes,
            "updated_at": now_str(),
        }
        if method is not None:
            payload["payment_method"] = method
            for name in ("bank_name", "check_number", "check_date", "credit_due_date"):
                value = getattr(details, name)
                if value is not None:
                    payload[name] = value
        return payload

    def _insert_invoice(
        self,
        context: SaleContext,
        totals: InvoiceTotals,
        *,
        method: Optional[str],
        details: PaymentDetails,
    ) -> tuple[int, bool]:
        full = self._document_payload(context, totals, method=method, details=details)
        full.update(
            invoice_number=self.ledger.invoices.next_number(full["invoice_date"]),
            status="draft",
            paid_amount=ZERO,
            remaining_amount=totals.total_amount,
            created_at=now_str(),
        )
        invoice_id, reduced = write_tiered(
            self.conn,
            self.ledger.invoices.insert,
            TieredPayload(full=full, required=INVOICE_BASE_FIELDS),
            what="new invoice",
        )
        return invoice_id, reduced

    def _update_invoice(
        self,
        existing: Invoice,
        draft: InvoiceDraft,
        totals: InvoiceTotals,
        *,
        method: Optional[str],
        details: PaymentDetails,
    ) -> bool:
        if draft.order_id is not None and draft.order_id != existing.order_id:
            self.ledger.resolve(PaymentScope(order_id=draft.order_id))
        # fields the editor left blank keep their stored values
        draft = replace(
            draft,
            order_id=draft.order_id if draft.order_id is not None else existing.order_id,
            client_id=draft.client_id if draft.client_id is not None else existing.client_id,
            invoice_date=draft.invoice_date or existing.invoice_date,
            due_date=draft.due_date or existing.due_date,
        )
        full = self._document_payload(draft, totals, method=method, details=details)
        _, reduced = write_tiered(
            self.conn,
            lambda data: self.ledger.invoices.update(existing.invoice_id, data),
            TieredPayload(full=full, required=INVOICE_BASE_FIELDS),
            what=f"invoice {existing.invoice_id}",
        )
        return reduced

    def _invoice_client(self, invoice_id: int) -> Optional[int]:
        invoice = self.ledger.invoices.get(invoice_id)
        return invoice.client_id if invoice else None

    # ---- events -----------------------------------------------------------

    def _publish(self, result: CommandResult, method: Optional[str], *event_types: str) -> None:
        for event_type in event_types:
            update = PaymentUpdate(
                type=event_type,
                order_id=result.order_id,
                invoice_id=result.invoice_id,
                payment_status=result.payment_status,
                payment_method=method,
            )
            self.bus.publish(update)
            result.events.append(event_type)


__all__ = [
    "CommandResult",
    "INVOICE_BASE_FIELDS",
    "InvoiceDraft",
    "PaymentsController",
    "SaleContext",
]
