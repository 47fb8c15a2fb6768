# modules/payments/recorder.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import sqlite3
from typing import Optional

from ...constants import PAYMENT_NUMBER_PREFIX, REFUND_NUMBER_PREFIX
from ...database import immediate_transaction
from ...database.repositories import Payment, PaymentScope
from ...utils.helpers import today_str
from ...utils.loggers import get_logger
from ...utils.validators import non_empty, try_parse_money
from .errors import PersistenceError, ValidationError
from .ledger import Ledger
from .payment_utilities.status import ensure_valid_method

_log = get_logger(__name__)


@dataclass
class PaymentDetails:
    """Method-specific and bookkeeping fields that travel with a payment."""
    payment_date: Optional[str] = None          # 'YYYY-MM-DD' (defaults to today)
    bank_name: Optional[str] = None             # required for check
    check_number: Optional[str] = None          # required for check
    check_date: Optional[str] = None            # required for check
    credit_due_date: Optional[str] = None       # required for credit
    reference_number: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class PaymentRecorder:
    """
    The only writer of ledger facts.

    Rules enforced here:
      • amount > 0; money direction is carried by status, never by sign.
      • check needs bank name + check number + check date; credit needs a due date.
      • record_payment() always writes status='completed'.
      • record_refund() writes status='refunded' and only up to the smallest net
        paid among the scope's invoice and order, and never more than what is
        left of the original payment; the check and the insert share one
        immediate transaction.
      • Nothing but the payments table is touched. Syncing invoices/orders is
        SyncPropagator's job and is invoked separately.
    """

    def __init__(self, conn: sqlite3.Connection, ledger: Ledger | None = None):
        self.conn = conn
        self.ledger = ledger or Ledger(conn)

    # --- validation ---------------------------------------------------------

    @staticmethod
    def positive_amount(amount) -> Decimal:
        ok, value = try_parse_money(amount)
        if not ok:
            raise ValidationError("Amount is required and must be a number.")
        if value <= 0:
            raise ValidationError("Amount must be greater than zero.")
        return value

    @staticmethod
    def validate_method(method: str, details: PaymentDetails) -> str:
        try:
            method = ensure_valid_method(method)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if method == "check":
            missing = [
                name
                for name, value in (
                    ("bank name", details.bank_name),
                    ("check number", details.check_number),
                    ("check date", details.check_date),
                )
                if not non_empty(value)
            ]
            if missing:
                raise ValidationError(f"Check payments require: {', '.join(missing)}.")
        elif method == "credit":
            if not non_empty(details.credit_due_date):
                raise ValidationError("Credit requires a due date.")
        return method

    # --- API ------------------------------------------------------------------

    def record_payment(
        self,
        scope: PaymentScope,
        client_id: Optional[int],
        amount,
        method: str,
        details: Optional[PaymentDetails] = None,
    ) -> Payment:
        """
        Append a completed payment for the scope and return it.
        Raises ValidationError before anything is written, PersistenceError if
        the insert itself fails.
        """
        details = details or PaymentDetails()
        amount = self.positive_amount(amount)
        method = self.validate_method(method, details)
        scope = self.ledger.resolve(scope)

        if client_id is None:
            client_id = self._client_for(scope)

        payment_date = details.payment_date or today_str()
        with immediate_transaction(self.conn):
            payments = self.ledger.payments
            payment_id = payments.insert(
                payment_number=payments.next_number(PAYMENT_NUMBER_PREFIX, payment_date),
                order_id=scope.order_id,
                invoice_id=scope.invoice_id,
                client_id=client_id,
                amount=amount,
                method=method,
                status="completed",
                payment_date=payment_date,
                bank_name=details.bank_name,
                check_number=details.check_number,
                check_date=details.check_date,
                credit_due_date=details.credit_due_date,
                reference_number=details.reference_number,
                transaction_id=details.transaction_id,
                notes=details.notes,
            )
            payment = payments.get(payment_id)

        if payment is None:
            raise PersistenceError(f"Payment {payment_id} vanished after insert.")
        _log.info(
            "recorded payment %s: %s %s (order=%s invoice=%s)",
            payment.payment_number, method, amount, scope.order_id, scope.invoice_id,
        )
        return payment

    def record_refund(
        self,
        amount,
        reason: Optional[str] = None,
        *,
        payment_id: Optional[int] = None,
        scope: Optional[PaymentScope] = None,
        method: Optional[str] = None,
        payment_date: Optional[str] = None,
    ) -> Payment:
        """
        Append a refund against the original payment's scope (payment_id) or an
        explicit scope. The amount must not exceed the net paid of the scope's
        invoice or order at the moment of writing, nor the part of the original
        payment not yet refunded; otherwise ValidationError and the ledger is
        untouched.
        """
        amount = self.positive_amount(amount)

        original: Optional[Payment] = None
        if payment_id is not None:
            original = self.ledger.payments.get(payment_id)
            if original is None:
                raise ValidationError(f"Payment not found: {payment_id}")
            if original.status != "completed":
                raise ValidationError(
                    f"Only completed payments can be refunded (payment {payment_id} is {original.status})."
                )
            scope = original.scope
        elif scope is None:
            raise ValidationError("A refund needs the original payment or a scope.")

        resolved = self.ledger.resolve(scope)

        if original is not None:
            # a refund carries exactly the keys of the payment it reverses
            method = original.method
            client_id = original.client_id
            reference = original.reference_number or original.transaction_id
        else:
            scope = resolved
            last = self._last_completed(scope)
            if method is None:
                method = last.method if last else "other"
            try:
                method = ensure_valid_method(method)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            client_id = last.client_id if last else self._client_for(scope)
            reference = (last.reference_number or last.transaction_id) if last else None

        refund_date = payment_date or today_str()
        with immediate_transaction(self.conn):
            cap = self.ledger.refundable(scope, original)
            if amount > cap:
                raise ValidationError(
                    f"Cannot refund {amount}: only {cap} can be refunded here."
                )
            payments = self.ledger.payments
            refund_id = payments.insert(
                payment_number=payments.next_number(REFUND_NUMBER_PREFIX, refund_date),
                order_id=scope.order_id,
                invoice_id=scope.invoice_id,
                client_id=client_id,
                amount=amount,
                method=method,
                status="refunded",
                payment_date=refund_date,
                reference_number=reference,
                notes=reason or None,
                refund_of=original.payment_id if original else None,
            )
            refund = payments.get(refund_id)

        if refund is None:
            raise PersistenceError(f"Refund {refund_id} vanished after insert.")
        _log.info(
            "recorded refund %s: %s (order=%s invoice=%s, refundable before %s)",
            refund.payment_number, amount, scope.order_id, scope.invoice_id, cap,
        )
        return refund

    # --- reads ---------------------------------------------------------------

    def list_payments(self, scope: PaymentScope) -> list[Payment]:
        """Every ledger row for the (resolved) scope, oldest first."""
        return self.ledger.entries(self.ledger.resolve(scope))

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        return self.ledger.payments.get(payment_id)

    # --- helpers -------------------------------------------------------------

    def _client_for(self, scope: PaymentScope) -> Optional[int]:
        if scope.invoice_id is not None:
            invoice = self.ledger.invoices.get(scope.invoice_id)
            if invoice and invoice.client_id is not None:
                return invoice.client_id
        if scope.order_id is not None:
            order = self.ledger.orders.get(scope.order_id)
            if order:
                return order.client_id
        return None

    def _last_completed(self, scope: PaymentScope) -> Optional[Payment]:
        completed = [p for p in self.ledger.entries(scope) if p.status == "completed"]
        return completed[-1] if completed else None
