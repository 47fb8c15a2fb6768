# modules/payments/sync.py
"""
Sync propagator: writes ledger-derived fields into the invoice/order records.

The ledger is the source of truth; invoices.paid_amount/remaining_amount/status
and orders.payment_status are a projection of it that can always be rebuilt by
running propagate() again. Some deployments lack optional projection columns,
so every write is two-tier: the full payload first, then (only on
SchemaDriftError) exactly one retry with the minimal payload that keeps the
primary status field.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
import sqlite3
from typing import Any, Callable, Mapping, Optional, TypeVar

from ...database.repositories import PaymentScope
from ...utils.helpers import now_str
from ...utils.loggers import get_logger
from .errors import PersistenceError, PropagationWarning, SchemaDriftError
from .ledger import Ledger
from .payment_utilities.calculations import LedgerTotals, invoice_amounts
from .payment_utilities.status import derive_invoice_status, derive_order_payment_status

_log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TieredPayload:
    """A full payload plus the keys that must survive when optional columns are missing."""
    full: Mapping[str, Any]
    required: tuple[str, ...]

    def minimal(self) -> dict[str, Any]:
        return {k: v for k, v in self.full.items() if k in self.required}


def write_tiered(
    conn: sqlite3.Connection,
    write: Callable[[dict[str, Any]], T],
    payload: TieredPayload,
    *,
    what: str,
) -> tuple[T, bool]:
    """
    Run write(full); on SchemaDriftError run write(minimal) once.
    Each attempt commits on its own. Returns (write result, reduced?).
    Any other PersistenceError, or a failure of the retry, propagates.
    """
    try:
        with conn:
            return write(dict(payload.full)), False
    except SchemaDriftError as drift:
        _log.warning("%s: %s; retrying with required fields only", what, drift)
    with conn:
        return write(payload.minimal()), True


@dataclass
class PropagationResult:
    scope: PaymentScope
    invoice_totals: Optional[LedgerTotals] = None        # rows stamped with the invoice
    order_totals: Optional[LedgerTotals] = None          # rows stamped with the order
    invoice_status: Optional[str] = None
    invoice_paid_amount: Optional[Decimal] = None
    invoice_remaining_amount: Optional[Decimal] = None
    order_payment_status: Optional[str] = None
    reduced: list[str] = field(default_factory=list)     # tables written with the minimal payload
    warnings: list[PropagationWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    @property
    def totals(self) -> Optional[LedgerTotals]:
        """Order totals when there is an order, else the invoice totals."""
        return self.order_totals or self.invoice_totals

    @property
    def payment_status(self) -> Optional[str]:
        """Order payment status when there is an order, else the invoice status."""
        return self.order_payment_status or self.invoice_status


class SyncPropagator:
    def __init__(self, conn: sqlite3.Connection, ledger: Ledger | None = None):
        self.conn = conn
        self.ledger = ledger or Ledger(conn)

    def propagate(
        self,
        scope: PaymentScope,
        *,
        payment_method: Optional[str] = None,
        settled_zero_total: bool = False,
    ) -> PropagationResult:
        """
        Recompute ledger totals and push derived statuses into the scope's
        invoice and order. The invoice follows rows stamped with its own id and
        the order follows rows stamped with the order id, so sibling invoices
        on one order never absorb each other's payments.

        Never raises for storage trouble: failures are logged and returned as
        PropagationWarning entries. Raises ValidationError if the scope itself
        does not resolve.
        """
        result = PropagationResult(scope=scope)
        try:
            result.scope = scope = self.ledger.resolve(scope)
        except sqlite3.Error as e:
            self._warn(result, "ledger", None, e)
            return result

        if scope.invoice_id is not None:
            self._sync_invoice(scope.invoice_id, result, settled_zero_total=settled_zero_total)
        if scope.order_id is not None:
            self._sync_order(scope.order_id, result, payment_method=payment_method)
        return result

    # ---- invoice ----------------------------------------------------------

    def _sync_invoice(self, invoice_id: int, result: PropagationResult, *, settled_zero_total: bool) -> None:
        try:
            totals = self.ledger.invoice_totals(invoice_id)
            invoice = self.ledger.invoices.get(invoice_id)
        except sqlite3.Error as e:
            self._warn(result, "invoice", invoice_id, e)
            return
        result.invoice_totals = totals
        if invoice is None:
            self._warn(result, "invoice", invoice_id, PersistenceError("invoice disappeared"))
            return

        status = derive_invoice_status(
            invoice.total_amount, totals.net_paid, settled_zero_total=settled_zero_total
        )
        paid, remaining = invoice_amounts(invoice.total_amount, totals.net_paid)
        payload = TieredPayload(
            full={
                "status": status,
                "paid_amount": paid,
                "remaining_amount": remaining,
                "updated_at": now_str(),
            },
            required=("status",),
        )
        if self._write(result, "invoice", invoice_id, payload, self.ledger.invoices.update):
            result.invoice_status = status
            result.invoice_paid_amount = paid
            result.invoice_remaining_amount = remaining

    # ---- order ------------------------------------------------------------

    def _sync_order(self, order_id: int, result: PropagationResult, *, payment_method: Optional[str]) -> None:
        try:
            totals = self.ledger.order_totals(order_id)
            order = self.ledger.orders.get(order_id)
        except sqlite3.Error as e:
            self._warn(result, "order", order_id, e)
            return
        result.order_totals = totals
        if order is None:
            self._warn(result, "order", order_id, PersistenceError("order disappeared"))
            return

        status = derive_order_payment_status(
            order.total_amount, totals.total_paid, totals.total_refunded, totals.net_paid
        )
        full: dict[str, Any] = {"payment_status": status}
        if payment_method is not None:
            full["payment_method"] = payment_method
        full["updated_at"] = now_str()
        payload = TieredPayload(full=full, required=("payment_status",))
        if self._write(result, "order", order_id, payload, self.ledger.orders.update):
            result.order_payment_status = status

    # ---- helpers ----------------------------------------------------------

    def _write(
        self,
        result: PropagationResult,
        target: str,
        record_id: int,
        payload: TieredPayload,
        update: Callable[[int, dict[str, Any]], None],
    ) -> bool:
        try:
            _, reduced = write_tiered(
                self.conn,
                lambda data: update(record_id, data),
                payload,
                what=f"{target} {record_id}",
            )
        except PersistenceError as e:
            self._warn(result, target, record_id, e)
            return False
        if reduced:
            result.reduced.append(target)
        return True

    @staticmethod
    def _warn(result: PropagationResult, target: str, record_id: Optional[int], cause: BaseException) -> None:
        warning = PropagationWarning(target, record_id, cause)
        _log.warning("%s (ledger unchanged; will self-correct on next sync)", warning)
        result.warnings.append(warning)
