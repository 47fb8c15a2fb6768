from __future__ import annotations
from decimal import Decimal
from typing import Optional

# ---------- Canonical sets ----------
PAYMENT_METHODS: tuple[str, ...] = ("cash", "check", "bank_transfer", "credit", "other")
LEDGER_STATES: tuple[str, ...] = ("pending", "completed", "failed", "refunded")
INVOICE_STATES: tuple[str, ...] = ("draft", "sent", "paid")
ORDER_PAYMENT_STATES: tuple[str, ...] = ("pending", "partial", "paid", "refunded")

# ---------- Human labels ----------
LABELS = {
    # ledger
    "completed": "Completed",
    "failed":    "Failed",
    # invoice
    "draft":     "Unpaid",
    "sent":      "Partially paid",
    # order / shared
    "pending":   "Pending",
    "partial":   "Partial",
    "paid":      "Paid",
    "refunded":  "Refunded",
}

METHOD_LABELS = {
    "cash":          "Cash",
    "check":         "Check",
    "bank_transfer": "Bank transfer",
    "credit":        "Credit",
    "other":         "Other",
}


# ---------- Normalization ----------

def normalize(value: Optional[str]) -> Optional[str]:
    """Lowercase & strip; return None if empty. Does NOT invent synonyms."""
    if value is None:
        return None
    s = str(value).strip().lower()
    return s or None


def _ensure_in(value: Optional[str], allowed: tuple[str, ...], what: str) -> str:
    s = normalize(value)
    if s not in allowed:
        raise ValueError(f"{what} must be one of: {', '.join(allowed)}")
    return s  # type: ignore[return-value]


def ensure_valid_method(method: Optional[str]) -> str:
    return _ensure_in(method, PAYMENT_METHODS, "payment method")


def label(value: str) -> str:
    """Human label ('Paid'). If unknown, returns the original string title-cased."""
    s = normalize(value)
    if s in LABELS:
        return LABELS[s]  # type: ignore[index]
    if s in METHOD_LABELS:
        return METHOD_LABELS[s]  # type: ignore[index]
    return (value or "").strip().replace("_", " ").title()


# ---------- Derivation ----------

def derive_invoice_status(
    total_amount: Decimal,
    net_paid: Decimal,
    *,
    settled_zero_total: bool = False,
) -> str:
    """
    Invoice status from ledger net paid:
      - 'paid'  if total_amount > 0 and net_paid >= total_amount
      - 'paid'  if total_amount <= 0 and the caller marked it settled
      - 'sent'  if net_paid > 0
      - 'draft' if net_paid == 0

    A zero-total invoice is never paid just because 0 >= 0.
    """
    if total_amount > 0 and net_paid >= total_amount:
        return "paid"
    if total_amount <= 0 and settled_zero_total:
        return "paid"
    if net_paid > 0:
        return "sent"
    return "draft"


def derive_order_payment_status(
    order_total: Decimal,
    total_paid: Decimal,
    total_refunded: Decimal,
    net_paid: Decimal,
) -> str:
    """
    First match wins:
      1. 'paid'     order_total > 0 and net_paid >= order_total
      2. 'partial'  net_paid > 0
      3. 'refunded' money came in and was fully returned
      4. 'pending'  nothing ever received
    """
    if order_total > 0 and net_paid >= order_total:
        return "paid"
    if net_paid > 0:
        return "partial"
    if total_refunded > 0 and total_paid > 0 and net_paid == 0:
        return "refunded"
    return "pending"
