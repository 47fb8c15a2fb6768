"""
payment_utilities/calculations.py

Pure ledger math. Everything the projections show (invoice paid/remaining,
order payment status) is derived from these numbers.

Do not import repos or open DB connections here.
Only compute numbers; formatting belongs in the UI.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from ....utils.helpers import ZERO, to_money

__all__ = [
    "RECONCILED_STATES",
    "LedgerTotals",
    "clamp_non_negative",
    "compute_net_paid",
    "invoice_amounts",
    "max_refundable",
]

# Only these ledger states ever moved money.
RECONCILED_STATES: tuple[str, ...] = ("completed", "refunded")


class LedgerEntry(Protocol):
    amount: Decimal
    status: str


@dataclass(frozen=True)
class LedgerTotals:
    total_paid: Decimal
    total_refunded: Decimal
    net_paid: Decimal


# -----------------------------
# Core utilities
# -----------------------------

def clamp_non_negative(x: Decimal) -> Decimal:
    """Return x if x > 0, else 0.00."""
    return x if x > 0 else ZERO


def compute_net_paid(entries: Iterable[LedgerEntry]) -> LedgerTotals:
    """
    total_paid     = Σ amount where status == 'completed'
    total_refunded = Σ amount where status == 'refunded'
    net_paid       = max(0, total_paid - total_refunded)

    pending/failed entries are ignored entirely. The floor only matters if
    refunds were ever written beyond what was paid.
    """
    total_paid = ZERO
    total_refunded = ZERO
    for e in entries:
        if e.status == "completed":
            total_paid += to_money(e.amount)
        elif e.status == "refunded":
            total_refunded += to_money(e.amount)
    return LedgerTotals(
        total_paid=total_paid,
        total_refunded=total_refunded,
        net_paid=clamp_non_negative(total_paid - total_refunded),
    )


# -----------------------------
# Projection helpers
# -----------------------------

def invoice_amounts(total_amount: Decimal, net_paid: Decimal) -> tuple[Decimal, Decimal]:
    """
    Returns (paid_amount, remaining_amount) for an invoice:
      paid_amount      = min(total_amount, net_paid)
      remaining_amount = max(0, total_amount - paid_amount)
    """
    total = to_money(total_amount)
    paid = min(total, to_money(net_paid))
    paid = clamp_non_negative(paid)
    return paid, clamp_non_negative(total - paid)


def max_refundable(totals: LedgerTotals) -> Decimal:
    """Cap for a refund right now: whatever the scope still holds."""
    return clamp_non_negative(totals.net_paid)
