# modules/invoices/composer.py
"""
Invoice totals from line items.

    subtotal     = Σ quantity × unit_price        (deleted lines skipped)
    tax_amount   = subtotal × tax_rate / 100
    total_amount = subtotal + tax_amount − discount_amount

Only non-negative inputs are checked. Paid/remaining/status are not computed
here; they come from the ledger.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from ...database.repositories.errors import ValidationError
from ...utils.helpers import ZERO, to_money

__all__ = ["InvoiceLine", "InvoiceTotals", "compose_totals", "line_items"]


def _quantity(value) -> Decimal:
    try:
        q = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValidationError(f"Could not parse quantity {value!r}.") from e
    if not q.is_finite() or q < 0:
        raise ValidationError("Quantity cannot be negative.")
    return q


def _non_negative_money(value, what: str) -> Decimal:
    try:
        amount = to_money(value)
    except ValueError as e:
        raise ValidationError(f"Could not parse {what} {value!r}.") from e
    if amount < 0:
        raise ValidationError(f"{what.capitalize()} cannot be negative.")
    return amount


@dataclass
class InvoiceLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    product_id: Optional[int] = None
    deleted: bool = False

    def __post_init__(self):
        self.quantity = _quantity(self.quantity)
        self.unit_price = _non_negative_money(self.unit_price, "unit price")

    @property
    def line_total(self) -> Decimal:
        return to_money(self.quantity * self.unit_price)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def compose_totals(
    lines: Iterable[InvoiceLine],
    tax_rate=0,
    discount_amount=0,
) -> InvoiceTotals:
    rate = _non_negative_money(tax_rate, "tax rate")
    discount = _non_negative_money(discount_amount, "discount")

    subtotal = ZERO
    for line in lines:
        if line.deleted:
            continue
        subtotal += line.line_total

    tax = to_money(subtotal * rate / 100)
    gross = subtotal + tax
    if discount > gross:
        raise ValidationError(f"Discount {discount} exceeds the invoice amount {gross}.")
    return InvoiceTotals(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=gross - discount,
    )


def line_items(lines: Iterable[InvoiceLine]) -> list[dict]:
    """JSON-ready snapshot of the live lines, stored on the invoice."""
    return [
        {
            "product_id": line.product_id,
            "description": line.description,
            "quantity": str(line.quantity),
            "unit_price": str(line.unit_price),
            "line_total": str(line.line_total),
        }
        for line in lines
        if not line.deleted
    ]
