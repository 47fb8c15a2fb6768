# tests/test_invoice_composer.py
from decimal import Decimal

import pytest

from backoffice.database.repositories import ValidationError
from backoffice.modules.invoices import InvoiceLine, compose_totals, line_items

D = Decimal


def _lines():
    return [
        InvoiceLine("Widget A", 2, "150.00", product_id=1),
        InvoiceLine("Widget B", "1.5", 100, product_id=2),
        InvoiceLine("Removed", 10, 999, product_id=3, deleted=True),
    ]


def test_totals_skip_deleted_lines():
    t = compose_totals(_lines(), tax_rate=10, discount_amount="25")
    assert t.subtotal == D("450.00")
    assert t.tax_amount == D("45.00")
    assert t.discount_amount == D("25.00")
    assert t.total_amount == D("470.00")


def test_no_lines_is_zero_total():
    t = compose_totals([])
    assert (t.subtotal, t.tax_amount, t.total_amount) == (D("0.00"), D("0.00"), D("0.00"))


def test_tax_rounds_half_up_to_cents():
    t = compose_totals([InvoiceLine("Thing", 1, "0.05")], tax_rate="50")
    assert t.tax_amount == D("0.03")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tax_rate": -1},
        {"discount_amount": "-0.01"},
        {"tax_rate": "abc"},
    ],
)
def test_negative_or_bad_inputs_rejected(kwargs):
    with pytest.raises(ValidationError):
        compose_totals(_lines(), **kwargs)


def test_negative_line_values_rejected():
    with pytest.raises(ValidationError, match="Quantity"):
        InvoiceLine("Bad", -1, 10)
    with pytest.raises(ValidationError, match="Unit price"):
        InvoiceLine("Bad", 1, -10)


def test_discount_larger_than_invoice_rejected():
    with pytest.raises(ValidationError, match="exceeds"):
        compose_totals([InvoiceLine("Thing", 1, 10)], discount_amount=11)


def test_line_items_snapshot():
    items = line_items(_lines())
    assert [i["description"] for i in items] == ["Widget A", "Widget B"]
    assert items[0]["line_total"] == "300.00"
    assert items[1]["quantity"] == "1.5"
