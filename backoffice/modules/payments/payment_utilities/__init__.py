from .calculations import (
    RECONCILED_STATES,
    LedgerTotals,
    clamp_non_negative,
    compute_net_paid,
    invoice_amounts,
    max_refundable,
)
from .status import (
    PAYMENT_METHODS,
    LEDGER_STATES,
    INVOICE_STATES,
    ORDER_PAYMENT_STATES,
    derive_invoice_status,
    derive_order_payment_status,
    ensure_valid_method,
    label,
    normalize,
)

__all__ = [
    "RECONCILED_STATES",
    "LedgerTotals",
    "clamp_non_negative",
    "compute_net_paid",
    "invoice_amounts",
    "max_refundable",
    "PAYMENT_METHODS",
    "LEDGER_STATES",
    "INVOICE_STATES",
    "ORDER_PAYMENT_STATES",
    "derive_invoice_status",
    "derive_order_payment_status",
    "ensure_valid_method",
    "label",
    "normalize",
]
