from .errors import (
    DomainError,
    ValidationError,
    PersistenceError,
    SchemaDriftError,
    PropagationWarning,
)
from .events import (
    PAYMENT_UPDATED,
    ORDER_PAYMENT_UPDATED,
    PaymentEventBus,
    PaymentUpdate,
    QtPaymentEventBridge,
)
from .ledger import Ledger
from .recorder import PaymentDetails, PaymentRecorder
from .sync import PropagationResult, SyncPropagator, TieredPayload, write_tiered

__all__ = [
    "DomainError",
    "ValidationError",
    "PersistenceError",
    "SchemaDriftError",
    "PropagationWarning",
    "PAYMENT_UPDATED",
    "ORDER_PAYMENT_UPDATED",
    "PaymentEventBus",
    "PaymentUpdate",
    "QtPaymentEventBridge",
    "Ledger",
    "PaymentDetails",
    "PaymentRecorder",
    "PropagationResult",
    "SyncPropagator",
    "TieredPayload",
    "write_tiered",
]
