# modules/payments/events.py
"""
Refresh hints for views after a payment/refund/sale changed the projection.

Delivery is synchronous, best-effort and at most once per publish: no
acknowledgement, no retry. Subscribers must re-fetch canonical state rather
than trust the payload.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from ...utils.loggers import get_logger

_log = get_logger(__name__)

PAYMENT_UPDATED = "payment-updated"
ORDER_PAYMENT_UPDATED = "order-payment-updated"
EVENT_TYPES: tuple[str, ...] = (PAYMENT_UPDATED, ORDER_PAYMENT_UPDATED)

Subscriber = Callable[["PaymentUpdate"], None]


@dataclass(frozen=True)
class PaymentUpdate:
    type: str
    order_id: Optional[int]
    invoice_id: Optional[int]
    payment_status: Optional[str]
    payment_method: Optional[str]

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f"event type must be one of: {', '.join(EVENT_TYPES)}")


class PaymentEventBus:
    """Callback registry; a subscriber may listen to one event type or to all."""

    def __init__(self):
        self._subscribers: list[tuple[Optional[str], Subscriber]] = []

    def subscribe(self, callback: Subscriber, *, event_type: Optional[str] = None) -> None:
        if event_type is not None and event_type not in EVENT_TYPES:
            raise ValueError(f"event type must be one of: {', '.join(EVENT_TYPES)}")
        self._subscribers.append((event_type, callback))

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers = [(t, cb) for t, cb in self._subscribers if cb != callback]

    def publish(self, update: PaymentUpdate) -> int:
        """Deliver to matching subscribers; returns how many received it without error."""
        delivered = 0
        for event_type, callback in list(self._subscribers):
            if event_type is not None and event_type != update.type:
                continue
            try:
                callback(update)
            except Exception:
                # one broken view must not stop the others
                _log.exception("subscriber %r failed on %s", callback, update.type)
                continue
            delivered += 1
        return delivered


class QtPaymentEventBridge(QObject):
    """Re-emits bus updates as a Qt signal so widgets can connect slots."""

    payment_updated = Signal(object)   # emits PaymentUpdate

    def __init__(self, bus: PaymentEventBus, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._bus = bus
        bus.subscribe(self._forward)

    def _forward(self, update: PaymentUpdate) -> None:
        self.payment_updated.emit(update)

    def detach(self) -> None:
        self._bus.unsubscribe(self._forward)
