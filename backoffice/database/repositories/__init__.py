# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from backoffice.database.repositories import (
        # Ledger
        PaymentsRepo, Payment, PaymentScope,
        # Projections
        InvoicesRepo, Invoice, OrdersRepo, Order,
        # Parties
        ClientsRepo, Client,
        # Errors
        DomainError, ValidationError, PersistenceError, SchemaDriftError,
    )
"""

# ----------------- Errors ------------------
from .errors import (
    DomainError,
    ValidationError,
    PersistenceError,
    SchemaDriftError,
)

# ----------------- Ledger ------------------
from .payments_repo import PaymentsRepo, Payment, PaymentScope

# --------------- Projections ---------------
from .invoices_repo import InvoicesRepo, Invoice
from .orders_repo import OrdersRepo, Order

# ----------------- Parties -----------------
from .clients_repo import ClientsRepo, Client

__all__ = [
    # errors
    "DomainError",
    "ValidationError",
    "PersistenceError",
    "SchemaDriftError",
    # payments_repo
    "PaymentsRepo",
    "Payment",
    "PaymentScope",
    # invoices_repo
    "InvoicesRepo",
    "Invoice",
    # orders_repo
    "OrdersRepo",
    "Order",
    # clients_repo
    "ClientsRepo",
    "Client",
]
