# modules/payments/errors.py
from __future__ import annotations

from ...database.repositories.errors import (
    DomainError,
    PersistenceError,
    SchemaDriftError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "PersistenceError",
    "SchemaDriftError",
    "PropagationWarning",
]


class PropagationWarning(UserWarning):
    """
    A projection write (invoice/order status fields) failed after the ledger
    write already succeeded. Reported, never raised: the next successful
    propagate for the scope repairs the projection.
    """

    def __init__(self, target: str, record_id: int | None, cause: BaseException):
        self.target = target
        self.record_id = record_id
        self.cause = cause
        super().__init__(f"could not sync {target} {record_id}: {cause}")
