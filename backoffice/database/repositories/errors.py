# database/repositories/errors.py
"""
Error taxonomy shared by the repositories and the payment services.

    DomainError
      ├── ValidationError      bad input, raised before anything is written
      └── PersistenceError     storage rejected or failed a write
            └── SchemaDriftError   payload names a column this deployment lacks
"""
from __future__ import annotations

from typing import Iterable


# Domain-level error the controller can surface directly (e.g., toast/snackbar)
class DomainError(Exception):
    pass


class ValidationError(DomainError, ValueError):
    pass


class PersistenceError(DomainError):
    pass


class SchemaDriftError(PersistenceError):
    """A write named fields the table does not recognize."""

    def __init__(self, table: str, fields: Iterable[str]):
        self.table = table
        self.fields = tuple(sorted(fields))
        super().__init__(f"{table} has no column(s): {', '.join(self.fields)}")
