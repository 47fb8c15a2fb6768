"""Back-office payment reconciliation and status propagation."""

__version__ = "0.1.0"
