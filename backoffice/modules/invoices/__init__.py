from .composer import InvoiceLine, InvoiceTotals, compose_totals, line_items

__all__ = ["InvoiceLine", "InvoiceTotals", "compose_totals", "line_items"]
