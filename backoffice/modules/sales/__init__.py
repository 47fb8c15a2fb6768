from .controller import CommandResult, InvoiceDraft, PaymentsController, SaleContext

__all__ = ["CommandResult", "InvoiceDraft", "PaymentsController", "SaleContext"]
