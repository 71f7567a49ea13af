# Overview: Error taxonomy for stock, costing, discount and document operations.

"""
Every error carries:
- kind: stable machine-readable string (returned to API callers)
- details: dict with the values that caused the failure
- http_status: status code the routes answer with

Only TransactionConflictError is retryable; callers retry the whole
orchestrator call, never a sub-step.
"""


class StockError(Exception):
    """Base class for errors raised by the stock/pricing core."""
    kind = "stock_error"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "details": self.details}


class ProductNotFoundError(StockError):
    """Referenced product id/code has no row."""
    kind = "product_not_found"
    http_status = 404


class InsufficientStockError(StockError):
    """A reduction or sale would drive the balance negative."""
    kind = "insufficient_stock"
    http_status = 409


class InvalidSalePriceError(StockError):
    kind = "invalid_sale_price"


class InvalidDiscountAmountError(StockError):
    kind = "invalid_discount_amount"


class InvalidMovementError(StockError):
    """Quantities do not fit the movement type."""
    kind = "invalid_movement"


class InvalidInvoiceError(StockError):
    kind = "invalid_invoice"


class InvalidPurchaseError(StockError):
    kind = "invalid_purchase"


class NotFoundError(StockError):
    """Non-product entity lookup failure (invoice, purchase, discount, ...)."""
    kind = "not_found"
    http_status = 404


class ConflictError(StockError):
    """Business-rule conflict such as a duplicate product code."""
    kind = "conflict"
    http_status = 409


class TransactionConflictError(StockError):
    """Lock timeout or deadlock that survived every retry attempt."""
    kind = "transaction_conflict"
    http_status = 503
    retryable = True


class LedgerImmutabilityError(StockError):
    """Attempt to update or delete a written ledger entry."""
    kind = "ledger_immutable"
    http_status = 500
