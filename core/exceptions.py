"""
Error taxonomy for checkout and reversal.

Services raise these; API views translate them into ``{"error": message}``
responses using ``status_code``.
"""
from rest_framework import status


class CheckoutError(Exception):
    """Base class for errors surfaced to checkout/reversal callers."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Sale could not be recorded'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(CheckoutError):
    """Malformed or empty cart. Caller error, not retried."""
    default_message = 'Invalid sale request'


class VariantNotFound(CheckoutError):
    """A cart line references a variant that does not exist."""

    def __init__(self, variant_id):
        self.variant_id = variant_id
        super().__init__(f"Variant not found: {variant_id}")


class InsufficientStock(CheckoutError):
    """Raised when a decrement would drive a variant's quantity negative."""

    def __init__(self, variant_id: int, requested: int, available: int):
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for variant {variant_id}: "
            f"requested {requested}, available {available}"
        )


class DuplicateInvoice(CheckoutError):
    """Invoice number collided with an existing sale."""

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number already in use: {invoice_number}")


class StoreUnavailable(CheckoutError):
    """The database could not be reached. Safe to retry."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Store temporarily unavailable, please retry'


class SaleNotFound(CheckoutError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, sale_id):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} not found")
