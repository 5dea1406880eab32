# casa_cart/domain/errors.py
"""
Domain error hierarchy.

Every error carries the HTTP status it maps to and whether the caller may
retry the same request unchanged. The API layer renders them as
``{success: false, error, details, retryable}``.
"""


class ShopError(Exception):
    http_status = 500
    retryable = False
    error = "Internal error"

    def __init__(self, details: str | None = None):
        self.details = details or self.error
        super().__init__(self.details)


class ValidationError(ShopError):
    http_status = 400
    error = "Validation failed"


class EmptyCartError(ValidationError):
    error = "Cart is empty"


class NotFoundError(ShopError):
    http_status = 404
    error = "Not found"


class CartNotFound(NotFoundError):
    error = "Cart not found"


class ItemNotFound(NotFoundError):
    error = "Item not found in cart"


class OrderNotFound(NotFoundError):
    error = "Order not found"


class ProductNotFound(NotFoundError):
    error = "Product not found"


class InvalidTransition(ShopError):
    http_status = 409
    error = "Invalid status transition"


class ConflictError(ShopError):
    http_status = 409
    retryable = True
    error = "Conflict"


class ConcurrencyConflict(ConflictError):
    error = "Cart was modified by another request"


class CheckoutInProgress(ConflictError):
    error = "Checkout already in progress for this cart"


class PersistenceError(ShopError):
    http_status = 500
    retryable = True
    error = "Storage failure"


class UpstreamError(PersistenceError):
    http_status = 502
    error = "Product service unavailable"
