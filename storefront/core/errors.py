from __future__ import annotations

from typing import Any


class StorefrontError(Exception):
    """Base for errors that are safe to show to the caller.

    ``status_code`` and ``error`` drive the HTTP rendering in ``storefront.main``;
    ``extra`` is merged into the response body.
    """

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_response(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message, **self.extra}


class Unauthorized(StorefrontError):
    status_code = 401
    error = "unauthorized"


class Forbidden(StorefrontError):
    status_code = 403
    error = "forbidden"


class NotFound(StorefrontError):
    status_code = 404
    error = "not_found"


class CartNotFound(NotFound):
    error = "cart_not_found"


class OrderNotFound(NotFound):
    error = "order_not_found"


class ProductNotFound(NotFound):
    error = "product_not_found"


class ValidationError(StorefrontError):
    status_code = 400
    error = "validation_error"


class CartEmpty(ValidationError):
    error = "cart_empty"


class InsufficientStock(ValidationError):
    error = "insufficient_stock"

    def __init__(self, product_id: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id}. Available: {available}, Requested: {requested}",
            product_id=product_id,
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class InvalidTransition(ValidationError):
    status_code = 409
    error = "invalid_transition"


class SignatureInvalid(StorefrontError):
    status_code = 401
    error = "signature_invalid"


class UpstreamFailure(StorefrontError):
    status_code = 500
    error = "upstream_failure"
