"""
Exceptions raised by the order services.

Each class carries the HTTP status code and the user-facing message the
action boundary reports for it. Only ``OrderServiceError`` subclasses are
considered expected outcomes; anything else is an unexpected fault.
"""
from typing import Dict, List, Optional


class OrderServiceError(Exception):
    """Base exception for all expected order service failures."""

    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, List[str]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(OrderServiceError):
    """Input failed schema validation; ``errors`` is keyed by field."""

    default_message = "Validation failed"


class MalformedPayload(OrderServiceError):
    """A serialized field of a request could not be decoded."""

    default_message = "Malformed request payload"

    def __init__(self, field: str, reason: Optional[str] = None):
        self.field = field
        message = f"Malformed JSON in field '{field}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AuthenticationRequired(OrderServiceError):
    status_code = 401
    default_message = "Sign In"


class IpBlockedError(OrderServiceError):
    status_code = 403
    default_message = "Access from your network address has been blocked."


class NotFoundError(OrderServiceError):
    status_code = 404
    default_message = "Resource not found"


class InvalidTransition(OrderServiceError):
    """Requested status change is not in the transition table."""

    status_code = 409

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from {from_status} to {to_status}",
            errors={"status": [f"Cannot change status from {from_status} to {to_status}"]},
        )


class DuplicateOrder(OrderServiceError):
    status_code = 409
    default_message = "Duplicate order detected. Please wait a moment."


class OrderConflict(OrderServiceError):
    """The order changed between read and write."""

    status_code = 409
    default_message = "Order was modified by another request. Please reload and try again."


class BusinessRuleViolation(OrderServiceError):
    status_code = 422
    default_message = "Request violates a business rule"


class CouponRejected(BusinessRuleViolation):
    default_message = "Invalid coupon code"


class InsufficientStock(BusinessRuleViolation):
    def __init__(self, product_name: str, requested: int):
        self.product_name = product_name
        self.requested = requested
        super().__init__(f"Insufficient stock for {product_name} (requested {requested})")


class RefundNotAllowed(BusinessRuleViolation):
    default_message = "Only paid orders can be refunded."


class InvoiceRejected(BusinessRuleViolation):
    default_message = "Invoice could not be created"


class RateLimitError(OrderServiceError):
    """Caller exceeded the request budget for the current window."""

    status_code = 429
    default_message = "Too many requests. Please slow down."
