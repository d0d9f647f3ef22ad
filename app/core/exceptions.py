"""
Base exception classes for application-wide error handling.

Every domain error raised by a service derives from BaseApplicationError so
views and Celery tasks can treat them uniformly:

    BaseApplicationError (base)
    ├── ValidationError - Input or business-rule validation failures (400)
    ├── PaymentRequiredError - Balance too low for the requested work (402)
    ├── NotFoundError - Resource not found (404)
    ├── ConflictError - State conflicts, invalid transitions (409)
    └── ExternalServiceError - Third-party service failures (502)

Usage:
    from core.exceptions import NotFoundError

    order = Order.objects.filter(id=order_id, user=user).first()
    if order is None:
        raise NotFoundError("Order not found", error_code="ORDER_NOT_FOUND")

The http_status attribute is read by core.views.api_exception_handler when
an error escapes a DRF view.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Insufficient balance",
                "error_code": "INSUFFICIENT_BALANCE",
                "details": {"required": 30, "available": 12}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input or a business rule fails validation.

    Example:
        raise ValidationError(
            "Coupon has expired",
            error_code="COUPON_EXPIRED",
            details={"code": "WINTER10"},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class PaymentRequiredError(BaseApplicationError):
    """Raised when the user's balance cannot cover the requested work."""

    default_error_code: str = "PAYMENT_REQUIRED"
    http_status = 402


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected; list
    queries should simply return an empty result.
    """

    default_error_code: str = "NOT_FOUND"
    http_status = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Example:
        if not can_proceed(order.mark_paid):
            raise ConflictError(
                f"Cannot mark order paid from {order.status}",
                error_code="INVALID_STATE_TRANSITION",
                details={"current_status": order.status},
            )
    """

    default_error_code: str = "CONFLICT"
    http_status = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Covers payment providers, the invoicing API, text generation, speech
    synthesis and object storage. The original error should be logged;
    only the message reaches the client.

    Attributes:
        is_retryable: Whether the same call may succeed if repeated
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status = 502
    is_retryable: bool = False
