"""
Payment-specific exceptions for checkout, webhooks and providers.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PlanNotFoundError - Unknown or inactive pricing plan (404)
    ├── OrderNotFoundError - Order lookup failures (404)
    ├── CouponInvalidError - Coupon rejected at checkout (400)
    ├── AmountLimitError - Total below zero or under the provider minimum (400)
    ├── AmountMismatchError - Provider amount differs from the order total
    ├── WebhookSignatureError - Webhook body failed verification (400)
    └── PaymentProviderError - Provider API failures (502)
        ├── StripeError - Base for all Stripe errors
        │   ├── StripeInvalidRequestError - Invalid request params (permanent)
        │   ├── StripeRateLimitError - Rate limited (transient, retry)
        │   ├── StripeAPIUnavailableError - API unavailable (transient, retry)
        │   └── StripeTimeoutError - Request timeout (transient, retry)
        └── BarionError - Barion API errors

    InvoicingError - Invoicing API failures (inherits ExternalServiceError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import CouponInvalidError

    raise CouponInvalidError(
        "Coupon has expired",
        details={"code": "WINTER10"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            CheckoutService.create_checkout(user, plan_code="pack_1000")
        except PaymentError as e:
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PlanNotFoundError(PaymentError):
    default_error_code: str = "PLAN_NOT_FOUND"
    http_status = 404


class OrderNotFoundError(PaymentError):
    """
    Raised when an order cannot be found, or belongs to another user.

    Example:
        raise OrderNotFoundError(
            "Order not found",
            details={"order_id": str(order_id)},
        )
    """

    default_error_code: str = "ORDER_NOT_FOUND"
    http_status = 404


class CouponInvalidError(PaymentError):
    """
    Raised when a coupon cannot be applied.

    The message is shown to the user as-is (not found, not active, not yet
    valid, expired, max redemptions, minimum order amount, currency
    mismatch, per-user limit).
    """

    default_error_code: str = "COUPON_INVALID"


class AmountLimitError(PaymentError):
    """Raised when the order total is not positive or below the provider minimum."""

    default_error_code: str = "AMOUNT_LIMIT"


class AmountMismatchError(PaymentError):
    """
    Raised when the provider-reported amount differs from the order total.

    An integrity failure: the order is marked failed and the event is
    never retried. Needs manual reconciliation.
    """

    default_error_code: str = "AMOUNT_MISMATCH"
    http_status = 409


class WebhookSignatureError(PaymentError):
    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"


# =============================================================================
# Provider Exceptions
# =============================================================================


class PaymentProviderError(PaymentError):
    """
    Raised when a payment provider API call fails.

    Use is_retryable to decide whether the same call may succeed later.
    """

    default_error_code: str = "PAYMENT_PROVIDER_ERROR"
    http_status = 502
    is_retryable: bool = False


class StripeError(PaymentProviderError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        is_retryable: Whether the operation can be retried
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe, or bad credentials.

    Note:
        This usually indicates a bug or misconfiguration, not a user error.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    Covers network errors and Stripe 5xx responses.
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    IMPORTANT: The operation may have succeeded on Stripe's side. Checkout
    sessions are created with an idempotency key derived from the order id,
    so a retry returns the original session.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


class BarionError(PaymentProviderError):
    """
    Barion API error.

    Attributes:
        status_code: HTTP status of the failed response, if any
        errors: The "Errors" array Barion returned
    """

    default_error_code: str = "BARION_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        if errors:
            details["errors"] = errors
        super().__init__(message, details=details)
        self.status_code = status_code
        self.errors = errors or []
        self.is_retryable = status_code is None or status_code >= 500


# =============================================================================
# Invoicing & State
# =============================================================================


class InvoicingError(ExternalServiceError):
    """Invoicing API failure. Invoices are best-effort; callers log and continue."""

    default_error_code: str = "INVOICING_ERROR"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an order state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed in the standard error format.

    Example:
        if not can_proceed(order.refund):
            raise InvalidStateTransitionError(
                f"Cannot refund order from '{order.status}' state",
                details={"current_state": order.status, "transition": "refund"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


__all__ = [
    "AmountLimitError",
    "AmountMismatchError",
    "BarionError",
    "CouponInvalidError",
    "InvalidStateTransitionError",
    "InvoicingError",
    "OrderNotFoundError",
    "PaymentError",
    "PaymentProviderError",
    "PlanNotFoundError",
    "StripeAPIUnavailableError",
    "StripeError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeTimeoutError",
    "WebhookSignatureError",
]
