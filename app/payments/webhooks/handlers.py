"""
Webhook event handlers for Stripe and Barion events.

This module provides a handler registry for Stripe event types and a single
handler for Barion payment-state events. Handlers run inside the Celery
processing task, never in the request that received the webhook.

Handlers return a ServiceResult. A failure whose error_code is in
TERMINAL_ERROR_CODES is recorded on the event and never retried; any
other failure leaves the event unprocessed for the retry task.

Usage:
    from payments.webhooks.handlers import dispatch_stripe_event, register_handler

    @register_handler("custom.event")
    def handle_custom_event(event: StripeEvent) -> ServiceResult:
        ...

    result = dispatch_stripe_event(event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from django.db import transaction

from core.services import ServiceResult
from payments.adapters.barion_adapter import (
    CANCELED_STATUSES,
    FAILED_STATUSES,
    SUCCESS_STATUSES,
    from_barion_amount,
)
from payments.adapters.stripe_adapter import from_stripe_amount
from payments.exceptions import (
    AmountMismatchError,
    InvalidStateTransitionError,
    OrderNotFoundError,
)
from payments.models import Order, Payment
from payments.models.order import OPEN_STATUSES
from payments.services.reconciliation import confirm_payment
from payments.state_machines import OrderStatus, PaymentProviderName, PaymentStatus

if TYPE_CHECKING:
    from payments.models import BarionEvent, StripeEvent


logger = logging.getLogger(__name__)

TERMINAL_ERROR_CODES = frozenset(
    {
        "AMOUNT_MISMATCH",
        "ORDER_NOT_PAYABLE",
        "INVALID_WEBHOOK_PAYLOAD",
    }
)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps Stripe event type strings to handler functions
STRIPE_HANDLERS: dict[str, Callable[[StripeEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a Stripe webhook event handler.

    Args:
        event_type: The Stripe event type (e.g., "checkout.session.completed")
    """

    def decorator(func: Callable[[StripeEvent], ServiceResult]) -> Callable:
        STRIPE_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_stripe_event(event: StripeEvent) -> ServiceResult:
    """
    Dispatch a stored Stripe event to its handler.

    Unknown event types succeed without doing anything, so Stripe can send
    more types than this service subscribes to.
    """
    handler = STRIPE_HANDLERS.get(event.type)

    if not handler:
        logger.info(
            "stripe_webhook.unhandled_type",
            extra={"event_id": event.event_id, "event_type": event.type},
        )
        return ServiceResult.success(None)

    logger.info(
        "stripe_webhook.dispatch",
        extra={"event_id": event.event_id, "event_type": event.type},
    )
    return handler(event)


def _event_object(event: StripeEvent) -> dict[str, Any]:
    return (event.payload.get("data") or {}).get("object") or {}


def _confirm(order_id: str, event_id: str, **kwargs: Any) -> ServiceResult:
    """Run confirm_payment and map its expected failures to results."""
    try:
        payment = confirm_payment(order_id, **kwargs)
    except AmountMismatchError as e:
        return ServiceResult.failure(e.message, error_code="AMOUNT_MISMATCH")
    except OrderNotFoundError as e:
        logger.warning(
            "webhook.order_not_found",
            extra={"order_id": order_id, "event_id": event_id},
        )
        return ServiceResult.failure(e.message, error_code="ORDER_NOT_FOUND")
    except InvalidStateTransitionError as e:
        logger.error(
            "webhook.order_not_payable",
            extra={"order_id": order_id, "event_id": event_id, **e.details},
        )
        return ServiceResult.failure(e.message, error_code="ORDER_NOT_PAYABLE")
    return ServiceResult.success(payment)


# =============================================================================
# Stripe Checkout Handlers
# =============================================================================


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(event: StripeEvent) -> ServiceResult:
    """
    Confirm the order of a completed checkout session.

    The order is found through metadata.order_id, falling back to the
    session id stored at checkout. The amount is compared after converting
    Stripe's units back to the order's minor units.
    """
    session = _event_object(event)
    metadata = session.get("metadata") or {}
    order_id = metadata.get("order_id")

    if not order_id and session.get("id"):
        order = Order.objects.filter(stripe_checkout_session_id=session["id"]).only("id").first()
        order_id = str(order.pk) if order else None

    if not order_id:
        logger.error(
            "stripe_webhook.missing_order_id",
            extra={"event_id": event.event_id, "session_id": session.get("id")},
        )
        return ServiceResult.failure(
            "Missing order_id in checkout session metadata",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    if session.get("payment_status") not in (None, "paid", "no_payment_required"):
        logger.info(
            "stripe_webhook.session_not_paid",
            extra={
                "event_id": event.event_id,
                "order_id": order_id,
                "payment_status": session.get("payment_status"),
            },
        )
        return ServiceResult.success(None)

    payment_intent_id = session.get("payment_intent") or ""
    currency = session.get("currency") or "huf"
    amount = from_stripe_amount(session.get("amount_total") or 0, currency)

    return _confirm(
        order_id,
        event.event_id,
        provider=PaymentProviderName.STRIPE,
        provider_amount=amount,
        payment_fields={"stripe_payment_intent_id": payment_intent_id or None},
        payment_intent_id=payment_intent_id,
        customer_id=session.get("customer") or "",
    )


@register_handler("checkout.session.expired")
def handle_checkout_session_expired(event: StripeEvent) -> ServiceResult:
    """Cancel the order of an abandoned checkout session if it is still open."""
    session = _event_object(event)
    order_id = (session.get("metadata") or {}).get("order_id")

    with transaction.atomic():
        queryset = Order.objects.select_for_update()
        if order_id:
            order = queryset.filter(pk=order_id).first()
        else:
            order = queryset.filter(stripe_checkout_session_id=session.get("id")).first()

        if order is None:
            logger.warning(
                "stripe_webhook.expired_order_not_found",
                extra={"event_id": event.event_id, "session_id": session.get("id")},
            )
            return ServiceResult.success(None)

        if order.status not in OPEN_STATUSES:
            logger.info(
                "stripe_webhook.expired_ignored",
                extra={"order_id": str(order.pk), "status": order.status},
            )
            return ServiceResult.success(order)

        order.cancel()
        order.save()

    logger.info("order.canceled", extra={"order_id": str(order.pk), "event_id": event.event_id})
    return ServiceResult.success(order)


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(event: StripeEvent) -> ServiceResult:
    """
    Record a failed card attempt.

    The order stays open: Checkout lets the payer retry with another card
    within the same session, and session expiry cancels it otherwise.
    """
    intent = _event_object(event)
    order_id = (intent.get("metadata") or {}).get("order_id")

    queryset = Order.objects.all()
    if order_id:
        order = queryset.filter(pk=order_id).first()
    else:
        order = queryset.filter(stripe_payment_intent_id=intent.get("id") or "-").first()

    if order is None:
        logger.info(
            "stripe_webhook.payment_failed_unmatched",
            extra={"event_id": event.event_id, "payment_intent_id": intent.get("id")},
        )
        return ServiceResult.success(None)

    error = intent.get("last_payment_error") or {}
    payment = Payment.objects.create(
        order=order,
        provider=PaymentProviderName.STRIPE,
        status=PaymentStatus.FAILED,
        amount_cents=order.total_cents,
        currency=order.currency,
        stripe_payment_intent_id=None,
        failure_code=error.get("code") or "",
        failure_message=error.get("message") or "",
    )
    logger.info(
        "payment.failed",
        extra={
            "order_id": str(order.pk),
            "payment_intent_id": intent.get("id"),
            "failure_code": payment.failure_code,
        },
    )
    return ServiceResult.success(payment)


@register_handler("charge.refunded")
def handle_charge_refunded(event: StripeEvent) -> ServiceResult:
    """Refunds are issued by operators in the Stripe dashboard; only log them."""
    charge = _event_object(event)
    logger.info(
        "stripe_webhook.charge_refunded",
        extra={
            "event_id": event.event_id,
            "charge_id": charge.get("id"),
            "payment_intent_id": charge.get("payment_intent"),
            "amount_refunded": charge.get("amount_refunded"),
        },
    )
    return ServiceResult.success(None)


# =============================================================================
# Barion Handler
# =============================================================================


def _barion_failure_message(state: dict[str, Any]) -> str:
    errors = state.get("Errors") or []
    if errors:
        first = errors[0] or {}
        return first.get("Description") or first.get("Title") or "Barion payment failed"
    return "Barion payment failed"


def handle_barion_event(event: BarionEvent) -> ServiceResult:
    """
    Apply a Barion payment state to its order.

    Status mapping:
        Succeeded / PartiallySucceeded -> confirm payment
        Canceled -> order canceled, failed Payment row
        Failed / Expired -> order failed, failed Payment row
        anything else -> no change
    """
    state = event.payload or {}
    status = (state.get("Status") or "").lower()
    order_id = state.get("PaymentRequestId") or state.get("OrderNumber")
    payment_id = state.get("PaymentId") or event.payment_id

    if not order_id and payment_id:
        order = Order.objects.filter(barion_payment_id=payment_id).only("id").first()
        order_id = str(order.pk) if order else None

    if not order_id:
        logger.error(
            "barion_webhook.missing_order_id",
            extra={"event_id": event.event_id, "payment_id": payment_id},
        )
        return ServiceResult.failure(
            "Could not resolve order for Barion payment",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    transactions = state.get("Transactions") or []
    first_transaction = transactions[0] if transactions else {}
    currency = state.get("Currency") or first_transaction.get("Currency") or "HUF"

    if status in SUCCESS_STATUSES:
        total = first_transaction.get("Total", state.get("Total"))
        return _confirm(
            order_id,
            event.event_id,
            provider=PaymentProviderName.BARION,
            provider_amount=from_barion_amount(total, currency),
            payment_fields={
                "barion_payment_id": payment_id or "",
                "barion_transaction_id": first_transaction.get("POSTransactionId") or "",
            },
        )

    if status in CANCELED_STATUSES or status in FAILED_STATUSES:
        return _close_barion_order(event, order_id, payment_id, status, state)

    logger.info(
        "barion_webhook.status_ignored",
        extra={"event_id": event.event_id, "order_id": order_id, "status": status},
    )
    return ServiceResult.success(None)


def _close_barion_order(
    event: BarionEvent,
    order_id: str,
    payment_id: str,
    status: str,
    state: dict[str, Any],
) -> ServiceResult:
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            return ServiceResult.failure(
                f"Order {order_id} not found",
                error_code="ORDER_NOT_FOUND",
            )

        if order.status in (OrderStatus.PAID, OrderStatus.REFUNDED):
            logger.warning(
                "barion_webhook.late_failure_ignored",
                extra={"order_id": str(order.pk), "status": status},
            )
            return ServiceResult.success(order)

        if order.status in OPEN_STATUSES:
            if status in CANCELED_STATUSES:
                order.cancel()
            else:
                order.fail(reason=f"Barion payment {status}")
            order.save()

        Payment.objects.create(
            order=order,
            provider=PaymentProviderName.BARION,
            status=PaymentStatus.FAILED,
            amount_cents=order.total_cents,
            currency=order.currency,
            barion_payment_id=payment_id or "",
            failure_code=status,
            failure_message=_barion_failure_message(state),
        )

    logger.info(
        "barion_webhook.order_closed",
        extra={"order_id": str(order.pk), "status": status, "event_id": event.event_id},
    )
    return ServiceResult.success(order)
