"""
Payment confirmation: the single place where an order becomes paid.

Both webhook processors funnel a provider "payment completed" report into
confirm_payment(). It locks the order, verifies the provider amount
against the order snapshot and, on a match, records a succeeded Payment
and marks the order paid in one transaction. Fulfillment and invoicing
run after that commit, so a failure there never rolls back the payment.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django_fsm import can_proceed

from payments.exceptions import (
    AmountMismatchError,
    InvalidStateTransitionError,
    OrderNotFoundError,
)
from payments.models import Coupon, Order, Payment
from payments.services.fulfillment import fulfill_order, issue_invoice
from payments.state_machines import OrderStatus, PaymentStatus

if TYPE_CHECKING:
    import uuid

logger = logging.getLogger(__name__)


def amounts_match(provider_amount: float, expected_cents: int) -> bool:
    return abs(provider_amount - expected_cents) <= settings.PAYMENT_AMOUNT_EPSILON


def confirm_payment(
    order_id: uuid.UUID | str,
    *,
    provider: str,
    provider_amount: float,
    payment_fields: dict[str, Any] | None = None,
    payment_intent_id: str = "",
    customer_id: str = "",
) -> Payment | None:
    """
    Mark an order paid after the provider reported a completed payment.

    A repeated report for an order that is already paid writes nothing; it
    only re-runs fulfill_order(), which is a no-op once credits exist.

    Args:
        order_id: Order the provider event refers to
        provider: PaymentProviderName value
        provider_amount: Amount reported by the provider, normalized to the
            order's minor units
        payment_fields: Provider ids stored on the Payment row
        payment_intent_id / customer_id: Stripe ids copied onto the order

    Returns:
        The succeeded Payment, or None when the order was already paid

    Raises:
        OrderNotFoundError: No such order
        AmountMismatchError: Provider amount differs from total_cents; the
            order has been marked failed
        InvalidStateTransitionError: Order is canceled, failed or refunded
    """
    payment = None
    mismatch = None

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            raise OrderNotFoundError(
                f"Order {order_id} not found",
                details={"order_id": str(order_id)},
            )

        if order.status == OrderStatus.PAID:
            logger.info("payment.already_paid", extra={"order_id": str(order.pk)})
        elif not can_proceed(order.mark_paid):
            raise InvalidStateTransitionError(
                f"Cannot mark order {order.pk} paid from status {order.status}",
                details={"order_id": str(order.pk), "current_state": order.status},
            )
        elif not amounts_match(provider_amount, order.total_cents):
            mismatch = {
                "order_id": str(order.pk),
                "expected": order.total_cents,
                "received": provider_amount,
                "provider": provider,
            }
            order.fail(
                reason=f"Amount mismatch: expected {order.total_cents}, received {provider_amount}"
            )
            order.save()
        else:
            order.mark_paid(payment_intent_id=payment_intent_id, customer_id=customer_id)
            order.save()

            payment = Payment.objects.create(
                order=order,
                provider=provider,
                status=PaymentStatus.SUCCEEDED,
                amount_cents=order.total_cents,
                currency=order.currency,
                **(payment_fields or {}),
            )
            if order.coupon_id:
                Coupon.objects.filter(pk=order.coupon_id).update(
                    redeemed_count=F("redeemed_count") + 1
                )

    if mismatch is not None:
        logger.error("payment.amount_mismatch", extra=mismatch)
        raise AmountMismatchError(
            f"Amount mismatch for order {mismatch['order_id']}",
            details=mismatch,
        )

    if payment is not None:
        logger.info(
            "payment.confirmed",
            extra={
                "order_id": str(order.pk),
                "payment_id": str(payment.pk),
                "provider": provider,
                "amount_cents": order.total_cents,
            },
        )

    fulfill_order(order.pk)
    if payment is not None:
        issue_invoice(order)
    return payment
