"""
Order fulfillment: turn a paid order into ledger credit, exactly once.

fulfill_order() is safe to call any number of times for the same order,
from the webhook processor, the periodic reconciliation task or an
operator shell. Only the first call that finds no purchase entry for the
order writes anything.

Usage:
    from payments.services import fulfill_order

    if fulfill_order(order.id):
        logger.info("credits granted")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.adapters import BillingProfile, create_invoice
from payments.exceptions import InvalidStateTransitionError, InvoicingError, OrderNotFoundError
from payments.ledger import EntryType, LedgerKind, ledger
from payments.models import Order
from payments.state_machines import OrderStatus

if TYPE_CHECKING:
    import uuid

logger = logging.getLogger(__name__)

PURCHASE_REASON = "Stripe checkout purchase"
BONUS_CREDITS_REASON = "Ajándék mesetallér"
BONUS_AUDIO_STARS_REASON = "Ajándék hangcsillag"


def _format_count(value: int) -> str:
    # hu-HU grouping: non-breaking space every three digits
    return f"{value:,}".replace(",", "\u00a0")


def credits_summary(credits: int, audio_stars: int) -> str:
    parts = []
    if credits > 0:
        parts.append(f"{_format_count(credits)} mesetallér")
    if audio_stars > 0:
        parts.append(f"{_format_count(audio_stars)} hangcsillag")
    return " és ".join(parts) if parts else "a feltöltött tokenek"


def fulfill_order(order_id: uuid.UUID | str) -> bool:
    """
    Grant the credits of a paid order.

    Under a row lock on the order: if a purchase credit entry for the order
    exists, return False. Otherwise insert one purchase entry for
    credits_total and one bonus entry per non-zero plan bonus, all tagged
    with the order. The notification is sent after commit and never fails
    the call.

    Returns:
        True when entries were written, False when already fulfilled

    Raises:
        OrderNotFoundError: No such order
        InvalidStateTransitionError: Order is not paid
    """
    with transaction.atomic():
        order = (
            Order.objects.select_for_update()
            .select_related("user")
            .filter(pk=order_id)
            .first()
        )
        if order is None:
            raise OrderNotFoundError(
                f"Order {order_id} not found",
                details={"order_id": str(order_id)},
            )

        if ledger.purchase_exists(order):
            logger.info("fulfillment.already_fulfilled", extra={"order_id": str(order.pk)})
            return False

        if order.status != OrderStatus.PAID:
            raise InvalidStateTransitionError(
                f"Order {order.pk} is not paid (status: {order.status})",
                details={"order_id": str(order.pk), "current_state": order.status},
            )

        item = order.items.select_related("plan").first()
        bonus_credits = item.plan.bonus_credits if item else 0
        bonus_audio_stars = item.plan.bonus_audio_stars if item else 0
        source = order.provider

        ledger.grant(
            order.user,
            order.credits_total,
            type=EntryType.PURCHASE,
            reason=PURCHASE_REASON,
            source=source,
            order=order,
        )
        if bonus_credits > 0:
            ledger.grant(
                order.user,
                bonus_credits,
                type=EntryType.BONUS,
                reason=BONUS_CREDITS_REASON,
                source=source,
                order=order,
            )
        if bonus_audio_stars > 0:
            ledger.grant(
                order.user,
                bonus_audio_stars,
                type=EntryType.BONUS,
                reason=BONUS_AUDIO_STARS_REASON,
                source=source,
                order=order,
                kind=LedgerKind.AUDIO_STARS,
            )

    logger.info(
        "fulfillment.granted",
        extra={
            "order_id": str(order.pk),
            "user_id": order.user_id,
            "credits": order.credits_total,
            "bonus_credits": bonus_credits,
            "bonus_audio_stars": bonus_audio_stars,
        },
    )

    NotificationService.notify(
        order.user,
        type=NotificationKind.CREDITS_ADDED,
        icon="gift",
        title="Sikeres feltöltés",
        message=f"Sikeresen jóváírtunk {credits_summary(order.credits_total + bonus_credits, bonus_audio_stars)}!",
    )
    return True


def issue_invoice(order: Order) -> int | None:
    """
    Create the invoice for a paid order and store its id on the order.

    Fire-and-log: invoicing failures are logged under
    ``invoice.create_failed`` and None is returned.
    """
    if not settings.BILLINGO_API_KEY:
        logger.info("invoice.skipped_not_configured", extra={"order_id": str(order.pk)})
        return None
    if order.invoice_id:
        return order.invoice_id

    try:
        invoice_id = create_invoice(
            order,
            list(order.items.all()),
            BillingProfile.for_user(order.user),
        )
    except InvoicingError:
        logger.error("invoice.create_failed", extra={"order_id": str(order.pk)}, exc_info=True)
        return None

    Order.objects.filter(pk=order.pk).update(invoice_id=invoice_id)
    logger.info("invoice.stored", extra={"order_id": str(order.pk), "invoice_id": invoice_id})
    return invoice_id
