"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing stored Stripe and Barion webhook events
- Retrying events that are still unprocessed
- Fulfilling paid orders whose fulfillment never ran

Usage:
    from payments.tasks import process_stripe_event

    # Queue a stored event for async processing
    process_stripe_event.delay(str(event.id))

    # Periodic tasks (scheduled via celery-beat)
    from payments.tasks import retry_unprocessed_events, reconcile_paid_orders
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Callable

from celery import shared_task
from django.utils import timezone

from payments.ledger import EntryType
from payments.models import BarionEvent, CreditTransaction, Order, StripeEvent
from payments.state_machines import OrderStatus

if TYPE_CHECKING:
    from core.services import ServiceResult
    from payments.models import ProviderEvent

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_WEBHOOK_RETRIES = 5
RETRY_MIN_AGE_MINUTES = 5
RETRY_BATCH_SIZE = 100
RECONCILE_MIN_AGE_MINUTES = 10


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


def _process_event(
    model: type[ProviderEvent],
    event_pk: str,
    dispatch: Callable[[ProviderEvent], ServiceResult],
) -> dict:
    """
    Shared body of the provider event tasks.

    1. Loads the event; processed events are skipped
    2. Counts the attempt
    3. Dispatches to the handler
    4. Records processed_at, or processing_error

    Terminal handler failures (amount mismatch, order not payable) are
    recorded with both processed_at and processing_error so no retry picks
    them up again.

    Raises:
        Exception: Unexpected errors are re-raised to trigger Celery retry
    """
    from payments.webhooks.handlers import TERMINAL_ERROR_CODES

    event = model.objects.filter(pk=event_pk).first()
    if event is None:
        logger.error("webhook_event.not_found", extra={"event_pk": str(event_pk)})
        return {"status": "not_found", "event_pk": str(event_pk)}

    if event.is_processed:
        logger.info(
            "webhook_event.already_processed",
            extra={"event_id": event.event_id, "event_type": event.type},
        )
        return {"status": "already_processed", "event_id": event.event_id}

    event.attempts += 1
    event.save(update_fields=["attempts"])

    log_context = {
        "event_id": event.event_id,
        "event_type": event.type,
        "attempts": event.attempts,
    }

    try:
        result = dispatch(event)
    except Exception as e:
        event.mark_failed(f"{type(e).__name__}: {e}")
        event.save(update_fields=["processing_error"])
        logger.exception("webhook_event.processing_error", extra=log_context)
        raise

    if result.success:
        event.mark_processed()
        event.save(update_fields=["processed_at", "processing_error"])
        logger.info("webhook_event.processed", extra=log_context)
        return {"status": "processed", "event_id": event.event_id}

    error_msg = result.error or "Handler returned failure"
    event.mark_failed(error_msg)
    if result.error_code in TERMINAL_ERROR_CODES:
        event.processed_at = timezone.now()
        event.save(update_fields=["processed_at", "processing_error"])
        logger.error(
            "webhook_event.terminal_failure",
            extra={**log_context, "error": error_msg, "error_code": result.error_code},
        )
        return {"status": "terminal_failure", "event_id": event.event_id, "error": error_msg}

    event.save(update_fields=["processing_error"])
    logger.warning(
        "webhook_event.handler_failed",
        extra={**log_context, "error": error_msg, "error_code": result.error_code},
    )
    return {"status": "handler_failed", "event_id": event.event_id, "error": error_msg}


@shared_task(
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_stripe_event(event_pk: str) -> dict:
    """Process a stored StripeEvent."""
    from payments.webhooks.handlers import dispatch_stripe_event

    return _process_event(StripeEvent, event_pk, dispatch_stripe_event)


@shared_task(
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_barion_event(event_pk: str) -> dict:
    """Process a stored BarionEvent."""
    from payments.webhooks.handlers import handle_barion_event

    return _process_event(BarionEvent, event_pk, handle_barion_event)


PROCESSORS = (
    (StripeEvent, process_stripe_event),
    (BarionEvent, process_barion_event),
)


@shared_task
def retry_unprocessed_events() -> dict:
    """
    Periodic task to re-queue provider events that never finished.

    Picks events older than a few minutes that are still unprocessed and
    have been attempted fewer than MAX_WEBHOOK_RETRIES times. The age
    filter keeps it from racing the task queued by the webhook view.

    Returns:
        Dict with count of events queued for retry
    """
    threshold = timezone.now() - timedelta(minutes=RETRY_MIN_AGE_MINUTES)
    queued_count = 0

    for model, task in PROCESSORS:
        events = (
            model.objects.unprocessed()
            .filter(attempts__lt=MAX_WEBHOOK_RETRIES, received_at__lt=threshold)
            .order_by("received_at")[:RETRY_BATCH_SIZE]
        )
        for event in events:
            task.delay(str(event.pk))
            queued_count += 1
            logger.info(
                "webhook_event.retry_queued",
                extra={"event_id": event.event_id, "attempts": event.attempts},
            )

    logger.info("webhook_event.retry_sweep", extra={"queued_count": queued_count})
    return {"queued_count": queued_count}


@shared_task
def reconcile_paid_orders() -> dict:
    """
    Periodic task to fulfill paid orders that have no purchase entry.

    Fulfillment runs after the order is committed as paid; a crash between
    the two leaves such an order behind.

    Returns:
        Dict with count of orders fulfilled
    """
    from payments.services import fulfill_order

    threshold = timezone.now() - timedelta(minutes=RECONCILE_MIN_AGE_MINUTES)
    fulfilled = CreditTransaction.objects.filter(type=EntryType.PURCHASE, order__isnull=False)
    orders = (
        Order.objects.filter(status=OrderStatus.PAID, paid_at__lt=threshold)
        .exclude(pk__in=fulfilled.values("order_id"))
        .values_list("pk", flat=True)[:RETRY_BATCH_SIZE]
    )

    fulfilled_count = 0
    for order_id in orders:
        if fulfill_order(order_id):
            fulfilled_count += 1
            logger.warning("order.reconciled", extra={"order_id": str(order_id)})

    return {"fulfilled_count": fulfilled_count}
