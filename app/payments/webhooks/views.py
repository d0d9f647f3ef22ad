"""
Webhook endpoint views for Stripe and Barion.

Both views follow the same contract:
1. Verify the webhook against the raw body
2. Store the event; the unique event_id rejects duplicate deliveries
3. Queue the event for async processing after the insert commits
4. Return 200 immediately

Usage:
    # In urls.py
    from payments.webhooks.views import barion_webhook, stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
        path("webhooks/barion/", barion_webhook, name="barion_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging
from typing import Any

from django.db import IntegrityError, transaction
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST

from payments.adapters import get_payment_provider
from payments.adapters.barion_adapter import SUCCESS_STATUSES
from payments.exceptions import BarionError, WebhookSignatureError
from payments.models import BarionEvent, StripeEvent
from payments.state_machines import PaymentProviderName

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue Stripe webhook events.

    Stripe expects a 2xx response within 20 seconds, so nothing but the
    insert happens in the request.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Missing or invalid signature
    """
    signature = request.headers.get("Stripe-Signature", "")

    try:
        event = get_payment_provider(PaymentProviderName.STRIPE).verify_webhook_signature(
            request.body, signature
        )
    except WebhookSignatureError as e:
        logger.warning("stripe_webhook.invalid_signature", extra={"error": e.message})
        return HttpResponse("Invalid signature", status=400)

    logger.info(
        "stripe_webhook.received",
        extra={"event_id": event.id, "event_type": event.type},
    )

    try:
        with transaction.atomic():
            stored = StripeEvent.objects.create(
                event_id=event.id,
                type=event.type,
                payload=event.data,
                api_version=event.api_version,
                created=event.created,
                livemode=event.livemode,
            )
            transaction.on_commit(lambda: _queue("stripe", stored.pk))
    except IntegrityError:
        logger.info("stripe_webhook.duplicate", extra={"event_id": event.id})
        return HttpResponse("Already received", status=200)

    return HttpResponse("Accepted", status=200)


def _barion_payment_id(request: HttpRequest) -> str:
    if request.method == "GET":
        return request.GET.get("paymentId") or request.GET.get("PaymentId") or ""

    payment_id = request.POST.get("PaymentId") or request.POST.get("paymentId")
    if payment_id:
        return payment_id
    try:
        body = json.loads(request.body or b"{}")
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    return body.get("PaymentId") or body.get("paymentId") or ""


@csrf_exempt
@require_http_methods(["GET", "POST"])
def barion_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive a Barion callback and store the payment state it refers to.

    Barion callbacks normally carry only a PaymentId, so the authoritative
    state is fetched with GetPaymentState. A signed body (X-Barion-Signature)
    is verified instead and used as-is when it includes a Status.

    The event id is "<payment id>:<status>": each state a payment reaches
    is stored once, and a repeated callback for the same state is a
    duplicate.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Invalid signature or no PaymentId
        - 502: GetPaymentState failed; Barion retries the callback
    """
    try:
        provider = get_payment_provider(PaymentProviderName.BARION)
    except ValueError:
        logger.error("barion_webhook.not_configured", exc_info=True)
        return HttpResponse("Barion is not configured", status=503)

    state: dict[str, Any] | None = None
    signature = request.headers.get("X-Barion-Signature", "")

    if signature:
        try:
            event = provider.verify_webhook_signature(request.body, signature)
        except WebhookSignatureError as e:
            logger.warning("barion_webhook.invalid_signature", extra={"error": e.message})
            return HttpResponse("Invalid signature", status=400)
        payment_id = str(event.data.get("PaymentId") or "")
        if event.data.get("Status"):
            state = event.data
    else:
        payment_id = _barion_payment_id(request)

    if not payment_id:
        logger.warning("barion_webhook.missing_payment_id")
        return HttpResponse("Missing PaymentId", status=400)

    if state is None:
        try:
            state = provider.get_payment_state(payment_id)
        except BarionError as e:
            logger.error(
                "barion_webhook.state_fetch_failed",
                extra={"payment_id": payment_id, "error": e.message},
            )
            return HttpResponse("Payment state unavailable", status=502)

    status = str(state.get("Status") or "unknown").lower()
    event_id = f"{payment_id}:{status}"
    event_type = "payment.completed" if status in SUCCESS_STATUSES else "payment.state_changed"

    logger.info(
        "barion_webhook.received",
        extra={"event_id": event_id, "payment_id": payment_id, "status": status},
    )

    try:
        with transaction.atomic():
            stored = BarionEvent.objects.create(
                event_id=event_id,
                type=event_type,
                payload=state,
                payment_id=payment_id,
            )
            transaction.on_commit(lambda: _queue("barion", stored.pk))
    except IntegrityError:
        logger.info("barion_webhook.duplicate", extra={"event_id": event_id})
        return HttpResponse("Already received", status=200)

    return HttpResponse("Accepted", status=200)


def _queue(provider: str, event_pk) -> None:
    """
    Queue a stored event for processing.

    A broker failure is logged only: the event row exists, so the periodic
    retry task picks it up.
    """
    from payments.tasks import process_barion_event, process_stripe_event

    task = process_stripe_event if provider == "stripe" else process_barion_event
    try:
        task.delay(str(event_pk))
    except Exception:
        logger.error(
            "webhook.queue_failed",
            extra={"provider": provider, "event_pk": str(event_pk)},
            exc_info=True,
        )
