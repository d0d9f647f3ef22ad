"""
Webhook handling for payment events from Stripe and Barion.

Webhooks are verified, stored idempotently, and processed asynchronously
via Celery tasks.

Usage:
    # In urls.py
    from payments.webhooks.views import barion_webhook, stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.handlers import (
    dispatch_stripe_event,
    handle_barion_event,
    register_handler,
)
from payments.webhooks.views import barion_webhook, stripe_webhook

__all__ = [
    "barion_webhook",
    "dispatch_stripe_event",
    "handle_barion_event",
    "register_handler",
    "stripe_webhook",
]
