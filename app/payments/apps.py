"""
Payments app configuration.

This app provides:
- Append-only credit and audio-star ledger
- Pricing plans, coupons and orders
- Stripe and Barion checkout with webhook reconciliation
- Billingo invoicing
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
