"""
Payment adapters for external services.

All payment provider and invoicing API calls go through these adapters so
error handling, timeouts, idempotency and logging are consistent.

Usage:
    from payments.adapters import get_payment_provider, CheckoutParams

    provider = get_payment_provider()
    session = provider.create_checkout_session(CheckoutParams(...))
"""

from payments.adapters.base import (
    CheckoutParams,
    CheckoutSession,
    PaymentProvider,
    ProviderWebhookEvent,
    get_payment_provider,
)
from payments.adapters.billingo_adapter import (
    BillingoClient,
    BillingProfile,
    create_invoice,
)

__all__ = [
    "BillingProfile",
    "BillingoClient",
    "CheckoutParams",
    "CheckoutSession",
    "PaymentProvider",
    "ProviderWebhookEvent",
    "create_invoice",
    "get_payment_provider",
]
