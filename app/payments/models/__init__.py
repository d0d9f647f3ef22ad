"""
Payment domain models.

This module contains all payment-related models:
- PricingPlan: Purchasable credit packs with optional promotions
- Coupon: Discount codes applied at checkout
- Order: A credit purchase with an immutable price snapshot (django-fsm)
- OrderItem: Snapshot of the purchased plan
- Payment: One provider payment attempt
- PaymentCustomer: Provider customer id per user
- StripeEvent / BarionEvent: Stored webhook events for idempotent processing
- LedgerAccount, CreditTransaction, AudioStarTransaction: Balance ledger
  (defined in payments.ledger)
"""

from payments.ledger.models import (
    AudioStarTransaction,
    CreditTransaction,
    LedgerAccount,
)
from payments.models.catalog import Coupon, PricingPlan
from payments.models.order import Order, OrderItem
from payments.models.payment import Payment, PaymentCustomer
from payments.models.provider_event import BarionEvent, ProviderEvent, StripeEvent

__all__ = [
    "AudioStarTransaction",
    "BarionEvent",
    "Coupon",
    "CreditTransaction",
    "LedgerAccount",
    "Order",
    "OrderItem",
    "Payment",
    "PaymentCustomer",
    "PricingPlan",
    "ProviderEvent",
    "StripeEvent",
]
