"""
State enums for payment models.

This module defines the state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Order States:
    created → pending_payment → paid
    created → pending_payment → canceled / failed
    paid → refunded

Payment Status (one row per provider attempt, not an FSM):
    created, requires_action, succeeded, failed, refunded
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """
    States for the Order model lifecycle.

    Terminal states: CANCELED, FAILED, REFUNDED
    PAID is terminal for the webhook processor; only operator tooling
    moves a paid order to REFUNDED.

    State Flow:
        CREATED → PENDING_PAYMENT → PAID

    Abandon Flow:
        CREATED/PENDING_PAYMENT → CANCELED
        CREATED/PENDING_PAYMENT → FAILED (provider failure, amount mismatch)

    Refund Flow:
        PAID → REFUNDED
    """

    CREATED = "created", "Created"
    PENDING_PAYMENT = "pending_payment", "Pending payment"
    PAID = "paid", "Paid"
    CANCELED = "canceled", "Canceled"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    """Status of a single provider payment attempt."""

    CREATED = "created", "Created"
    REQUIRES_ACTION = "requires_action", "Requires action"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class PaymentProviderName(models.TextChoices):
    """Card-payment providers an order can be paid through."""

    STRIPE = "stripe", "Stripe"
    BARION = "barion", "Barion"


class DiscountType(models.TextChoices):
    """
    Discount kinds shared by coupons and plan promotions.

    - PERCENT: value is a percentage of the subtotal (0-100)
    - AMOUNT: value is a fixed amount in minor units of the currency
    """

    PERCENT = "percent", "Percent"
    AMOUNT = "amount", "Amount"


__all__ = [
    "DiscountType",
    "OrderStatus",
    "PaymentProviderName",
    "PaymentStatus",
]
