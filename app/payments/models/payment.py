"""
Payment and PaymentCustomer models.

A Payment is one provider attempt against an Order; an order can have
several (a failed Barion attempt followed by a successful one). It is a
record of what the provider reported, not a state machine.

PaymentCustomer maps a user to the provider's customer id so repeat
checkouts reuse the same Stripe customer.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PaymentProviderName, PaymentStatus


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    One payment attempt.

    Fields:
        status: What the provider reported for this attempt
        amount_cents: Amount in minor units as recorded on the order
        stripe_payment_intent_id: Unique when present
        barion_transaction_id: Barion's POSTransactionId
        failure_code / failure_message: Provider failure details
    """

    order = models.ForeignKey(
        "payments.Order",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    provider = models.CharField(
        max_length=10,
        choices=PaymentProviderName.choices,
        default=PaymentProviderName.STRIPE,
    )
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.CREATED,
        db_index=True,
    )
    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=3, default="HUF")

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
    )
    stripe_charge_id = models.CharField(max_length=255, blank=True, default="")
    barion_payment_id = models.CharField(max_length=255, blank=True, default="")
    barion_transaction_id = models.CharField(max_length=255, blank=True, default="")

    failure_code = models.CharField(max_length=100, blank=True, default="")
    failure_message = models.TextField(blank=True, default="")

    class Meta:
        db_table = "payments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order", "status"], name="payments_order_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.provider}, {self.status})"


class PaymentCustomer(UUIDPrimaryKeyMixin, BaseModel):
    """Provider customer id per (user, provider)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payment_customers",
    )
    provider = models.CharField(max_length=10, choices=PaymentProviderName.choices)
    customer_id = models.CharField(max_length=255)

    class Meta:
        db_table = "payment_customers"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "provider"],
                name="unique_payment_customer_per_provider",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.provider}:{self.customer_id}"
