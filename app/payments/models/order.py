"""
Order and OrderItem models for credit purchases.

An Order is created at checkout with a snapshot of every price it will ever
need; nothing on it is recomputed from the live catalog afterwards. Its
status is a django-fsm field that only the webhook processor and operator
tooling move.

Usage:
    from payments.models import Order
    from payments.state_machines import OrderStatus

    order = Order.objects.select_for_update().get(pk=order_id)
    if can_proceed(order.mark_paid):
        order.mark_paid(payment_intent_id="pi_123")
        order.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import (
    DiscountType,
    OrderStatus,
    PaymentProviderName,
)

OPEN_STATUSES = [OrderStatus.CREATED, OrderStatus.PENDING_PAYMENT]


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single credit purchase.

    State Flow:
        CREATED -> PENDING_PAYMENT -> PAID
        CREATED/PENDING_PAYMENT -> CANCELED
        CREATED/PENDING_PAYMENT -> FAILED
        PAID -> REFUNDED

    Fields:
        subtotal_cents / discount_cents / total_cents: Price snapshot in
            minor units; total = max(0, subtotal - discount)
        credits_total: Credits granted on fulfillment
        coupon_*_snapshot: Coupon as it was at checkout
        provider: Which provider the checkout session was opened with
        stripe_* / barion_*: Provider correlation ids
        invoice_id: Invoicing system id, set after a best-effort invoice
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    status = FSMField(
        default=OrderStatus.CREATED,
        choices=OrderStatus.choices,
        db_index=True,
        protected=True,
    )

    currency = models.CharField(max_length=3, default="HUF")
    subtotal_cents = models.PositiveIntegerField()
    discount_cents = models.PositiveIntegerField(default=0)
    total_cents = models.PositiveIntegerField()
    credits_total = models.PositiveIntegerField()

    coupon = models.ForeignKey(
        "payments.Coupon",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    coupon_code_snapshot = models.CharField(max_length=64, blank=True, default="")
    coupon_type_snapshot = models.CharField(
        max_length=10,
        choices=DiscountType.choices,
        blank=True,
        default="",
    )
    coupon_value_snapshot = models.PositiveIntegerField(null=True, blank=True)

    provider = models.CharField(
        max_length=10,
        choices=PaymentProviderName.choices,
        default=PaymentProviderName.STRIPE,
    )

    # Stripe
    stripe_checkout_session_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
    )
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="")
    stripe_customer_id = models.CharField(max_length=255, blank=True, default="")

    # Barion
    barion_payment_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
    )
    barion_payment_request_id = models.CharField(max_length=255, blank=True, default="")
    barion_customer_id = models.CharField(max_length=255, blank=True, default="")

    invoice_id = models.BigIntegerField(null=True, blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="orders_user_status_idx"),
            models.Index(fields=["user", "coupon", "status"], name="orders_coupon_usage_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_cents__gt=0),
                name="order_total_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Order({self.id}, {self.status}, {self.total_cents} {self.currency})"

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=OrderStatus.CREATED,
        target=OrderStatus.PENDING_PAYMENT,
    )
    def start_payment(self):
        """
        Hand the order to the payment provider.

        Transition: CREATED -> PENDING_PAYMENT
        """

    @transition(
        field=status,
        source=OPEN_STATUSES,
        target=OrderStatus.PAID,
    )
    def mark_paid(self, payment_intent_id: str = "", customer_id: str = ""):
        """
        Mark the order paid after the provider amount was verified.

        Transition: CREATED/PENDING_PAYMENT -> PAID
        """
        self.paid_at = timezone.now()
        if payment_intent_id:
            self.stripe_payment_intent_id = payment_intent_id
        if customer_id:
            self.stripe_customer_id = customer_id

    @transition(
        field=status,
        source=OPEN_STATUSES,
        target=OrderStatus.CANCELED,
    )
    def cancel(self):
        """
        Transition: CREATED/PENDING_PAYMENT -> CANCELED

        Called when the checkout session expires or the payer cancels.
        """
        self.canceled_at = timezone.now()

    @transition(
        field=status,
        source=OPEN_STATUSES,
        target=OrderStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """
        Transition: CREATED/PENDING_PAYMENT -> FAILED

        Args:
            reason: Provider failure or amount mismatch description
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=OrderStatus.PAID,
        target=OrderStatus.REFUNDED,
    )
    def refund(self):
        """
        Transition: PAID -> REFUNDED

        Operator-only. Granted credits are not clawed back automatically.
        """
        self.refunded_at = timezone.now()


class OrderItem(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
    """
    Immutable snapshot of the purchased plan.

    The plan FK is PROTECT so a plan with orders can only be deactivated,
    never deleted; every value the order needs is copied here anyway.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    plan = models.ForeignKey(
        "payments.PricingPlan",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    plan_code_snapshot = models.CharField(max_length=64)
    plan_name_snapshot = models.CharField(max_length=200)
    unit_price_cents_snapshot = models.PositiveIntegerField()
    quantity = models.PositiveIntegerField(default=1)
    credits_per_unit_snapshot = models.PositiveIntegerField()
    line_subtotal_cents = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.plan_code_snapshot} x{self.quantity}"
