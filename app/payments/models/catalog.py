"""
PricingPlan and Coupon models for the credit catalog.

A PricingPlan is a purchasable pack of credits with optional bonus credits
and audio stars, and an optional time-windowed promotion. A Coupon is a
discount code applied at checkout.

Both are live catalog rows: checkout copies the values it needs onto the
Order and OrderItem, so editing a plan or coupon never changes an order
that was already created.

Usage:
    from payments.models import PricingPlan, Coupon

    plan = PricingPlan.objects.active().get(code="pack_1000")
    price = plan.effective_price()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import DiscountType

if TYPE_CHECKING:
    from datetime import datetime


def discount_cents(base_cents: int, discount_type: str | None, value: int | None) -> int:
    """
    Discount in minor units for a percent or fixed-amount discount.

    Percent values are clamped to 0-100 and rounded down; amount values
    never exceed the base.
    """
    if not value or value <= 0:
        return 0
    if discount_type == DiscountType.PERCENT:
        return (base_cents * min(value, 100)) // 100
    if discount_type == DiscountType.AMOUNT:
        return min(value, base_cents)
    return 0


class PricingPlanQuerySet(models.QuerySet):
    def active(self) -> PricingPlanQuerySet:
        return self.filter(is_active=True)


class PricingPlan(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchasable credit pack.

    Fields:
        code: Stable identifier used by the frontend (e.g. "pack_1000")
        credits: Credits granted per unit
        price_cents: List price in minor units
        promo_*: Optional promotion, active when promo_enabled and now is
            inside [promo_starts_at, promo_ends_at] (open ends allowed)
        bonus_credits / bonus_audio_stars: Granted on top of credits when
            an order for this plan is fulfilled
    """

    code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    credits = models.PositiveIntegerField()
    currency = models.CharField(max_length=3, default="HUF")
    price_cents = models.PositiveIntegerField(
        help_text="List price in minor units of the currency",
    )
    is_active = models.BooleanField(default=True, db_index=True)

    promo_enabled = models.BooleanField(default=False)
    promo_type = models.CharField(
        max_length=10,
        choices=DiscountType.choices,
        null=True,
        blank=True,
    )
    promo_value = models.PositiveIntegerField(null=True, blank=True)
    promo_starts_at = models.DateTimeField(null=True, blank=True)
    promo_ends_at = models.DateTimeField(null=True, blank=True)

    bonus_credits = models.PositiveIntegerField(default=0)
    bonus_audio_stars = models.PositiveIntegerField(default=0)

    objects = PricingPlanQuerySet.as_manager()

    class Meta:
        db_table = "pricing_plans"
        ordering = ["price_cents"]
        verbose_name = "Pricing Plan"
        verbose_name_plural = "Pricing Plans"

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"

    def promo_active(self, now: datetime | None = None) -> bool:
        if not self.promo_enabled:
            return False
        now = now or timezone.now()
        if self.promo_starts_at and now < self.promo_starts_at:
            return False
        if self.promo_ends_at and now > self.promo_ends_at:
            return False
        return True

    def effective_price(self, now: datetime | None = None) -> int:
        """Price in minor units after the promotion, if one is running."""
        if not self.promo_active(now):
            return self.price_cents
        discount = discount_cents(self.price_cents, self.promo_type, self.promo_value)
        return max(0, self.price_cents - discount)


class Coupon(UUIDPrimaryKeyMixin, BaseModel):
    """
    A discount code.

    Codes are stored upper-case; lookups normalize the input the same way.
    redeemed_count is incremented once per order, when the order becomes
    paid, and is compared against max_redemptions at checkout.
    """

    code = models.CharField(max_length=64, unique=True)
    type = models.CharField(max_length=10, choices=DiscountType.choices)
    value = models.PositiveIntegerField(
        help_text="Percent (1-100) or amount in minor units",
    )
    currency = models.CharField(
        max_length=3,
        null=True,
        blank=True,
        help_text="Required currency for amount coupons",
    )
    max_redemptions = models.PositiveIntegerField(null=True, blank=True)
    redeemed_count = models.PositiveIntegerField(default=0)
    per_user_limit = models.PositiveIntegerField(null=True, blank=True, default=1)
    min_order_amount_cents = models.PositiveIntegerField(null=True, blank=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "coupons"
        ordering = ["code"]

    def __str__(self) -> str:
        return self.code

    def save(self, *args, **kwargs):
        self.code = normalize_coupon_code(self.code)
        super().save(*args, **kwargs)

    def discount_for(self, subtotal_cents: int) -> int:
        return discount_cents(subtotal_cents, self.type, self.value)


def normalize_coupon_code(code: str) -> str:
    return (code or "").strip().upper()
