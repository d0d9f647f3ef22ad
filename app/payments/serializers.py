"""
DRF serializers for payments app.

This module provides serializers for:
- Pricing plans with their effective (promotional) price
- Coupon validation and checkout requests
- Order history

Serializer Hierarchy:
    PricingPlanSerializer: Active plan listing
    CouponValidateSerializer: Coupon check request
    CheckoutRequestSerializer / CheckoutResponseSerializer: Checkout
    OrderSerializer: Order with its item snapshots
    BalanceSerializer: Both ledger balances
"""

from __future__ import annotations

from django.utils import timezone
from rest_framework import serializers

from payments.models import Order, OrderItem, PricingPlan


class PricingPlanSerializer(serializers.ModelSerializer):
    """
    Active pricing plan.

    Fields:
        price_cents: List price
        effective_price_cents: Price after an active promotion
        promo_active: Whether a promotion applies right now
    """

    effective_price_cents = serializers.SerializerMethodField()
    promo_active = serializers.SerializerMethodField()

    class Meta:
        model = PricingPlan
        fields = [
            "id",
            "code",
            "name",
            "description",
            "credits",
            "currency",
            "price_cents",
            "effective_price_cents",
            "promo_active",
            "promo_ends_at",
            "bonus_credits",
            "bonus_audio_stars",
        ]
        read_only_fields = fields

    def _now(self):
        return self.context.get("now") or timezone.now()

    def get_effective_price_cents(self, obj: PricingPlan) -> int:
        return obj.effective_price(self._now())

    def get_promo_active(self, obj: PricingPlan) -> bool:
        return obj.promo_active(self._now())


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64)
    plan_code = serializers.CharField(max_length=64)


class CouponValidationResultSerializer(serializers.Serializer):
    valid = serializers.BooleanField()
    code = serializers.CharField()
    subtotal_cents = serializers.IntegerField()
    discount_cents = serializers.IntegerField()
    total_cents = serializers.IntegerField()
    currency = serializers.CharField()


class CheckoutRequestSerializer(serializers.Serializer):
    plan_code = serializers.CharField(max_length=64)
    coupon_code = serializers.CharField(
        max_length=64,
        required=False,
        allow_blank=True,
        allow_null=True,
    )


class CheckoutResponseSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    checkout_url = serializers.URLField()
    provider = serializers.CharField()


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "plan_code_snapshot",
            "plan_name_snapshot",
            "unit_price_cents_snapshot",
            "quantity",
            "credits_per_unit_snapshot",
            "line_subtotal_cents",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    has_invoice = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "status",
            "currency",
            "subtotal_cents",
            "discount_cents",
            "total_cents",
            "credits_total",
            "coupon_code_snapshot",
            "provider",
            "items",
            "has_invoice",
            "created_at",
            "paid_at",
        ]
        read_only_fields = fields

    def get_has_invoice(self, obj: Order) -> bool:
        return obj.invoice_id is not None


class BalanceSerializer(serializers.Serializer):
    credits = serializers.IntegerField()
    audio_stars = serializers.IntegerField()


class InvoiceUrlSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField()
    url = serializers.URLField()
