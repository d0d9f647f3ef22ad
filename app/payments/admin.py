"""
Payment admin configuration.

This file imports admin configurations from the ledger submodule and
registers payment domain models with the Django admin.

Catalog models (plans, coupons) are editable. Orders, payments and
provider events are read-only: their state only moves through the webhook
processor and the service layer.
"""

from django.contrib import admin

from payments.ledger.admin import LedgerAccountAdmin, LedgerEntryAdmin
from payments.models import (
    BarionEvent,
    Coupon,
    Order,
    OrderItem,
    Payment,
    PaymentCustomer,
    PricingPlan,
    StripeEvent,
)

__all__ = [
    "LedgerAccountAdmin",
    "LedgerEntryAdmin",
    "PricingPlanAdmin",
    "CouponAdmin",
    "OrderAdmin",
    "PaymentAdmin",
    "StripeEventAdmin",
    "BarionEventAdmin",
]


class ReadOnlyAdminMixin:
    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(PricingPlan)
class PricingPlanAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "name",
        "credits",
        "price_display",
        "is_active",
        "promo_enabled",
        "bonus_credits",
        "bonus_audio_stars",
    ]
    list_filter = ["is_active", "promo_enabled", "currency"]
    search_fields = ["code", "name"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["price_cents"]

    fieldsets = (
        (None, {"fields": ("id", "code", "name", "description", "is_active")}),
        ("Pricing", {"fields": ("credits", "currency", "price_cents")}),
        (
            "Promotion",
            {
                "fields": (
                    "promo_enabled",
                    "promo_type",
                    "promo_value",
                    "promo_starts_at",
                    "promo_ends_at",
                ),
            },
        ),
        ("Bonuses", {"fields": ("bonus_credits", "bonus_audio_stars")}),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )

    @admin.display(description="Price")
    def price_display(self, obj: PricingPlan) -> str:
        return f"{obj.price_cents} {obj.currency}"


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "type",
        "value",
        "is_active",
        "redeemed_count",
        "max_redemptions",
        "starts_at",
        "ends_at",
    ]
    list_filter = ["type", "is_active"]
    search_fields = ["code"]
    readonly_fields = ["id", "redeemed_count", "created_at", "updated_at"]
    ordering = ["-created_at"]


class OrderItemInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = [
        "plan_code_snapshot",
        "plan_name_snapshot",
        "unit_price_cents_snapshot",
        "quantity",
        "credits_per_unit_snapshot",
        "line_subtotal_cents",
    ]
    readonly_fields = fields


class PaymentInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = Payment
    extra = 0
    fields = ["provider", "status", "amount_cents", "currency", "failure_code", "created_at"]
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for Order.

    State changes should be made through the service layer, not admin.
    """

    list_display = [
        "id",
        "user",
        "amount_display",
        "status",
        "provider",
        "credits_total",
        "invoice_id",
        "created_at",
    ]
    list_filter = ["status", "provider", "currency", "created_at"]
    search_fields = [
        "id",
        "user__email",
        "stripe_checkout_session_id",
        "stripe_payment_intent_id",
        "barion_payment_id",
        "coupon_code_snapshot",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [OrderItemInline, PaymentInline]

    @admin.display(description="Total")
    def amount_display(self, obj: Order) -> str:
        return f"{obj.total_cents} {obj.currency}"


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "order", "provider", "status", "amount_cents", "currency", "created_at"]
    list_filter = ["provider", "status", "created_at"]
    search_fields = ["id", "order__id", "stripe_payment_intent_id", "barion_payment_id"]
    ordering = ["-created_at"]


@admin.register(PaymentCustomer)
class PaymentCustomerAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["user", "provider", "customer_id", "created_at"]
    list_filter = ["provider"]
    search_fields = ["user__email", "customer_id"]


class ProviderEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Webhook events are immutable once received.

    processing_error stays visible on terminal failures (amount mismatch,
    order not payable) for manual reconciliation.
    """

    list_display = [
        "event_id",
        "type",
        "attempts",
        "processed_at",
        "has_error",
        "received_at",
    ]
    list_filter = ["type", "received_at"]
    search_fields = ["event_id", "type", "processing_error"]
    date_hierarchy = "received_at"
    ordering = ["-received_at"]

    @admin.display(boolean=True, description="Error")
    def has_error(self, obj) -> bool:
        return bool(obj.processing_error)


@admin.register(StripeEvent)
class StripeEventAdmin(ProviderEventAdmin):
    list_filter = ["type", "livemode", "received_at"]


@admin.register(BarionEvent)
class BarionEventAdmin(ProviderEventAdmin):
    search_fields = ["event_id", "payment_id", "processing_error"]
