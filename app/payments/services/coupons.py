"""
Coupon validation.

Usage:
    from payments.services import CouponService

    result = CouponService.validate("winter10", subtotal_cents=2990, currency="HUF")
    if not result:
        raise CouponInvalidError(result.error)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService, ServiceResult
from payments.models import Coupon, Order
from payments.models.catalog import normalize_coupon_code
from payments.state_machines import DiscountType, OrderStatus

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User


class CouponService(BaseService):
    """
    Checks applied in order:
    active flag, start and end of the validity window, max redemptions,
    minimum order amount, then the currency of amount coupons.
    """

    @classmethod
    def validate(
        cls,
        code: str,
        subtotal_cents: int,
        *,
        currency: str | None = None,
        now: datetime | None = None,
    ) -> ServiceResult[Coupon]:
        coupon = Coupon.objects.filter(code=normalize_coupon_code(code)).first()
        if coupon is None:
            return ServiceResult.failure("Coupon not found", "COUPON_NOT_FOUND")

        if not coupon.is_active:
            return ServiceResult.failure("Coupon is not active", "COUPON_INACTIVE")

        now = now or timezone.now()
        if coupon.starts_at and now < coupon.starts_at:
            return ServiceResult.failure("Coupon not yet valid", "COUPON_NOT_STARTED")
        if coupon.ends_at and now > coupon.ends_at:
            return ServiceResult.failure("Coupon has expired", "COUPON_EXPIRED")

        if coupon.max_redemptions is not None and coupon.redeemed_count >= coupon.max_redemptions:
            return ServiceResult.failure(
                "Coupon has reached maximum redemptions",
                "COUPON_EXHAUSTED",
            )

        if coupon.min_order_amount_cents is not None and subtotal_cents < coupon.min_order_amount_cents:
            return ServiceResult.failure(
                f"Minimum order amount is {coupon.min_order_amount_cents} {coupon.currency or 'HUF'}",
                "COUPON_MIN_ORDER",
            )

        if (
            coupon.type == DiscountType.AMOUNT
            and coupon.currency
            and currency
            and coupon.currency.upper() != currency.upper()
        ):
            return ServiceResult.failure(
                f"Coupon is not valid for {currency.upper()}",
                "COUPON_CURRENCY_MISMATCH",
            )

        return ServiceResult.success(coupon)

    @classmethod
    def within_user_limit(cls, coupon: Coupon, user: User) -> bool:
        """Whether user has fewer paid orders with coupon than its per-user limit."""
        if coupon.per_user_limit is None:
            return True
        used = Order.objects.filter(
            user=user,
            coupon=coupon,
            status=OrderStatus.PAID,
        ).count()
        return used < coupon.per_user_limit
