"""
Checkout: price an order from the live catalog, snapshot it and open a
provider checkout session.

Checkout never touches the ledger. Credits are granted only after the
provider confirms payment (see payments.services.reconciliation).

Usage:
    from payments.services import CheckoutService

    result = CheckoutService().create_checkout(user, plan_code="pack_1000")
    return Response({"checkoutUrl": result.checkout_url, "orderId": str(result.order.id)})
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService
from payments.adapters import CheckoutParams, PaymentProvider, get_payment_provider
from payments.exceptions import (
    AmountLimitError,
    CouponInvalidError,
    PaymentProviderError,
    PlanNotFoundError,
)
from payments.models import Coupon, Order, OrderItem, PricingPlan
from payments.services.coupons import CouponService
from payments.state_machines import PaymentProviderName

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User


@dataclass
class CheckoutResult:
    order: Order
    checkout_url: str


class CheckoutService(BaseService):
    """
    Creates orders and provider checkout sessions.

    The provider is resolved once from settings.PAYMENT_PROVIDER unless one
    is passed in.
    """

    def __init__(self, provider: PaymentProvider | None = None):
        self.provider = provider or get_payment_provider()

    @classmethod
    def create_order(
        cls,
        user: User,
        plan: PricingPlan,
        *,
        unit_price_cents: int,
        coupon: Coupon | None = None,
        discount_cents: int = 0,
        provider: str = PaymentProviderName.STRIPE,
        quantity: int = 1,
    ) -> Order:
        """
        Insert an Order and its OrderItem with price snapshots.

        Raises:
            AmountLimitError: Total after discount is not positive
        """
        subtotal = unit_price_cents * quantity
        total = max(0, subtotal - discount_cents)
        if total <= 0:
            raise AmountLimitError(
                f"Invalid order total: {total} {plan.currency}. Total must be greater than 0.",
                details={"total": total},
            )

        with cls.atomic():
            order = Order.objects.create(
                user=user,
                currency=plan.currency,
                subtotal_cents=subtotal,
                discount_cents=discount_cents,
                total_cents=total,
                credits_total=plan.credits * quantity,
                coupon=coupon,
                coupon_code_snapshot=coupon.code if coupon else "",
                coupon_type_snapshot=coupon.type if coupon else "",
                coupon_value_snapshot=coupon.value if coupon else None,
                provider=provider,
            )
            OrderItem.objects.create(
                order=order,
                plan=plan,
                plan_code_snapshot=plan.code,
                plan_name_snapshot=plan.name,
                unit_price_cents_snapshot=unit_price_cents,
                quantity=quantity,
                credits_per_unit_snapshot=plan.credits,
                line_subtotal_cents=subtotal,
            )
        return order

    def create_checkout(
        self,
        user: User,
        plan_code: str,
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> CheckoutResult:
        """
        Price, snapshot and hand an order to the payment provider.

        Raises:
            PlanNotFoundError: Plan missing or inactive
            CouponInvalidError: Coupon rejected or per-user limit reached
            AmountLimitError: Total not positive or below the provider minimum
            PaymentProviderError: Session creation failed; the order is failed
        """
        logger = self.get_logger()
        now = now or timezone.now()

        plan = PricingPlan.objects.active().filter(code=plan_code).first()
        if plan is None:
            raise PlanNotFoundError(
                "Pricing plan not found or inactive",
                details={"plan_code": plan_code},
            )

        unit_price = plan.effective_price(now)
        coupon = None
        discount = 0
        if coupon_code:
            result = CouponService.validate(
                coupon_code,
                unit_price,
                currency=plan.currency,
                now=now,
            )
            if not result:
                raise CouponInvalidError(
                    result.error,
                    error_code=result.error_code,
                    details={"code": coupon_code},
                )
            coupon = result.data
            if not CouponService.within_user_limit(coupon, user):
                raise CouponInvalidError(
                    "Coupon usage limit reached",
                    error_code="COUPON_USER_LIMIT",
                    details={"code": coupon.code},
                )
            discount = coupon.discount_for(unit_price)

        total = max(0, unit_price - discount)
        minimum = self.provider.get_minimum_amount(plan.currency)
        if 0 < total < minimum:
            raise AmountLimitError(
                f"Order total too low: {total} {plan.currency}. "
                f"Minimum is {minimum} {plan.currency}.",
                details={"total": total, "minimum": minimum},
            )

        order = self.create_order(
            user,
            plan,
            unit_price_cents=unit_price,
            coupon=coupon,
            discount_cents=discount,
            provider=self.provider.name,
        )

        customer_id = None
        try:
            customer_id = self.provider.ensure_customer(user)
        except PaymentProviderError:
            logger.warning(
                "checkout.ensure_customer_failed",
                extra={"order_id": str(order.pk), "user_id": user.pk},
                exc_info=True,
            )

        try:
            session = self.provider.create_checkout_session(
                CheckoutParams(
                    order_id=str(order.pk),
                    user_id=str(user.pk),
                    plan_code=plan.code,
                    plan_name=plan.name,
                    total_cents=order.total_cents,
                    currency=order.currency,
                    credits_total=order.credits_total,
                    customer_email=user.email,
                    customer_id=customer_id,
                )
            )
        except (PaymentProviderError, AmountLimitError, ValueError) as e:
            order.fail(reason=str(e))
            order.save()
            logger.error(
                "checkout.session_failed",
                extra={"order_id": str(order.pk), "provider": self.provider.name},
                exc_info=True,
            )
            raise

        if abs(session.amount_total - order.total_cents) > settings.PAYMENT_AMOUNT_EPSILON:
            logger.error(
                "checkout.amount_mismatch",
                extra={
                    "order_id": str(order.pk),
                    "order_total": order.total_cents,
                    "session_total": session.amount_total,
                },
            )

        if self.provider.name == PaymentProviderName.STRIPE:
            order.stripe_checkout_session_id = session.id
            order.stripe_customer_id = customer_id or session.metadata.get("customer_id", "")
        else:
            order.barion_payment_id = session.id
            order.barion_payment_request_id = session.metadata.get("payment_request_id", str(order.pk))
            order.barion_customer_id = customer_id or ""

        order.start_payment()
        order.save()

        logger.info(
            "checkout.created",
            extra={
                "order_id": str(order.pk),
                "user_id": user.pk,
                "plan_code": plan.code,
                "total_cents": order.total_cents,
                "provider": self.provider.name,
            },
        )
        return CheckoutResult(order=order, checkout_url=session.url)
