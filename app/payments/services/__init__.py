"""
Payment services for checkout, confirmation and fulfillment.

This module provides:
- CheckoutService: Prices an order and opens a provider checkout session
- CouponService: Validates coupon codes
- confirm_payment: Marks an order paid after a verified provider report
- fulfill_order: Grants a paid order's credits exactly once
- issue_invoice: Best-effort invoice for a paid order

Usage:
    from payments.services import CheckoutService

    result = CheckoutService().create_checkout(user, plan_code="pack_1000")

    from payments.services import fulfill_order

    fulfill_order(order.id)
"""

from payments.services.checkout import CheckoutResult, CheckoutService
from payments.services.coupons import CouponService
from payments.services.fulfillment import credits_summary, fulfill_order, issue_invoice
from payments.services.orders import get_order_by_id, get_user_orders
from payments.services.reconciliation import amounts_match, confirm_payment

__all__ = [
    "CheckoutResult",
    "CheckoutService",
    "CouponService",
    "amounts_match",
    "confirm_payment",
    "credits_summary",
    "fulfill_order",
    "get_order_by_id",
    "get_user_orders",
    "issue_invoice",
]
