"""
Order lookups for views and operator tooling.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError

from payments.exceptions import OrderNotFoundError
from payments.models import Order

if TYPE_CHECKING:
    import uuid

    from django.db.models import QuerySet

    from authentication.models import User


def get_order_by_id(order_id: uuid.UUID | str, user: User | None = None) -> Order:
    """
    Fetch an order with its items, optionally scoped to user.

    An order that exists but belongs to someone else is reported as not
    found.

    Raises:
        OrderNotFoundError: No such order for this user
    """
    queryset = Order.objects.prefetch_related("items")
    if user is not None:
        queryset = queryset.filter(user=user)
    try:
        order = queryset.filter(pk=order_id).first()
    except DjangoValidationError:
        order = None
    if order is None:
        raise OrderNotFoundError("Order not found", details={"order_id": str(order_id)})
    return order


def get_user_orders(user: User, limit: int = 50) -> QuerySet[Order]:
    """Most recent orders first."""
    return Order.objects.filter(user=user).prefetch_related("items").order_by("-created_at")[:limit]
