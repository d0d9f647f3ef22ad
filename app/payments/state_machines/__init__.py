"""
State machine enums for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    DiscountType,
    OrderStatus,
    PaymentProviderName,
    PaymentStatus,
)

__all__ = [
    "DiscountType",
    "OrderStatus",
    "PaymentProviderName",
    "PaymentStatus",
]
