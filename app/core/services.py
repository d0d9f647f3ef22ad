"""
Base service layer patterns for business logic encapsulation.

- ServiceResult: result wrapper for expected failures returned to callers
- BaseService: common utilities (logger, transaction)

Services hold business logic; views translate HTTP to service calls and
models hold data. Expected failures (invalid coupon, order not found) are
either returned as ServiceResult.failure or raised as a
core.exceptions.BaseApplicationError subclass. Unexpected failures
(database down, provider SDK bug) propagate.

Usage:
    from core.services import BaseService, ServiceResult

    class CouponService(BaseService):
        @classmethod
        def validate(cls, code: str, subtotal_cents: int) -> ServiceResult[Coupon]:
            coupon = Coupon.objects.filter(code=code.upper()).first()
            if coupon is None:
                return ServiceResult.failure("Coupon not found", "COUPON_NOT_FOUND")
            return ServiceResult.success(coupon)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful
        error: Error message if failed
        error_code: Machine-readable error code
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result.

        Example:
            return ServiceResult.failure(
                "Minimum order amount is 1000 HUF",
                error_code="COUPON_MIN_ORDER",
            )
        """
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    Services expose classmethods only. Use cls.atomic() to make transaction
    boundaries explicit and cls.get_logger() for a logger named after the
    service class.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named ``<module>.<ServiceClass>`` for easy filtering."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Example:
            with cls.atomic():
                order = Order.objects.create(...)
                OrderItem.objects.create(order=order, ...)
        """
        with transaction.atomic():
            yield
