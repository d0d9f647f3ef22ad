"""
Abstract payment provider contract.

Checkout and webhook code talk to a PaymentProvider, never to a provider
SDK directly. Each provider adapter (Stripe, Barion) implements this
contract; the active one is chosen by settings.PAYMENT_PROVIDER.

Usage:
    from payments.adapters import get_payment_provider, CheckoutParams

    provider = get_payment_provider()
    session = provider.create_checkout_session(
        CheckoutParams(
            order_id=str(order.id),
            user_id=str(user.id),
            plan_code="pack_1000",
            plan_name="1000 Mesetallér",
            total_cents=2990,
            currency="HUF",
            credits_total=1000,
            customer_email=user.email,
        )
    )
    redirect(session.url)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.conf import settings

from payments.state_machines import PaymentProviderName

if TYPE_CHECKING:
    from authentication.models import User


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass
class CheckoutParams:
    """
    Parameters for opening a provider checkout session.

    Attributes:
        order_id: Order UUID, echoed back by the provider in webhooks
        total_cents: Order total in minor units as stored on the order
        customer_id: Provider customer id from ensure_customer(), if any
    """

    order_id: str
    user_id: str
    plan_code: str
    plan_name: str
    total_cents: int
    currency: str
    credits_total: int
    customer_email: str
    customer_id: str | None = None

    def __post_init__(self) -> None:
        if self.total_cents <= 0:
            raise ValueError("total_cents must be positive")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class CheckoutSession:
    """
    A provider checkout session.

    Attributes:
        id: Provider session or payment id
        url: Where to redirect the payer
        amount_total: Amount the provider will charge, in the order's minor
            units (provider-unit conversions already undone)
        metadata: Provider-specific correlation values
    """

    id: str
    url: str
    amount_total: float
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class ProviderWebhookEvent:
    """A verified webhook event, normalized across providers."""

    id: str
    type: str
    data: dict[str, Any]
    created: datetime | None = None
    livemode: bool = False
    api_version: str = ""


# =============================================================================
# Provider Contract
# =============================================================================


class PaymentProvider(ABC):
    """
    Contract every card-payment provider implements.

    Implementations are stateless apart from configuration read in
    __init__, and safe to share between threads.
    """

    name: str

    @abstractmethod
    def ensure_customer(self, user: User) -> str:
        """Return the provider customer id for user, creating it if needed."""

    @abstractmethod
    def create_checkout_session(self, params: CheckoutParams) -> CheckoutSession:
        """
        Open a checkout session for an order.

        Raises:
            AmountLimitError: Total below the provider minimum
            PaymentProviderError: Provider API failure
        """

    @abstractmethod
    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> ProviderWebhookEvent:
        """
        Verify a raw webhook body against its signature header.

        Raises:
            WebhookSignatureError: Signature missing or invalid
        """

    @abstractmethod
    def get_minimum_amount(self, currency: str) -> int:
        """Smallest chargeable total for currency, in minor units."""


def get_payment_provider(name: str | None = None) -> PaymentProvider:
    """
    Build the provider adapter for name, or for settings.PAYMENT_PROVIDER.

    Raises:
        ValueError: Unknown provider name
    """
    name = (name or settings.PAYMENT_PROVIDER).lower()

    if name == PaymentProviderName.STRIPE:
        from payments.adapters.stripe_adapter import StripeProvider

        return StripeProvider()
    if name == PaymentProviderName.BARION:
        from payments.adapters.barion_adapter import BarionProvider

        return BarionProvider()
    raise ValueError(f"Unknown payment provider: {name!r}")
