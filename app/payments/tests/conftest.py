"""
Pytest fixtures for payment tests.

Sections:
    - Users and API clients
    - Catalog: the pack_1000 plan and a coupon
    - Orders in the states the webhook processor sees
    - Provider: a fake PaymentProvider for checkout tests
"""

from unittest.mock import MagicMock

import pytest
from django.test import override_settings
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from payments.adapters import CheckoutSession, PaymentProvider
from payments.state_machines import OrderStatus, PaymentProviderName
from payments.tests.factories import CouponFactory, OrderFactory, PricingPlanFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# Catalog Fixtures
# =============================================================================


@pytest.fixture
def plan(db):
    """pack_1000: 1000 credits for 2990 HUF."""
    return PricingPlanFactory()


@pytest.fixture
def coupon(db):
    return CouponFactory(code="WINTER10", value=10)


# =============================================================================
# Order Fixtures
# =============================================================================


@pytest.fixture
def pending_order(user, plan):
    return OrderFactory(user=user, plan=plan)


@pytest.fixture
def paid_order(user, plan):
    return OrderFactory(user=user, plan=plan, status=OrderStatus.PAID, paid_at=timezone.now())


@pytest.fixture(autouse=True)
def no_invoicing():
    """Invoicing is skipped unless a test configures a key."""
    with override_settings(BILLINGO_API_KEY=""):
        yield


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def fake_provider():
    """
    PaymentProvider double that echoes the order total back.

    Example:
        result = CheckoutService(provider=fake_provider).create_checkout(user, "pack_1000")
        fake_provider.create_checkout_session.assert_called_once()
    """
    provider = MagicMock(spec=PaymentProvider)
    provider.name = PaymentProviderName.STRIPE
    provider.get_minimum_amount.return_value = 175
    provider.ensure_customer.return_value = "cus_test_1"
    provider.create_checkout_session.side_effect = lambda params: CheckoutSession(
        id=f"cs_{params.order_id}",
        url=f"https://checkout.stripe.com/c/pay/cs_{params.order_id}",
        amount_total=float(params.total_cents),
        currency=params.currency,
        metadata={"order_id": params.order_id},
    )
    return provider
