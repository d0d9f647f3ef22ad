"""
Pytest fixtures for webhook tests.

Provides orders in the states webhooks act on, stored provider events, and
provider doubles for the webhook views.
"""

from unittest.mock import MagicMock, patch

import pytest
from django.test import RequestFactory, override_settings

from authentication.tests.factories import UserFactory
from payments.adapters import ProviderWebhookEvent
from payments.state_machines import PaymentProviderName
from payments.tests.factories import (
    OrderFactory,
    PricingPlanFactory,
    barion_state_payload,
    checkout_completed_payload,
)


# =============================================================================
# User and Order Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def plan(db):
    return PricingPlanFactory()


@pytest.fixture
def pending_order(user, plan):
    """Stripe order waiting for checkout.session.completed."""
    return OrderFactory(user=user, plan=plan, stripe_checkout_session_id="cs_test_webhook")


@pytest.fixture
def barion_order(user, plan):
    return OrderFactory(
        user=user,
        plan=plan,
        provider=PaymentProviderName.BARION,
        stripe_checkout_session_id=None,
        barion_payment_id="barion-pay-1",
    )


@pytest.fixture(autouse=True)
def no_invoicing():
    with override_settings(BILLINGO_API_KEY=""):
        yield


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def completed_payload(pending_order):
    return checkout_completed_payload(pending_order, event_id="evt_completed_1")


@pytest.fixture
def barion_succeeded_state(barion_order):
    return barion_state_payload(barion_order)


# =============================================================================
# View Fixtures
# =============================================================================


@pytest.fixture
def request_factory():
    return RequestFactory()


@pytest.fixture
def stripe_provider(completed_payload):
    """Stripe adapter double whose signature check accepts completed_payload."""
    provider = MagicMock()
    provider.name = PaymentProviderName.STRIPE
    provider.verify_webhook_signature.return_value = ProviderWebhookEvent(
        id=completed_payload["id"],
        type=completed_payload["type"],
        data=completed_payload,
        api_version=completed_payload["api_version"],
        livemode=False,
    )
    return provider


@pytest.fixture
def barion_provider(barion_succeeded_state):
    """Barion adapter double answering GetPaymentState with a success."""
    provider = MagicMock()
    provider.name = PaymentProviderName.BARION
    provider.get_payment_state.return_value = barion_succeeded_state
    return provider


@pytest.fixture
def mock_queue():
    """Captures event processing tasks queued by the views."""
    with patch("payments.tasks.process_stripe_event.delay") as stripe_delay, patch(
        "payments.tasks.process_barion_event.delay"
    ) as barion_delay:
        yield {"stripe": stripe_delay, "barion": barion_delay}
