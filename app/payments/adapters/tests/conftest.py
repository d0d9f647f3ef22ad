"""
Pytest fixtures for payment adapter tests.

This module provides fixtures for testing the Stripe, Barion and Billingo
adapters: checkout parameters, mock SDK objects and mock HTTP responses.

Sections:
    - Test Data Fixtures
    - Mock Stripe Response Fixtures
    - Mock HTTP Response Fixtures
"""

import uuid
from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock

import pytest
from django.test import override_settings

from payments.adapters import CheckoutParams


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def order_id():
    return str(uuid.uuid4())


@pytest.fixture
def checkout_params(order_id):
    """pack_1000 checkout for 2990 HUF."""
    return CheckoutParams(
        order_id=order_id,
        user_id="42",
        plan_code="pack_1000",
        plan_name="1000 Mesetallér",
        total_cents=2990,
        currency="HUF",
        credits_total=1000,
        customer_email="parent@example.com",
    )


@pytest.fixture
def stripe_settings():
    with override_settings(
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET="whsec_test_123",
        STRIPE_SUCCESS_URL="https://mesemondo.example/checkout/success",
        STRIPE_CANCEL_URL="https://mesemondo.example/checkout/cancel",
    ):
        yield


@pytest.fixture
def barion_settings():
    with override_settings(
        BARION_POS_KEY="pos-key-123",
        BARION_PAYEE_EMAIL="shop@mesemondo.example",
        BARION_WEBHOOK_SECRET="barion-secret",
        BARION_ENVIRONMENT="sandbox",
        BARION_REDIRECT_URL="https://mesemondo.example/checkout/success",
        BARION_CALLBACK_URL="https://api.mesemondo.example/api/v1/payments/webhooks/barion/",
    ):
        yield


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_checkout_session(order_id):
    """Create a mock Checkout Session response."""

    def _create(
        id: str = "cs_test_123",
        amount_total: int = 299000,
        currency: str = "huf",
        customer: str | None = None,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "checkout.session",
                "url": f"https://checkout.stripe.com/c/pay/{id}",
                "amount_total": amount_total,
                "currency": currency,
                "customer": customer,
                "metadata": metadata if metadata is not None else {"order_id": order_id},
            }
        )

    return _create


@pytest.fixture
def mock_customer():
    def _create(id: str = "cus_test_123", deleted: bool = False) -> MockStripeObject:
        return MockStripeObject({"id": id, "object": "customer", "deleted": deleted})

    return _create


# =============================================================================
# Mock HTTP Response Fixtures
# =============================================================================


@pytest.fixture
def http_response():
    """
    Build a requests.Response double.

    Example:
        mock_request.return_value = http_response(200, {"PaymentId": "abc"})
    """

    def _create(status_code: int = 200, body: Any = None, reason: str = "OK") -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 300
        response.reason = reason
        response.content = b"{}" if body is not None else b""
        response.text = str(body)
        if isinstance(body, Exception):
            response.json.side_effect = body
        else:
            response.json.return_value = body
        return response

    return _create
