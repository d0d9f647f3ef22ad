"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.post('/api/v1/auth/token/refresh/', ...)
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import BillingAddressFactory, UserFactory


@pytest.fixture
def user(db):
    return UserFactory(first_name="Anna", last_name="Kovács")


@pytest.fixture
def billing_address(user):
    return BillingAddressFactory(user=user)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """APIClient carrying a JWT access token for the default user."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client
