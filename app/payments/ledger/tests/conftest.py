"""
Pytest fixtures for ledger tests.

Sections:
    - Users: a funded user and an empty one
    - Stories: a job subject to reserve against
"""

import pytest

from authentication.tests.factories import UserFactory
from payments.ledger.tests.factories import (
    AudioStarTransactionFactory,
    CreditTransactionFactory,
)
from stories.tests.factories import StoryFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def funded_user(user):
    """User holding 100 credits and 2 audio stars."""
    CreditTransactionFactory(user=user, amount=100)
    AudioStarTransactionFactory(user=user, amount=2)
    return user


@pytest.fixture
def story(funded_user):
    return StoryFactory(user=funded_user)
