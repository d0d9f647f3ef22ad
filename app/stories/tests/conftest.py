"""
Pytest fixtures for story tests.

Sections:
    - Users and API clients
    - Stories in the states the worker sees
    - Fakes for the text generator, speech synthesizer and storage
"""

from unittest.mock import MagicMock

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from payments.ledger.tests.factories import AudioStarTransactionFactory, CreditTransactionFactory
from stories.clients import GenerationResult, MetaResult, StoryMeta, Usage
from stories.tests.factories import ChildFactory, StoryFactory


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
def funded_user(user):
    """User holding 1000 credits and no audio stars."""
    CreditTransactionFactory(user=user, amount=1000)
    return user


@pytest.fixture
def star_user(funded_user):
    """Funded user who also holds 2 audio stars."""
    AudioStarTransactionFactory(user=funded_user, amount=2)
    return funded_user


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
# Story Fixtures
# =============================================================================


@pytest.fixture
def child(user):
    return ChildFactory(user=user, age=5)


@pytest.fixture
def queued_story(funded_user, child):
    return StoryFactory(user=funded_user, child=child)


@pytest.fixture
def ready_story(funded_user, child):
    return StoryFactory(user=funded_user, child=child, ready=True)


# =============================================================================
# External Service Fakes
# =============================================================================


@pytest.fixture
def story_meta():
    return StoryMeta(
        title="Barni és a holdfény",
        summary="Barni elkíséri a holdfényt haza.",
        setting="tópart",
        conflict="elveszett fény",
        tone="nyugodt",
    )


@pytest.fixture
def generator(story_meta):
    """TextGenerator fake returning a fixed story and metadata."""
    fake = MagicMock()
    fake.generate.return_value = GenerationResult(
        text="Egyszer volt egy kis medve, aki a tóparton lakott.",
        model="gpt-5-mini",
        usage=Usage(total_tokens=600, prompt_tokens=200, completion_tokens=400),
        request_id="chatcmpl-story",
        response_id="chatcmpl-story",
    )
    fake.extract_meta.return_value = MetaResult(
        meta=story_meta,
        model="gpt-5-mini",
        usage=Usage(total_tokens=120, prompt_tokens=100, completion_tokens=20),
        request_id="chatcmpl-meta",
        response_id="chatcmpl-meta",
    )
    return fake


@pytest.fixture
def storage():
    """ObjectStorage fake with predictable public URLs."""
    fake = MagicMock()
    fake.build_public_url.side_effect = lambda key: f"https://cdn.example.com/bucket/{key}"
    fake.presign.side_effect = lambda key, ttl=3600: f"https://s3.example.com/bucket/{key}?sig=1"
    return fake


@pytest.fixture
def synthesizer():
    fake = MagicMock()
    fake.convert.return_value = b"ID3-mp3-bytes"
    return fake
