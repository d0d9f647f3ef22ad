"""Integration tests for the stories API."""

from unittest.mock import patch

import pytest
from django.core.exceptions import ImproperlyConfigured

from payments.ledger import LedgerKind, ledger
from stories.models import AudioStatus, Child, Story, StoryStatus
from stories.tests.factories import ChildFactory, StoryFactory

BASE_URL = "/api/v1/stories/"


@pytest.fixture(autouse=True)
def presigning_storage(storage):
    with patch("stories.serializers.get_storage", return_value=storage):
        yield storage


@pytest.fixture
def no_broker():
    with (
        patch("stories.jobs.publish") as mock_publish,
        patch("stories.services.enqueue", return_value="cover-job") as mock_enqueue,
    ):
        yield mock_publish, mock_enqueue


@pytest.mark.django_db
class TestAuthentication:
    @pytest.mark.parametrize("path", ["children/", "00000000-0000-0000-0000-000000000000/"])
    def test_requires_authentication(self, api_client, path):
        assert api_client.get(f"{BASE_URL}{path}").status_code == 401


@pytest.mark.django_db
class TestChildren:
    def test_list_own_children(self, authenticated_client, child, other_user):
        ChildFactory(user=other_user)

        response = authenticated_client.get(f"{BASE_URL}children/")

        assert response.status_code == 200
        assert [row["id"] for row in response.json()] == [str(child.pk)]

    def test_create_child(self, authenticated_client, user):
        response = authenticated_client.post(
            f"{BASE_URL}children/",
            {"name": "Panni", "age": 4, "mood": "vidam"},
            format="json",
        )

        assert response.status_code == 201
        assert Child.objects.get(pk=response.json()["id"]).user == user

    def test_invalid_age(self, authenticated_client):
        response = authenticated_client.post(f"{BASE_URL}children/", {"name": "Panni", "age": 40}, format="json")

        assert response.status_code == 400


@pytest.mark.django_db
class TestChildStories:
    def test_create_story(self, authenticated_client, funded_user, child, no_broker):
        response = authenticated_client.post(
            f"{BASE_URL}children/{child.pk}/stories/",
            {"mood": "kalandos", "length": "long", "theme": "vulkán"},
            format="json",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == StoryStatus.QUEUED
        assert body["credit_cost"] == 35
        assert body["job_id"]
        assert Story.objects.get(pk=body["id"]).theme == "vulkán"
        assert ledger.balance(funded_user) == 965

    def test_create_story_insufficient_credits(self, authenticated_client, child, no_broker):
        response = authenticated_client.post(
            f"{BASE_URL}children/{child.pk}/stories/",
            {"mood": "nyugodt", "length": "short", "theme": "erdő"},
            format="json",
        )

        assert response.status_code == 402
        body = response.json()
        assert body["error_code"] == "INSUFFICIENT_BALANCE"
        assert body["details"]["required"] == 25

    def test_create_story_invalid_mood(self, authenticated_client, funded_user, child, no_broker):
        response = authenticated_client.post(
            f"{BASE_URL}children/{child.pk}/stories/",
            {"mood": "szomorú", "length": "short", "theme": "erdő"},
            format="json",
        )

        assert response.status_code == 400
        assert not Story.objects.exists()

    def test_other_users_child(self, authenticated_client, other_user, no_broker):
        foreign_child = ChildFactory(user=other_user)

        response = authenticated_client.get(f"{BASE_URL}children/{foreign_child.pk}/stories/")

        assert response.status_code == 404
        assert response.json()["error_code"] == "CHILD_NOT_FOUND"

    def test_paginated_list_with_presigned_covers(self, authenticated_client, user, child):
        for _ in range(3):
            StoryFactory(user=user, child=child, ready=True, cover_url="https://cdn/cover.webp")

        response = authenticated_client.get(f"{BASE_URL}children/{child.pk}/stories/?limit=2")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 3
        assert len(body["results"]) == 2
        assert body["results"][0]["cover_url"].endswith("/cover.webp?sig=1")
        assert body["results"][0]["cover_square_url"] == ""


@pytest.mark.django_db
class TestStoryDetail:
    def test_detail(self, authenticated_client, ready_story):
        response = authenticated_client.get(f"{BASE_URL}{ready_story.pk}/")

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == ready_story.title
        assert body["text"] == ready_story.text
        assert body["audio_status"] == AudioStatus.NONE

    def test_ready_audio_is_presigned(self, authenticated_client, ready_story):
        ready_story.set_audio(AudioStatus.READY, audio_url="https://cdn/audio.mp3")

        response = authenticated_client.get(f"{BASE_URL}{ready_story.pk}/")

        assert response.json()["audio_url"].endswith("/audio.mp3?sig=1")

    def test_presign_failure_falls_back_to_stored_url(self, authenticated_client, ready_story, presigning_storage):
        presigning_storage.presign.side_effect = ImproperlyConfigured("no bucket")
        ready_story.set_audio(AudioStatus.READY, audio_url="https://cdn/audio.mp3")

        response = authenticated_client.get(f"{BASE_URL}{ready_story.pk}/")

        assert response.json()["audio_url"] == "https://cdn/audio.mp3"

    def test_other_users_story(self, api_client, other_user, ready_story):
        api_client.force_authenticate(other_user)

        response = api_client.get(f"{BASE_URL}{ready_story.pk}/")

        assert response.status_code == 404
        assert response.json()["error_code"] == "STORY_NOT_FOUND"


@pytest.mark.django_db
class TestStoryAudio:
    def test_queue_with_audio_star(self, authenticated_client, star_user, ready_story, no_broker):
        response = authenticated_client.post(f"{BASE_URL}{ready_story.pk}/audio/", {}, format="json")

        assert response.status_code == 202
        body = response.json()
        assert body["audio_status"] == AudioStatus.QUEUED
        assert body["payment_kind"] == LedgerKind.AUDIO_STARS
        assert body["amount"] == 1
        assert body["job_id"]

    def test_already_ready_returns_state(self, authenticated_client, star_user, ready_story, no_broker):
        ready_story.set_audio(AudioStatus.READY, audio_url="https://cdn/audio.mp3")

        response = authenticated_client.post(f"{BASE_URL}{ready_story.pk}/audio/", {}, format="json")

        assert response.status_code == 200
        assert response.json()["audio_status"] == AudioStatus.READY
        assert ledger.balance(star_user, LedgerKind.AUDIO_STARS) == 2

    def test_not_ready_story(self, authenticated_client, queued_story, no_broker):
        response = authenticated_client.post(f"{BASE_URL}{queued_story.pk}/audio/", {}, format="json")

        assert response.status_code == 400
        assert response.json()["error_code"] == "STORY_NOT_READY"

    def test_invalid_payment_method(self, authenticated_client, ready_story, no_broker):
        response = authenticated_client.post(
            f"{BASE_URL}{ready_story.pk}/audio/",
            {"payment_method": "paypal"},
            format="json",
        )

        assert response.status_code == 400

    def test_insufficient_stars(self, authenticated_client, ready_story, no_broker):
        response = authenticated_client.post(
            f"{BASE_URL}{ready_story.pk}/audio/",
            {"payment_method": "audioStar"},
            format="json",
        )

        assert response.status_code == 402
        assert response.json()["details"]["kind"] == LedgerKind.AUDIO_STARS

    def test_cost(self, authenticated_client, ready_story):
        response = authenticated_client.get(f"{BASE_URL}{ready_story.pk}/audio/cost/")

        assert response.status_code == 200
        assert response.json() == {
            "cost": 300,
            "audio_star_cost": 1,
            "has_audio": False,
            "audio_status": AudioStatus.NONE,
        }


@pytest.mark.django_db
class TestRegenerate:
    def test_queues_cover(self, authenticated_client, ready_story, no_broker):
        response = authenticated_client.post(f"{BASE_URL}{ready_story.pk}/regenerate/")

        assert response.status_code == 202
        assert response.json() == {"job_id": "cover-job", "story_id": str(ready_story.pk)}

    def test_story_not_ready(self, authenticated_client, queued_story, no_broker):
        response = authenticated_client.post(f"{BASE_URL}{queued_story.pk}/regenerate/")

        assert response.status_code == 400
