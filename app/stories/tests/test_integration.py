"""
End-to-end story flow: API request to narrated story.

Published jobs are captured instead of sent to a broker and then consumed
through the Celery task entry points, so the flow crosses the same seams
a worker does.
"""

from unittest.mock import patch

import pytest

from notifications.models import Notification, NotificationKind
from payments.ledger import CreditTransaction, EntryType, LedgerKind, ledger
from stories.jobs import JobType
from stories.models import AudioStatus, Story, StoryStatus
from stories.worker import run_media_job, run_story_job

BASE_URL = "/api/v1/stories/"


class Broker:
    """Records published payloads per task."""

    def __init__(self):
        self.published = []

    def publish(self, message, countdown=None):
        self.published.append(message)

    def drain(self, job_type):
        messages = [m for m in self.published if m.job_type is job_type]
        self.published = [m for m in self.published if m.job_type is not job_type]
        return messages


@pytest.fixture
def broker():
    broker = Broker()
    with patch("stories.jobs.publish", side_effect=broker.publish), patch(
        "stories.worker.publish", side_effect=broker.publish
    ):
        yield broker


@pytest.fixture
def providers(generator, storage, synthesizer, tmp_path, settings):
    settings.COVER_ASSETS_DIR = tmp_path
    with (
        patch("stories.pipeline.get_text_generator", return_value=generator),
        patch("stories.pipeline.get_storage", return_value=storage),
        patch("stories.audio.get_speech_synthesizer", return_value=synthesizer),
        patch("stories.audio.get_storage", return_value=storage),
        patch("stories.serializers.get_storage", return_value=storage),
    ):
        yield


@pytest.mark.django_db
class TestStoryFlow:
    def test_request_generate_cover_and_narrate(
        self,
        authenticated_client,
        star_user,
        child,
        broker,
        providers,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = authenticated_client.post(
                f"{BASE_URL}children/{child.pk}/stories/",
                {"mood": "nyugodt", "length": "short", "theme": "tópart"},
                format="json",
            )
        assert response.status_code == 201
        story_id = response.json()["id"]
        assert ledger.balance(star_user) == 975

        (story_job,) = broker.drain(JobType.STORY_GENERATE)
        with django_capture_on_commit_callbacks(execute=True):
            assert run_story_job(story_job.to_payload())["status"] == "ready"

        (cover_job,) = broker.drain(JobType.COVER_GENERATE)
        assert run_media_job(cover_job.to_payload())["status"] == "ready"

        story = Story.objects.get(pk=story_id)
        assert story.status == StoryStatus.READY
        assert story.cover_url and story.cover_square_url

        with django_capture_on_commit_callbacks(execute=True):
            response = authenticated_client.post(f"{BASE_URL}{story_id}/audio/", {}, format="json")
        assert response.status_code == 202
        assert response.json()["payment_kind"] == LedgerKind.AUDIO_STARS

        (audio_job,) = broker.drain(JobType.AUDIO_GENERATE)
        assert run_media_job(audio_job.to_payload())["status"] == "ready"

        detail = authenticated_client.get(f"{BASE_URL}{story_id}/").json()
        assert detail["status"] == StoryStatus.READY
        assert detail["audio_status"] == AudioStatus.READY
        assert detail["audio_url"].endswith("/audio.mp3?sig=1")

        assert ledger.balance(star_user, LedgerKind.CREDITS) == 975
        assert ledger.balance(star_user, LedgerKind.AUDIO_STARS) == 1
        assert not CreditTransaction.objects.filter(story_id=story_id, type=EntryType.REFUND).exists()
        kinds = set(Notification.objects.filter(user=star_user).values_list("type", flat=True))
        assert kinds == {NotificationKind.STORY_READY, NotificationKind.AUDIO_READY}

    def test_failed_generation_refunds_once(
        self,
        authenticated_client,
        funded_user,
        child,
        broker,
        providers,
        generator,
        django_capture_on_commit_callbacks,
    ):
        generator.generate.side_effect = RuntimeError("upstream timeout")

        with django_capture_on_commit_callbacks(execute=True):
            response = authenticated_client.post(
                f"{BASE_URL}children/{child.pk}/stories/",
                {"mood": "vidam", "length": "medium", "theme": "erdő"},
                format="json",
            )
        story_id = response.json()["id"]

        deliveries = 0
        while jobs := broker.drain(JobType.STORY_GENERATE):
            for job in jobs:
                deliveries += 1
                run_story_job(job.to_payload())

        assert deliveries == 3
        story = Story.objects.get(pk=story_id)
        assert story.status == StoryStatus.FAILED
        assert story.error_message == "upstream timeout"
        assert ledger.balance(funded_user) == 1000
        assert CreditTransaction.objects.filter(story=story, type=EntryType.REFUND).count() == 1
