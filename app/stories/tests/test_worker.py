"""
Tests for the job worker: retries, terminal failure and refunds.

Deliveries are simulated by feeding the republished messages back into
handle_message; nothing is sent to a broker.
"""

from unittest.mock import patch

import pytest

from notifications.models import Notification, NotificationKind
from payments.ledger import (
    AUDIO_RESERVE,
    STORY_FAILED,
    STORY_RESERVE,
    AudioStarTransaction,
    CreditTransaction,
    EntryType,
    LedgerKind,
    ledger,
)
from stories.clients.openai_client import QUOTA_MESSAGE
from stories.exceptions import GenerationError
from stories.jobs import JobMessage, JobType
from stories.models import AudioStatus, Story, StoryStatus
from stories.worker import (
    MAX_ATTEMPTS,
    handle_message,
    retry_countdown,
    run_media_job,
    run_story_job,
)


class Republisher:
    """Collects republished messages instead of sending them."""

    def __init__(self):
        self.calls = []

    def __call__(self, message, countdown=None):
        self.calls.append((message, countdown))


class QuotaError(Exception):
    status_code = 429


def deliver_until_settled(message, republish):
    """Run a job like the broker would: redeliver until it stops retrying."""
    deliveries = 0
    while True:
        deliveries += 1
        result = handle_message(message, republish=republish)
        if result["status"] != "retry_scheduled":
            return result, deliveries
        message = republish.calls[-1][0]


@pytest.fixture
def reserved_story(queued_story):
    ledger.reserve(queued_story.user, queued_story.credit_cost, tag=STORY_RESERVE, story=queued_story)
    return queued_story


@pytest.fixture
def fakes(generator, storage):
    with (
        patch("stories.pipeline.get_text_generator", return_value=generator),
        patch("stories.pipeline.get_storage", return_value=storage),
    ):
        yield generator, storage


class TestRetryCountdown:
    @pytest.mark.parametrize("attempts,countdown", [(0, 1), (1, 2), (2, 4), (3, 8), (6, 8)])
    def test_backoff_is_capped(self, attempts, countdown):
        assert retry_countdown(attempts) == countdown


@pytest.mark.django_db
class TestStoryJobs:
    def test_success_first_delivery(self, reserved_story, fakes):
        republish = Republisher()
        message = JobMessage.new(JobType.STORY_GENERATE, reserved_story.pk)

        result = handle_message(message, republish=republish)

        assert result == {"status": "ready", "job_id": message.job_id}
        assert republish.calls == []
        assert Story.objects.get(pk=reserved_story.pk).status == StoryStatus.READY

    def test_retry_then_success(self, reserved_story, fakes, generator):
        generator.generate.side_effect = [GenerationError("timeout"), generator.generate.return_value]
        republish = Republisher()
        message = JobMessage.new(JobType.STORY_GENERATE, reserved_story.pk)

        result, deliveries = deliver_until_settled(message, republish)

        assert result["status"] == "ready"
        assert deliveries == 2
        retried, countdown = republish.calls[0]
        assert retried.job_id == message.job_id
        assert retried.attempts == 1
        assert countdown == 1
        story = Story.objects.get(pk=reserved_story.pk)
        assert story.status == StoryStatus.READY
        assert not CreditTransaction.objects.filter(story=story, type=EntryType.REFUND).exists()
        assert ledger.balance(story.user) == 975

    def test_exhausted_retries_fail_and_refund_once(self, reserved_story, fakes, generator):
        generator.generate.side_effect = QuotaError("quota")
        republish = Republisher()
        message = JobMessage.new(JobType.STORY_GENERATE, reserved_story.pk)

        result, deliveries = deliver_until_settled(message, republish)

        assert result == {"status": "failed", "job_id": message.job_id}
        assert deliveries == MAX_ATTEMPTS + 1
        assert [countdown for _, countdown in republish.calls] == [1, 2]

        story = Story.objects.get(pk=reserved_story.pk)
        assert story.status == StoryStatus.FAILED
        assert story.error_message == QUOTA_MESSAGE
        refunds = CreditTransaction.objects.filter(story=story, type=EntryType.REFUND)
        assert refunds.count() == 1
        assert refunds.get().reason == STORY_FAILED.reason
        assert ledger.balance(story.user) == 1000
        assert Notification.objects.filter(user=story.user, type=NotificationKind.STORY_FAILED).count() == 1

    def test_redelivered_final_attempt_does_not_refund_twice(self, reserved_story, fakes, generator):
        generator.generate.side_effect = GenerationError("Story generation failed")
        final = JobMessage.new(JobType.STORY_GENERATE, reserved_story.pk)
        for _ in range(MAX_ATTEMPTS):
            final = final.next_attempt()

        handle_message(final, republish=Republisher())
        handle_message(final, republish=Republisher())

        refunds = CreditTransaction.objects.filter(story=reserved_story, type=EntryType.REFUND)
        assert refunds.count() == 1
        assert ledger.balance(reserved_story.user) == 1000

    def test_ready_story_is_skipped(self, ready_story, fakes, generator):
        message = JobMessage.new(JobType.STORY_GENERATE, ready_story.pk)

        result = handle_message(message, republish=Republisher())

        assert result["status"] == "skipped"
        generator.generate.assert_not_called()

    def test_missing_story(self, db, fakes):
        message = JobMessage.new(JobType.STORY_GENERATE, "00000000-0000-0000-0000-000000000000")

        assert handle_message(message, republish=Republisher())["status"] == "not_found"


@pytest.mark.django_db
class TestAudioJobs:
    def test_exhausted_retries_refund_audio_star(self, star_user, ready_story, storage, synthesizer):
        ready_story.set_audio(AudioStatus.QUEUED)
        synthesizer.convert.side_effect = GenerationError("ElevenLabs API error: 500 Error")
        republish = Republisher()
        message = JobMessage.new(JobType.AUDIO_GENERATE, ready_story.pk, user_id=star_user.pk)
        ledger.reserve(
            star_user,
            1,
            tag=AUDIO_RESERVE.for_job(message.job_id),
            story=ready_story,
            kind=LedgerKind.AUDIO_STARS,
        )

        with (
            patch("stories.audio.get_speech_synthesizer", return_value=synthesizer),
            patch("stories.audio.get_storage", return_value=storage),
        ):
            result, deliveries = deliver_until_settled(message, republish)

        assert result["status"] == "failed"
        assert deliveries == 3
        story = Story.objects.get(pk=ready_story.pk)
        assert story.audio_status == AudioStatus.FAILED
        assert story.audio_error == "ElevenLabs API error: 500 Error"
        assert ledger.balance(star_user, LedgerKind.AUDIO_STARS) == 2
        assert ledger.balance(star_user, LedgerKind.CREDITS) == 1000

    def test_story_of_another_user_is_rejected(self, ready_story, other_user, storage, synthesizer):
        ready_story.set_audio(AudioStatus.QUEUED)
        republish = Republisher()
        message = JobMessage.new(JobType.AUDIO_GENERATE, ready_story.pk, user_id=other_user.pk)

        with (
            patch("stories.audio.get_speech_synthesizer", return_value=synthesizer),
            patch("stories.audio.get_storage", return_value=storage),
        ):
            result, deliveries = deliver_until_settled(message, republish)

        assert result == {"status": "rejected", "job_id": message.job_id}
        assert deliveries == 1
        assert republish.calls == []
        synthesizer.convert.assert_not_called()
        assert Story.objects.get(pk=ready_story.pk).audio_status == AudioStatus.QUEUED
        assert not CreditTransaction.objects.filter(type=EntryType.REFUND).exists()
        assert not AudioStarTransaction.objects.filter(type=EntryType.REFUND).exists()


@pytest.mark.django_db
class TestRepublishFailure:
    def test_broker_down_fails_and_refunds(self, reserved_story, fakes, generator):
        generator.generate.side_effect = GenerationError("timeout")
        message = JobMessage.new(JobType.STORY_GENERATE, reserved_story.pk)

        def broker_down(message, countdown):
            raise ConnectionError("broker down")

        result = handle_message(message, republish=broker_down)

        assert result == {"status": "failed", "job_id": message.job_id}
        story = Story.objects.get(pk=reserved_story.pk)
        assert story.status == StoryStatus.FAILED
        refunds = CreditTransaction.objects.filter(story=story, type=EntryType.REFUND)
        assert refunds.count() == 1
        assert refunds.get().reason == STORY_FAILED.reason
        assert ledger.balance(story.user) == 1000

    def test_broker_down_refunds_audio_job(self, funded_user, ready_story, storage, synthesizer):
        synthesizer.convert.side_effect = GenerationError("ElevenLabs API error: 500 Error")
        message = JobMessage.new(JobType.AUDIO_GENERATE, ready_story.pk, user_id=funded_user.pk)
        ledger.reserve(funded_user, 300, tag=AUDIO_RESERVE.for_job(message.job_id), story=ready_story)

        with (
            patch("stories.audio.get_speech_synthesizer", return_value=synthesizer),
            patch("stories.audio.get_storage", return_value=storage),
            patch("stories.worker.publish", side_effect=ConnectionError("broker down")),
        ):
            result = handle_message(message)

        assert result["status"] == "failed"
        assert Story.objects.get(pk=ready_story.pk).audio_status == AudioStatus.FAILED
        assert ledger.balance(funded_user) == 1000


@pytest.mark.django_db
class TestCoverJobs:
    def test_final_failure_is_only_logged(self, ready_story, storage):
        storage.upload_buffer.side_effect = GenerationError("Failed to upload")
        message = JobMessage.new(JobType.COVER_GENERATE, ready_story.pk)

        with patch("stories.pipeline.get_storage", return_value=storage):
            result, deliveries = deliver_until_settled(message, Republisher())

        assert result["status"] == "failed"
        assert deliveries == 3
        story = Story.objects.get(pk=ready_story.pk)
        assert story.status == StoryStatus.READY
        assert story.cover_url == ""
        assert not CreditTransaction.objects.filter(story=story, type=EntryType.REFUND).exists()


@pytest.mark.django_db
class TestTaskEntryPoints:
    def test_invalid_payload_is_rejected(self):
        assert run_story_job({"job_type": "story.generate"}) == {"status": "rejected"}
        assert run_media_job("not a dict") == {"status": "rejected"}
        assert run_media_job({"job_type": "unknown", "subject_id": "x"}) == {"status": "rejected"}

    def test_story_job_task(self, reserved_story, fakes):
        message = JobMessage.new(JobType.STORY_GENERATE, reserved_story.pk)

        result = run_story_job(message.to_payload())

        assert result["status"] == "ready"

    def test_failure_republishes_through_broker(self, reserved_story, fakes, generator):
        generator.generate.side_effect = GenerationError("timeout")
        message = JobMessage.new(JobType.STORY_GENERATE, reserved_story.pk)

        with patch("stories.worker.run_story_job.apply_async") as mock_apply:
            result = run_story_job(message.to_payload())

        assert result["status"] == "retry_scheduled"
        kwargs = mock_apply.call_args.kwargs
        assert kwargs["queue"] == "story-generation"
        assert kwargs["countdown"] == 1
        assert kwargs["args"][0]["attempts"] == 1
        assert kwargs["args"][0]["job_id"] == message.job_id
