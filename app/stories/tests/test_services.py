"""
Tests for the child and story services.
"""

from unittest.mock import patch

import pytest

from payments.ledger import (
    QUEUE_FAILED,
    STORY_RESERVE,
    CreditTransaction,
    EntryType,
    InsufficientBalance,
    ledger,
)
from stories.exceptions import ChildNotFound, StoryNotFound, StoryNotReady
from stories.jobs import JobType
from stories.models import Story, StoryStatus
from stories.prompts import SURPRISE_THEME, THEMES
from stories.services import ENQUEUE_FAILED_MESSAGE, ChildService, StoryService
from stories.tests.factories import ChildFactory, StoryFactory


@pytest.mark.django_db
class TestChildService:
    def test_create_and_list(self, user, other_user):
        child = ChildService.create_child(user, name="Panni", age=4)
        ChildFactory(user=other_user)

        assert list(ChildService.list_children(user)) == [child]

    def test_get_child_of_other_user(self, other_user, child):
        with pytest.raises(ChildNotFound):
            ChildService.get_child(other_user, child.pk)


@pytest.mark.django_db
class TestCreateStory:
    def test_reserves_and_queues_after_commit(self, funded_user, child, django_capture_on_commit_callbacks):
        with patch("stories.jobs.publish") as mock_publish:
            with django_capture_on_commit_callbacks(execute=True):
                story, job_id = StoryService.create_story(
                    funded_user, child.pk, mood="vidam", length="medium", theme="tenger"
                )

        assert story.status == StoryStatus.QUEUED
        assert story.credit_cost == 30
        assert ledger.balance(funded_user) == 970
        reserve = CreditTransaction.objects.get(story=story, type=EntryType.RESERVE)
        assert reserve.amount == -30
        assert reserve.reason == STORY_RESERVE.reason

        message = mock_publish.call_args.args[0]
        assert message.job_id == job_id
        assert message.job_type is JobType.STORY_GENERATE
        assert message.subject_id == str(story.pk)

    def test_surprise_theme_is_resolved(self, funded_user, child):
        with patch("stories.jobs.publish"):
            story, _ = StoryService.create_story(
                funded_user, child.pk, mood="nyugodt", length="short", theme=SURPRISE_THEME
            )

        assert story.theme in THEMES

    def test_insufficient_credits_writes_nothing(self, user, child):
        with patch("stories.jobs.publish") as mock_publish:
            with pytest.raises(InsufficientBalance) as exc_info:
                StoryService.create_story(user, child.pk, mood="nyugodt", length="long", theme="erdő")

        assert exc_info.value.required == 35
        assert exc_info.value.available == 0
        assert not Story.objects.exists()
        mock_publish.assert_not_called()

    def test_unknown_child(self, funded_user, other_user):
        foreign_child = ChildFactory(user=other_user)

        with pytest.raises(ChildNotFound):
            StoryService.create_story(funded_user, foreign_child.pk, mood="nyugodt", length="short", theme="erdő")

    def test_enqueue_failure_fails_story_and_refunds(self, funded_user, child, django_capture_on_commit_callbacks):
        with patch("stories.jobs.publish", side_effect=ConnectionError("broker down")):
            with django_capture_on_commit_callbacks(execute=True):
                story, _ = StoryService.create_story(
                    funded_user, child.pk, mood="nyugodt", length="short", theme="erdő"
                )

        story.refresh_from_db()
        assert story.status == StoryStatus.FAILED
        assert story.error_message == ENQUEUE_FAILED_MESSAGE
        refund = CreditTransaction.objects.get(story=story, type=EntryType.REFUND)
        assert refund.amount == 25
        assert refund.reason == QUEUE_FAILED.reason
        assert ledger.balance(funded_user) == 1000


@pytest.mark.django_db
class TestStoryLookup:
    def test_list_stories_of_child(self, user, child):
        first = StoryFactory(user=user, child=child)
        second = StoryFactory(user=user, child=child)
        StoryFactory(user=user)

        stories = list(StoryService.list_stories(user, child.pk))

        assert set(stories) == {first, second}

    def test_get_story_of_other_user(self, other_user, queued_story):
        with pytest.raises(StoryNotFound):
            StoryService.get_story(other_user, queued_story.pk)


@pytest.mark.django_db
class TestRegenerateCover:
    def test_queues_forced_cover_job(self, ready_story):
        with patch("stories.services.enqueue", return_value="job-9") as mock_enqueue:
            job_id = StoryService.regenerate_cover(ready_story.user, ready_story.pk)

        assert job_id == "job-9"
        mock_enqueue.assert_called_once_with(
            JobType.COVER_GENERATE, ready_story.pk, user_id=ready_story.user_id, force=True
        )

    def test_story_not_ready(self, queued_story):
        with pytest.raises(StoryNotReady):
            StoryService.regenerate_cover(queued_story.user, queued_story.pk)
