"""
Story service layer.

Services:
    ChildService: Child profiles of a user
    StoryService: Story creation (reserve + enqueue), lookup, cover
        regeneration

Usage:
    from stories.services import StoryService

    story, job_id = StoryService.create_story(
        user, child_id, mood="nyugodt", length="short", theme="erdő"
    )
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

from core.services import BaseService
from payments.ledger import QUEUE_FAILED, STORY_RESERVE, ledger
from stories.exceptions import ChildNotFound, StoryNotFound, StoryNotReady
from stories.jobs import JobType, enqueue, enqueue_on_commit
from stories.models import Child, Story, StoryStatus
from stories.pricing import story_cost
from stories.prompts import resolve_theme

if TYPE_CHECKING:
    from authentication.models import User
    from stories.models import StoryQuerySet

ENQUEUE_FAILED_MESSAGE = "Failed to enqueue story job"


class ChildService(BaseService):
    @classmethod
    def list_children(cls, user: User):
        return Child.objects.filter(user=user)

    @classmethod
    def create_child(cls, user: User, **fields) -> Child:
        child = Child.objects.create(user=user, **fields)
        cls.get_logger().info("child.created", extra={"user_id": user.pk, "child_id": str(child.pk)})
        return child

    @classmethod
    def get_child(cls, user: User, child_id) -> Child:
        """
        Raises:
            ChildNotFound: Unknown id, or the child belongs to someone else
        """
        child = Child.objects.filter(pk=child_id, user=user).first()
        if child is None:
            raise ChildNotFound("Child not found", details={"child_id": str(child_id)})
        return child


class StoryService(BaseService):
    """
    Service for story operations.

    Methods:
        create_story: Reserve credits, create the story and queue its job
        list_stories: A child's stories, newest first
        get_story: One story of the user
        regenerate_cover: Re-render the cover of a ready story
    """

    @classmethod
    def create_story(
        cls,
        user: User,
        child_id,
        *,
        mood: str,
        length: str,
        theme: str,
        lesson: str = "",
    ) -> tuple[Story, str]:
        """
        Create a story and queue its generation.

        The story row and its credit reserve commit together. The job is
        published after commit; if publishing fails the story is marked
        failed and the reserve refunded under the queue_failed tag.

        Returns:
            (story, job_id)

        Raises:
            ChildNotFound: Unknown child for this user
            InsufficientBalance: Not enough credits; nothing is written
        """
        child = ChildService.get_child(user, child_id)
        cost = story_cost(length)

        with cls.atomic():
            story = Story.objects.create(
                user=user,
                child=child,
                status=StoryStatus.QUEUED,
                credit_cost=cost,
                theme=resolve_theme(theme),
                mood=mood,
                length=length,
                lesson=(lesson or "").strip(),
            )
            ledger.reserve(user, cost, tag=STORY_RESERVE, story=story)
            job_id = enqueue_on_commit(
                JobType.STORY_GENERATE,
                story.pk,
                user_id=user.pk,
                on_failure=partial(cls._compensate_enqueue, story.pk),
            )

        cls.get_logger().info(
            "story.created",
            extra={
                "story_id": str(story.pk),
                "user_id": user.pk,
                "child_id": str(child.pk),
                "credit_cost": cost,
                "job_id": job_id,
            },
        )
        return story, job_id

    @classmethod
    def _compensate_enqueue(cls, story_id, exc: Exception) -> None:
        story = Story.objects.select_related("user").filter(pk=story_id).first()
        if story is None:
            return
        with cls.atomic():
            story.set_status(StoryStatus.FAILED, error_message=ENQUEUE_FAILED_MESSAGE)
            ledger.refund_once(story.user, story, story.credit_cost, tag=QUEUE_FAILED)
        cls.get_logger().warning(
            "story.enqueue_compensated",
            extra={"story_id": str(story.pk), "refund": story.credit_cost},
        )

    @classmethod
    def list_stories(cls, user: User, child_id) -> StoryQuerySet:
        child = ChildService.get_child(user, child_id)
        return Story.objects.for_user(user).filter(child=child).order_by("-created_at")

    @classmethod
    def get_story(cls, user: User, story_id) -> Story:
        """
        Raises:
            StoryNotFound: Unknown id, or the story belongs to someone else
        """
        story = Story.objects.for_user(user).filter(pk=story_id).first()
        if story is None:
            raise StoryNotFound("Story not found", details={"story_id": str(story_id)})
        return story

    @classmethod
    def regenerate_cover(cls, user: User, story_id) -> str:
        """
        Queue a forced cover render for a ready story.

        Returns:
            job_id

        Raises:
            StoryNotFound: Unknown story for this user
            StoryNotReady: The story is not ready yet
        """
        story = cls.get_story(user, story_id)
        if story.status != StoryStatus.READY:
            raise StoryNotReady(
                "Only ready stories can get a new cover",
                details={"story_id": str(story.pk), "status": story.status},
            )
        job_id = enqueue(JobType.COVER_GENERATE, story.pk, user_id=user.pk, force=True)
        cls.get_logger().info(
            "story.cover_regeneration_queued",
            extra={"story_id": str(story.pk), "job_id": job_id},
        )
        return job_id
