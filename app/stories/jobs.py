"""
Job messages and publishing.

A job is a small JSON payload published to a Celery queue and consumed by
stories.worker:

    {"job_id": "...", "job_type": "story.generate", "subject_id": "<story id>",
     "user_id": 1, "force": false, "attempts": 0}

Queues:
    story-generation: story.generate
    story-audio: audio.generate, cover.generate (cover at priority 5)

The attempt counter travels in the payload, so a republished message
carries its own retry count regardless of broker.

Usage:
    from stories.jobs import JobType, enqueue

    job_id = enqueue(JobType.STORY_GENERATE, story.id)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable

from django.db import transaction

logger = logging.getLogger(__name__)

STORY_QUEUE = "story-generation"
AUDIO_QUEUE = "story-audio"
COVER_PRIORITY = 5


class JobType(str, Enum):
    STORY_GENERATE = "story.generate"
    AUDIO_GENERATE = "audio.generate"
    COVER_GENERATE = "cover.generate"


@dataclass(frozen=True)
class JobMessage:
    """
    One unit of work.

    Attributes:
        job_id: Identifier returned to the client, kept across retries
        job_type: What to run
        subject_id: Story primary key
        user_id: Requesting user, checked by the audio stage
        force: Regenerate even if the artifact exists
        attempts: Deliveries that already failed
    """

    job_id: str
    job_type: JobType
    subject_id: str
    user_id: int | None = None
    force: bool = False
    attempts: int = 0

    @classmethod
    def new(
        cls,
        job_type: JobType,
        subject_id,
        *,
        user_id=None,
        force: bool = False,
        job_id: str | None = None,
    ) -> JobMessage:
        return cls(
            job_id=job_id or str(uuid.uuid4()),
            job_type=JobType(job_type),
            subject_id=str(subject_id),
            user_id=user_id,
            force=force,
        )

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["job_type"] = self.job_type.value
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> JobMessage:
        """
        Parse a consumed payload.

        Raises:
            ValueError: Not a dict, unknown job type, or missing subject
        """
        if not isinstance(payload, dict):
            raise ValueError("Job payload must be an object")
        if not payload.get("subject_id"):
            raise ValueError("Job payload has no subject_id")

        attempts = payload.get("attempts") or 0
        if not isinstance(attempts, int) or attempts < 0:
            raise ValueError(f"Invalid attempts value: {attempts!r}")

        return cls(
            job_id=str(payload.get("job_id") or uuid.uuid4()),
            job_type=JobType(payload.get("job_type")),
            subject_id=str(payload["subject_id"]),
            user_id=payload.get("user_id"),
            force=bool(payload.get("force", False)),
            attempts=attempts,
        )

    def next_attempt(self) -> JobMessage:
        return replace(self, attempts=self.attempts + 1)


def _route(job_type: JobType):
    """Celery task and publish options for a job type."""
    from stories.worker import run_media_job, run_story_job

    if job_type is JobType.STORY_GENERATE:
        return run_story_job, {"queue": STORY_QUEUE}
    if job_type is JobType.COVER_GENERATE:
        return run_media_job, {"queue": AUDIO_QUEUE, "priority": COVER_PRIORITY}
    return run_media_job, {"queue": AUDIO_QUEUE}


def publish(message: JobMessage, countdown: float | None = None) -> None:
    """
    Publish a message to its queue.

    Raises:
        Exception: Broker errors propagate (kombu.exceptions.OperationalError)
    """
    task, options = _route(message.job_type)
    if countdown:
        options["countdown"] = countdown
    task.apply_async(args=[message.to_payload()], **options)
    logger.info(
        "job.published",
        extra={
            "job_id": message.job_id,
            "job_type": message.job_type.value,
            "subject_id": message.subject_id,
            "attempts": message.attempts,
            "countdown": countdown,
        },
    )


def enqueue(job_type: JobType, subject_id, *, user_id=None, force: bool = False) -> str:
    """Publish a new job now and return its job_id."""
    message = JobMessage.new(job_type, subject_id, user_id=user_id, force=force)
    publish(message)
    return message.job_id


def enqueue_on_commit(
    job_type: JobType,
    subject_id,
    *,
    user_id=None,
    force: bool = False,
    job_id: str | None = None,
    on_failure: Callable[[Exception], None],
) -> str:
    """
    Publish a new job once the current transaction commits.

    Rows written in the transaction (the story, its reserve) are visible to
    the worker by the time it runs. If the broker rejects the publish,
    on_failure runs with the error, which compensates the reservation.
    Pass job_id when the reservation was already tagged with it.

    Returns:
        The job_id the message will carry
    """
    message = JobMessage.new(job_type, subject_id, user_id=user_id, force=force, job_id=job_id)

    def _publish():
        try:
            publish(message)
        except Exception as e:
            logger.exception(
                "job.enqueue_failed",
                extra={
                    "job_id": message.job_id,
                    "job_type": message.job_type.value,
                    "subject_id": message.subject_id,
                },
            )
            on_failure(e)

    transaction.on_commit(_publish)
    return message.job_id
