"""
Story job worker.

Celery consumes job payloads (see stories.jobs) from two queues:
- story-generation: run_story_job
- story-audio: run_media_job (narration and covers)

Retry contract, per message:
1. Run the stage for the job type; success acks the message
2. On error, if attempts < MAX_ATTEMPTS, republish the same job with
   attempts + 1 after min(2 ** attempts, 8) seconds and ack the original
3. Otherwise, or if the republish itself fails, fail the subject for
   good: mark it failed with a readable message and refund its
   reservation once

A job whose story is missing or belongs to another user is rejected on
the first delivery, without retries or refunds.

A job is therefore delivered at most MAX_ATTEMPTS + 1 times. Cover jobs
follow the same retries but a final failure is only logged.

Usage:
    celery -A config worker -Q story-generation,story-audio -c 2
"""

from __future__ import annotations

import logging
from typing import Callable

from celery import shared_task
from django.db import transaction

from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.ledger import STORY_FAILED, ledger
from stories.audio import fail_audio, process_audio
from stories.clients import map_generation_error
from stories.exceptions import StoryNotFound
from stories.jobs import JobMessage, JobType, publish
from stories.models import Story, StoryStatus
from stories.pipeline import process_cover, process_story

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2
MAX_RETRY_COUNTDOWN = 8

Republish = Callable[[JobMessage, float], None]


def retry_countdown(attempts: int) -> int:
    """Seconds before redelivery of a job that already failed `attempts` times."""
    return min(2**attempts, MAX_RETRY_COUNTDOWN)


def run_stage(message: JobMessage) -> str:
    match message.job_type:
        case JobType.STORY_GENERATE:
            return process_story(message.subject_id, force=message.force)
        case JobType.AUDIO_GENERATE:
            return process_audio(
                message.subject_id, message.user_id, force=message.force, job_id=message.job_id
            )
        case JobType.COVER_GENERATE:
            return process_cover(message.subject_id, force=message.force)


def fail_terminally(message: JobMessage, exc: Exception) -> None:
    """Mark the subject failed and refund once; cover failures are only logged."""
    log_context = {
        "job_id": message.job_id,
        "job_type": message.job_type.value,
        "subject_id": message.subject_id,
        "attempts": message.attempts,
    }

    if message.job_type is JobType.COVER_GENERATE:
        logger.error("worker.cover_failed", extra=log_context, exc_info=exc)
        return

    story = Story.objects.select_related("user").filter(pk=message.subject_id).first()
    if story is None:
        logger.error("worker.subject_missing", extra=log_context, exc_info=exc)
        return

    if message.job_type is JobType.AUDIO_GENERATE:
        fail_audio(
            story,
            getattr(exc, "message", None) or str(exc) or "Audio generation failed",
            message.job_id,
        )
        logger.error("worker.audio_failed", extra=log_context, exc_info=exc)
        return

    error_message = map_generation_error(exc)
    with transaction.atomic():
        story.set_status(StoryStatus.FAILED, error_message=error_message)
        ledger.refund_once(story.user, story, story.credit_cost, tag=STORY_FAILED)

    logger.error("worker.story_failed", extra={**log_context, "error": error_message}, exc_info=exc)
    NotificationService.notify(
        story.user,
        type=NotificationKind.STORY_FAILED,
        title="Nem sikerült elkészíteni a mesét",
        message=error_message,
        icon="alert",
        link=f"/stories/{story.pk}",
    )


def handle_message(message: JobMessage, republish: Republish | None = None) -> dict:
    """
    Run one delivery of a job.

    Never raises for stage errors: they become a republish, a rejection
    or a terminal failure, so the broker always sees an ack.
    """
    log_context = {
        "job_id": message.job_id,
        "job_type": message.job_type.value,
        "subject_id": message.subject_id,
        "attempts": message.attempts,
    }

    try:
        result = run_stage(message)
    except StoryNotFound:
        logger.error("worker.subject_rejected", extra=log_context)
        return {"status": "rejected", "job_id": message.job_id}
    except Exception as e:
        if message.attempts < MAX_ATTEMPTS:
            countdown = retry_countdown(message.attempts)
            try:
                (republish or publish)(message.next_attempt(), countdown)
            except Exception:
                logger.exception("worker.retry_publish_failed", extra=log_context)
                fail_terminally(message, e)
                return {"status": "failed", "job_id": message.job_id}
            logger.warning(
                "worker.retry_scheduled",
                extra={**log_context, "countdown": countdown, "error": str(e)},
            )
            return {"status": "retry_scheduled", "job_id": message.job_id, "attempts": message.attempts + 1}

        fail_terminally(message, e)
        return {"status": "failed", "job_id": message.job_id}

    logger.info("worker.job_completed", extra={**log_context, "result": result})
    return {"status": result, "job_id": message.job_id}


def _consume(payload) -> dict:
    try:
        message = JobMessage.from_payload(payload)
    except ValueError:
        logger.error("worker.invalid_payload", extra={"payload": repr(payload)[:500]}, exc_info=True)
        return {"status": "rejected"}
    return handle_message(message)


@shared_task(acks_late=True)
def run_story_job(payload: dict) -> dict:
    """Consume a story.generate job."""
    return _consume(payload)


@shared_task(acks_late=True)
def run_media_job(payload: dict) -> dict:
    """Consume an audio.generate or cover.generate job."""
    return _consume(payload)
