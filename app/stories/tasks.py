"""
Periodic story maintenance tasks (scheduled via celery-beat).

- enqueue_missing_covers: Queue cover jobs for ready stories without covers
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.db.models import Q
from django.utils import timezone

from stories.jobs import JobType, enqueue
from stories.models import Story, StoryStatus

logger = logging.getLogger(__name__)

COVER_MIN_AGE_MINUTES = 10
COVER_BATCH_SIZE = 50


@shared_task
def enqueue_missing_covers() -> dict:
    """
    Queue cover jobs for ready stories that still miss a cover.

    Only stories that became ready a while ago are picked, so the cover
    job queued by the pipeline itself gets to run first.

    Returns:
        Dict with count of cover jobs queued
    """
    threshold = timezone.now() - timedelta(minutes=COVER_MIN_AGE_MINUTES)
    story_ids = (
        Story.objects.filter(status=StoryStatus.READY, ready_at__lt=threshold)
        .exclude(title="")
        .filter(Q(cover_url="") | Q(cover_square_url=""))
        .order_by("ready_at")
        .values_list("pk", flat=True)[:COVER_BATCH_SIZE]
    )

    queued_count = 0
    for story_id in story_ids:
        enqueue(JobType.COVER_GENERATE, story_id)
        queued_count += 1

    logger.info("cover.backfill_sweep", extra={"queued_count": queued_count})
    return {"queued_count": queued_count}
