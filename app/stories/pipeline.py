"""
Story generation pipeline.

process_story runs one delivery of a story.generate job:

    queued -> generating_text -> extracting_meta -> generating_cover
           -> uploading_cover -> ready

Each status is saved before the external call it names, so a crash leaves
the stage visible. Exceptions propagate to stories.worker, which decides
between retry and terminal failure; this module never touches the ledger.

A redelivered job restarts from generating_text. Stories already ready or
failed are skipped unless force is set.

process_cover runs a cover.generate job: it renders the wide and square
covers and stores their public URLs on the story.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from notifications.models import NotificationKind
from notifications.services import NotificationService
from stories.clients import (
    IMMUTABLE_CACHE_CONTROL,
    ObjectStorage,
    TextGenerator,
    get_storage,
    get_text_generator,
)
from stories.covers import render_cover, render_preview
from stories.models import OperationType, Story, StoryStatus, StoryTransaction
from stories.prompts import build_story_prompt

logger = logging.getLogger(__name__)

RECENT_FINGERPRINT_LIMIT = 5
WEBP_CONTENT_TYPE = "image/webp"


def preview_key(story_id) -> str:
    return f"stories/{story_id}/preview.webp"


def cover_key(story_id) -> str:
    return f"stories/{story_id}/cover.webp"


def cover_square_key(story_id) -> str:
    return f"stories/{story_id}/cover_square.webp"


def _record_usage(story: Story, operation_type: str, result) -> StoryTransaction:
    usage = result.usage
    return StoryTransaction.objects.create(
        story=story,
        operation_type=operation_type,
        model=result.model,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        total_tokens=usage.total_tokens,
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
        request_id=result.request_id,
        response_id=result.response_id,
    )


def _store_preview(story: Story, storage: ObjectStorage) -> str:
    """Render and upload the preview card; "" when either step fails."""
    try:
        story.set_status(StoryStatus.GENERATING_COVER)
        image = render_preview(story.title, story.theme, story.mood, story.length)

        story.set_status(StoryStatus.UPLOADING_COVER)
        key = preview_key(story.pk)
        storage.upload_buffer(key, image, WEBP_CONTENT_TYPE)
        return storage.build_public_url(key)
    except Exception:
        logger.warning(
            "story.preview_failed",
            extra={"story_id": str(story.pk)},
            exc_info=True,
        )
        return ""


def process_story(
    story_id,
    force: bool = False,
    *,
    generator: TextGenerator | None = None,
    storage: ObjectStorage | None = None,
) -> str:
    """
    Generate text, metadata and preview for a story.

    Returns:
        "ready", "skipped" or "not_found"

    Raises:
        Exception: Any provider or database error, for the worker to handle
    """
    story = Story.objects.select_related("child", "user").filter(pk=story_id).first()
    if story is None:
        logger.error("story.not_found", extra={"story_id": str(story_id)})
        return "not_found"

    log_context = {"story_id": str(story.pk), "user_id": story.user_id, "force": force}
    if story.is_terminal and not force:
        logger.info("story.already_terminal", extra={**log_context, "status": story.status})
        return "skipped"

    generator = generator or get_text_generator()
    storage = storage or get_storage()

    story.set_status(StoryStatus.GENERATING_TEXT)
    prompt = build_story_prompt(
        child_age=story.child.age,
        mood=story.mood,
        length=story.length,
        theme=story.theme,
        lesson=story.lesson or None,
        avoid_pairs=Story.objects.exclude(pk=story.pk).recent_fingerprints(
            story.child, RECENT_FINGERPRINT_LIMIT
        ),
    )
    text_result = generator.generate(prompt)
    _record_usage(story, OperationType.STORY_GENERATION, text_result)

    story.set_status(StoryStatus.EXTRACTING_META)
    meta_result = generator.extract_meta(text_result.text)
    _record_usage(story, OperationType.META_EXTRACTION, meta_result)

    meta = meta_result.meta
    story.title = meta.title
    story.summary = meta.summary
    story.text = text_result.text
    story.setting = meta.setting
    story.conflict = meta.conflict
    story.tone = meta.tone
    story.model = text_result.model
    story.save(
        update_fields=[
            "title",
            "summary",
            "text",
            "setting",
            "conflict",
            "tone",
            "model",
            "updated_at",
        ]
    )

    story.preview_url = _store_preview(story, storage)
    story.status = StoryStatus.READY
    story.ready_at = timezone.now()
    story.error_message = ""
    story.save(update_fields=["preview_url", "status", "ready_at", "error_message", "updated_at"])

    logger.info("story.ready", extra={**log_context, "has_preview": bool(story.preview_url)})

    NotificationService.notify(
        story.user,
        type=NotificationKind.STORY_READY,
        title="Elkészült a mese",
        message=story.title,
        icon="book",
        link=f"/stories/{story.pk}",
    )
    _enqueue_cover(story)
    return "ready"


def _enqueue_cover(story: Story) -> None:
    """Queue the full cover render; a broker failure leaves the story without a cover."""
    from stories.jobs import JobType, enqueue

    def _publish():
        try:
            enqueue(JobType.COVER_GENERATE, story.pk)
        except Exception:
            logger.warning("cover.enqueue_failed", extra={"story_id": str(story.pk)}, exc_info=True)

    transaction.on_commit(_publish)


def process_cover(
    story_id,
    force: bool = False,
    *,
    storage: ObjectStorage | None = None,
    assets_dir=None,
) -> str:
    """
    Render and upload the covers of a story.

    Returns:
        "ready", "skipped" or "not_found"

    Raises:
        Exception: Rendering or upload errors, retried by the worker
    """
    story = Story.objects.filter(pk=story_id).first()
    if story is None:
        logger.error("cover.story_not_found", extra={"story_id": str(story_id)})
        return "not_found"

    if not story.title:
        logger.info("cover.skipped_no_title", extra={"story_id": str(story.pk)})
        return "skipped"

    if story.cover_url and story.cover_square_url and not force:
        logger.info("cover.already_exists", extra={"story_id": str(story.pk)})
        return "skipped"

    storage = storage or get_storage()
    images = render_cover(story.title, story.theme, story.mood, story.length, assets_dir=assets_dir)

    wide_key = cover_key(story.pk)
    square_key = cover_square_key(story.pk)
    storage.upload_buffer(wide_key, images.cover, WEBP_CONTENT_TYPE, IMMUTABLE_CACHE_CONTROL)
    storage.upload_buffer(square_key, images.square, WEBP_CONTENT_TYPE, IMMUTABLE_CACHE_CONTROL)

    story.cover_url = storage.build_public_url(wide_key)
    story.cover_square_url = storage.build_public_url(square_key)
    story.save(update_fields=["cover_url", "cover_square_url", "updated_at"])

    logger.info("cover.ready", extra={"story_id": str(story.pk), "force": force})
    return "ready"
