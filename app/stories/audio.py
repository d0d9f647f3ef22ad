"""
Story narration.

request_story_audio takes payment and queues an audio.generate job;
process_audio runs that job. Payment is one audio star when the user picks
it (or has one and picks nothing), otherwise the credit price for the
story length.

Each request reserves under its own job id. That reservation is refunded
at most once, in the balance it was taken from, when the job fails for
good or cannot be queued.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING

from django.db import transaction

from core.exceptions import ValidationError
from notifications.models import NotificationKind
from notifications.services import NotificationService
from payments.ledger import (
    AUDIO_FAILED,
    AUDIO_QUEUE_FAILED,
    AUDIO_RESERVE,
    LedgerKind,
    LedgerTag,
    ledger,
)
from stories.clients import (
    IMMUTABLE_CACHE_CONTROL,
    ObjectStorage,
    SpeechSynthesizer,
    get_speech_synthesizer,
    get_storage,
)
from stories.exceptions import StoryNotFound, StoryNotReady
from stories.jobs import JobType, enqueue_on_commit
from stories.models import AudioStatus, Story
from stories.pricing import AUDIO_STAR_PRICE, audio_cost

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)

VOICE_ID = "scmhl57lfsXIkyLMdk8s"
MODEL_ID = "eleven_v3"
OUTPUT_FORMAT = "mp3_44100_128"
PRESET = "default"
AUDIO_CONTENT_TYPE = "audio/mpeg"

PAY_WITH_AUDIO_STAR = "audioStar"
PAY_WITH_CREDITS = "credits"
PAYMENT_METHODS = (PAY_WITH_AUDIO_STAR, PAY_WITH_CREDITS)

# Requests for these statuses return the current state unless forced
BLOCKED_AUDIO_STATUSES = frozenset({AudioStatus.QUEUED, AudioStatus.GENERATING, AudioStatus.READY})


@dataclass(frozen=True)
class AudioRequest:
    """Outcome of request_story_audio; job_id is None when nothing was queued."""

    story: Story
    job_id: str | None = None
    kind: str | None = None
    amount: int = 0

    @property
    def queued(self) -> bool:
        return self.job_id is not None


def audio_key(story_id) -> str:
    return f"stories/{story_id}/audio.mp3"


def compute_audio_hash(voice_id: str, preset: str, text: str) -> str:
    digest = hashlib.sha256()
    digest.update(f"{voice_id}:{preset}:".encode())
    digest.update(text.encode())
    return digest.hexdigest()


def _choose_payment(user: User, payment_method: str | None) -> LedgerKind:
    if payment_method == PAY_WITH_AUDIO_STAR:
        return LedgerKind.AUDIO_STARS
    if payment_method == PAY_WITH_CREDITS:
        return LedgerKind.CREDITS
    if payment_method is not None:
        raise ValidationError(
            f"Unknown payment method: {payment_method}",
            details={"allowed": list(PAYMENT_METHODS)},
        )
    if ledger.balance(user, LedgerKind.AUDIO_STARS) >= AUDIO_STAR_PRICE:
        return LedgerKind.AUDIO_STARS
    return LedgerKind.CREDITS


def request_story_audio(
    user: User,
    story_id,
    *,
    force: bool = False,
    payment_method: str | None = None,
) -> AudioRequest:
    """
    Reserve payment and queue narration for a story.

    The reserve is tagged with the new job's id, so a refund can only ever
    return this request's payment.

    Raises:
        StoryNotFound: No such story for this user
        StoryNotReady: The story has no text yet
        ValidationError: Unknown payment method
        InsufficientBalance: The chosen balance cannot cover the price
    """
    story = Story.objects.for_user(user).filter(pk=story_id).first()
    if story is None:
        raise StoryNotFound("Story not found", details={"story_id": str(story_id)})
    if not story.text:
        raise StoryNotReady("Story text missing", details={"story_id": str(story.pk)})

    if not force and story.audio_status in BLOCKED_AUDIO_STATUSES:
        logger.info(
            "audio.request_short_circuit",
            extra={"story_id": str(story.pk), "audio_status": story.audio_status},
        )
        return AudioRequest(story=story)

    kind = _choose_payment(user, payment_method)
    amount = AUDIO_STAR_PRICE if kind == LedgerKind.AUDIO_STARS else audio_cost(story.length)
    job_id = str(uuid.uuid4())

    with transaction.atomic():
        ledger.reserve(user, amount, tag=AUDIO_RESERVE.for_job(job_id), story=story, kind=kind)
        story.set_audio(
            AudioStatus.QUEUED,
            audio_error="",
            audio_voice_id=VOICE_ID,
            audio_hash=compute_audio_hash(VOICE_ID, PRESET, story.text),
            audio_url="" if force else story.audio_url,
        )
        enqueue_on_commit(
            JobType.AUDIO_GENERATE,
            story.pk,
            user_id=user.pk,
            force=force,
            job_id=job_id,
            on_failure=partial(_compensate_enqueue, story.pk, job_id),
        )

    logger.info(
        "audio.requested",
        extra={
            "story_id": str(story.pk),
            "user_id": user.pk,
            "job_id": job_id,
            "kind": str(kind),
            "amount": amount,
            "force": force,
        },
    )
    return AudioRequest(story=story, job_id=job_id, kind=str(kind), amount=amount)


def refund_audio_once(story: Story, job_id: str, tag: LedgerTag = AUDIO_FAILED):
    """
    Refund the narration reservation made for one job, at most once.

    The refund goes back to the balance the job's reserve came from, for the
    reserved amount. A job with no reserve (never paid for) refunds nothing.

    Returns:
        The refund entry, or None if already refunded or nothing was reserved
    """
    reserve_tag = AUDIO_RESERVE.for_job(job_id)
    for kind in (LedgerKind.AUDIO_STARS, LedgerKind.CREDITS):
        amount = ledger.reserved_amount(story, tag=reserve_tag, kind=kind)
        if amount:
            return ledger.refund_once(story.user, story, amount, tag=tag.for_job(job_id), kind=kind)

    logger.warning(
        "audio.refund_without_reserve",
        extra={"story_id": str(story.pk), "job_id": job_id, "reason": tag.reason},
    )
    return None


def fail_audio(story: Story, message: str, job_id: str, tag: LedgerTag = AUDIO_FAILED) -> None:
    """Mark narration failed and refund the job's reservation."""
    with transaction.atomic():
        story.set_audio(AudioStatus.FAILED, audio_error=message)
        refund_audio_once(story, job_id, tag)
    logger.warning(
        "audio.failed",
        extra={"story_id": str(story.pk), "job_id": job_id, "error": message, "reason": tag.reason},
    )


def _compensate_enqueue(story_id, job_id: str, exc: Exception) -> None:
    story = Story.objects.select_related("user").filter(pk=story_id).first()
    if story is None:
        return
    fail_audio(story, "Failed to enqueue audio job", job_id, tag=AUDIO_QUEUE_FAILED)


def process_audio(
    story_id,
    user_id,
    force: bool = False,
    *,
    job_id: str = "",
    synthesizer: SpeechSynthesizer | None = None,
    storage: ObjectStorage | None = None,
) -> str:
    """
    Narrate a story and upload the MP3.

    Returns:
        "ready", "skipped" or "failed"

    Raises:
        StoryNotFound: No such story, or it belongs to another user
        Exception: Provider and storage errors, for the worker to retry
    """
    story = Story.objects.select_related("user").filter(pk=story_id).first()
    if story is None or story.user_id != user_id:
        raise StoryNotFound("Story not found", details={"story_id": str(story_id)})

    if not story.text:
        fail_audio(story, "Story text missing", job_id)
        return "failed"

    if story.audio_url and not force:
        story.set_audio(AudioStatus.READY, audio_error="")
        logger.info("audio.already_exists", extra={"story_id": str(story.pk)})
        return "skipped"

    synthesizer = synthesizer or get_speech_synthesizer()
    storage = storage or get_storage()

    story.set_audio(AudioStatus.GENERATING, audio_error="", audio_voice_id=VOICE_ID)
    audio = synthesizer.convert(VOICE_ID, story.text, MODEL_ID, OUTPUT_FORMAT)

    key = audio_key(story.pk)
    storage.upload_buffer(key, audio, AUDIO_CONTENT_TYPE, IMMUTABLE_CACHE_CONTROL)
    story.set_audio(AudioStatus.READY, audio_url=storage.build_public_url(key), audio_error="")

    logger.info("audio.ready", extra={"story_id": str(story.pk), "bytes": len(audio), "force": force})
    NotificationService.notify(
        story.user,
        type=NotificationKind.AUDIO_READY,
        title="Elkészült a hangos mese",
        message=story.title,
        icon="headphones",
        link=f"/stories/{story.pk}",
    )
    return "ready"
