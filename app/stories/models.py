"""
Story domain models.

- Child: A child profile owned by a user; stories are written for a child
- Story: One generated bedtime story, the subject of generation jobs
- StoryTransaction: Token usage of one OpenAI call made for a story

Story.status only moves forward through the pipeline:

    queued -> generating_text -> extracting_meta -> generating_cover
           -> uploading_cover -> ready

and "failed" is reachable from every non-terminal state. Narration has its
own status field (audio_status) so a ready story can be narrated later.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Mood(models.TextChoices):
    NYUGODT = "nyugodt", "Nyugodt"
    VIDAM = "vidam", "Vidám"
    KALANDOS = "kalandos", "Kalandos"


class StoryLength(models.TextChoices):
    SHORT = "short", "Rövid"
    MEDIUM = "medium", "Közepes"
    LONG = "long", "Hosszú"


class StoryStatus(models.TextChoices):
    QUEUED = "queued", "Queued"
    GENERATING_TEXT = "generating_text", "Generating text"
    EXTRACTING_META = "extracting_meta", "Extracting metadata"
    GENERATING_COVER = "generating_cover", "Generating cover"
    UPLOADING_COVER = "uploading_cover", "Uploading cover"
    READY = "ready", "Ready"
    FAILED = "failed", "Failed"


TERMINAL_STORY_STATUSES = frozenset({StoryStatus.READY, StoryStatus.FAILED})


class AudioStatus(models.TextChoices):
    NONE = "none", "None"
    QUEUED = "queued", "Queued"
    GENERATING = "generating", "Generating"
    READY = "ready", "Ready"
    FAILED = "failed", "Failed"


class OperationType(models.TextChoices):
    STORY_GENERATION = "story_generation", "Story generation"
    META_EXTRACTION = "meta_extraction", "Meta extraction"


class Child(UUIDPrimaryKeyMixin, BaseModel):
    """
    A child profile.

    Fields:
        user: Parent account
        name: Display name
        age: Age in years, used for the story prompt
        learning_goal: Optional default lesson
        mood: Optional preferred mood
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="children",
    )
    name = models.CharField(max_length=100)
    age = models.PositiveSmallIntegerField()
    learning_goal = models.CharField(max_length=255, blank=True, default="")
    mood = models.CharField(max_length=20, choices=Mood.choices, blank=True, default="")

    class Meta:
        db_table = "children"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.age})"


class StoryQuerySet(models.QuerySet):
    def for_user(self, user) -> StoryQuerySet:
        return self.filter(user=user)

    def recent_fingerprints(self, child: Child, limit: int = 5) -> list[tuple[str, str]]:
        """(setting, conflict) pairs of the child's latest stories that have both."""
        rows = (
            self.filter(child=child)
            .exclude(setting="")
            .exclude(conflict="")
            .order_by("-created_at")
            .values_list("setting", "conflict")[:limit]
        )
        return list(rows)


class Story(UUIDPrimaryKeyMixin, BaseModel):
    """
    A bedtime story and the state of its generation jobs.

    credit_cost is the price snapshot taken when the story was requested;
    it is the amount refunded if generation fails for good.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="stories",
    )
    child = models.ForeignKey(
        Child,
        on_delete=models.CASCADE,
        related_name="stories",
    )
    status = models.CharField(
        max_length=20,
        choices=StoryStatus.choices,
        default=StoryStatus.QUEUED,
        db_index=True,
    )
    credit_cost = models.PositiveIntegerField()

    # Request
    theme = models.CharField(max_length=100)
    mood = models.CharField(max_length=20, choices=Mood.choices)
    length = models.CharField(max_length=10, choices=StoryLength.choices)
    lesson = models.CharField(max_length=255, blank=True, default="")

    # Content
    title = models.CharField(max_length=255, blank=True, default="")
    summary = models.TextField(blank=True, default="")
    text = models.TextField(blank=True, default="")
    setting = models.CharField(max_length=100, blank=True, default="")
    conflict = models.CharField(max_length=100, blank=True, default="")
    tone = models.CharField(max_length=20, blank=True, default="")
    model = models.CharField(max_length=100, blank=True, default="")

    preview_url = models.URLField(max_length=500, blank=True, default="")
    cover_url = models.URLField(max_length=500, blank=True, default="")
    cover_square_url = models.URLField(max_length=500, blank=True, default="")
    ready_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")

    # Narration
    audio_status = models.CharField(
        max_length=20,
        choices=AudioStatus.choices,
        default=AudioStatus.NONE,
    )
    audio_url = models.URLField(max_length=500, blank=True, default="")
    audio_error = models.TextField(blank=True, default="")
    audio_hash = models.CharField(max_length=64, blank=True, default="")
    audio_voice_id = models.CharField(max_length=64, blank=True, default="")
    audio_updated_at = models.DateTimeField(null=True, blank=True)

    objects = StoryQuerySet.as_manager()

    class Meta:
        db_table = "stories"
        ordering = ["-created_at"]
        verbose_name_plural = "stories"
        indexes = [
            models.Index(fields=["child", "-created_at"], name="story_child_created_idx"),
            models.Index(fields=["user", "-created_at"], name="story_user_created_idx"),
        ]

    def __str__(self) -> str:
        return self.title or f"Story {self.pk}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STORY_STATUSES

    def set_status(self, status: str, error_message: str | None = None) -> None:
        """Persist a pipeline status before the next external call."""
        self.status = status
        fields = ["status", "updated_at"]
        if error_message is not None:
            self.error_message = error_message
            fields.append("error_message")
        self.save(update_fields=fields)

    def set_audio(self, status: str, **fields) -> None:
        """Persist narration state; extra keyword arguments are audio_* fields."""
        self.audio_status = status
        self.audio_updated_at = timezone.now()
        for name, value in fields.items():
            setattr(self, name, value)
        self.save(update_fields=["audio_status", "audio_updated_at", "updated_at", *fields])


class StoryTransaction(BaseModel):
    """
    Token usage of one text-generation call.

    Written for every successful OpenAI call of the pipeline so usage can
    be reconciled against the provider's billing.
    """

    story = models.ForeignKey(
        Story,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    operation_type = models.CharField(
        max_length=32,
        choices=OperationType.choices,
        default=OperationType.STORY_GENERATION,
    )
    model = models.CharField(max_length=100)
    input_tokens = models.PositiveIntegerField(default=0)
    output_tokens = models.PositiveIntegerField(default=0)
    total_tokens = models.PositiveIntegerField(default=0)
    prompt_tokens = models.PositiveIntegerField(null=True, blank=True)
    completion_tokens = models.PositiveIntegerField(null=True, blank=True)
    request_id = models.CharField(max_length=255, blank=True, default="")
    response_id = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "story_transactions"
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.get_operation_type_display()} {self.model} ({self.total_tokens})"
