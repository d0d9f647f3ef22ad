"""
DRF serializers for stories app.

Serializer Hierarchy:
    ChildSerializer: Child profile
    StoryCreateSerializer / StoryCreatedSerializer: Story request
    StoryListSerializer: Story card in a child's list
    StorySerializer: Full story with text and narration
    AudioRequestSerializer: Narration request
    AudioQueuedSerializer / AudioStateSerializer: Narration responses
    AudioCostSerializer: Narration price
    JobQueuedSerializer: Queued cover job

Cover and audio URLs are returned presigned for an hour; when presigning
is not possible the stored public URL is returned instead.
"""

from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError
from django.core.exceptions import ImproperlyConfigured
from rest_framework import serializers

from stories.audio import PAYMENT_METHODS, audio_key
from stories.clients import get_storage
from stories.models import AudioStatus, Child, Mood, Story, StoryLength
from stories.pipeline import cover_key, cover_square_key

logger = logging.getLogger(__name__)

PRESIGN_TTL_SECONDS = 3600


class PresignedUrlMixin:
    """Presigns object URLs with the storage from context, or the default one."""

    def _storage(self):
        storage = self.context.get("storage")
        if storage is None:
            storage = get_storage()
            self.context["storage"] = storage
        return storage

    def presigned(self, key: str, fallback: str) -> str:
        if not fallback:
            return fallback
        try:
            return self._storage().presign(key, PRESIGN_TTL_SECONDS)
        except (ImproperlyConfigured, BotoCoreError, ClientError):
            logger.warning("storage.presign_failed", extra={"key": key}, exc_info=True)
            return fallback


class ChildSerializer(serializers.ModelSerializer):
    age = serializers.IntegerField(min_value=1, max_value=18)

    class Meta:
        model = Child
        fields = ["id", "name", "age", "learning_goal", "mood", "created_at"]
        read_only_fields = ["id", "created_at"]


class StoryCreateSerializer(serializers.Serializer):
    """
    Story request.

    Fields:
        theme: Free text, or "meglepetes" for a random theme
        lesson: Optional lesson the story should teach
    """

    mood = serializers.ChoiceField(choices=Mood.choices)
    length = serializers.ChoiceField(choices=StoryLength.choices)
    theme = serializers.CharField(max_length=100)
    lesson = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class StoryCreatedSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    job_id = serializers.CharField()
    status = serializers.CharField()
    credit_cost = serializers.IntegerField()


class StoryListSerializer(PresignedUrlMixin, serializers.ModelSerializer):
    cover_url = serializers.SerializerMethodField()
    cover_square_url = serializers.SerializerMethodField()

    class Meta:
        model = Story
        fields = [
            "id",
            "title",
            "preview_url",
            "cover_url",
            "cover_square_url",
            "created_at",
            "status",
            "theme",
            "mood",
            "length",
            "error_message",
        ]
        read_only_fields = fields

    def get_cover_url(self, obj: Story) -> str:
        return self.presigned(cover_key(obj.pk), obj.cover_url)

    def get_cover_square_url(self, obj: Story) -> str:
        return self.presigned(cover_square_key(obj.pk), obj.cover_square_url)


class StorySerializer(StoryListSerializer):
    audio_url = serializers.SerializerMethodField()

    class Meta(StoryListSerializer.Meta):
        fields = [
            *StoryListSerializer.Meta.fields,
            "child",
            "summary",
            "text",
            "lesson",
            "setting",
            "conflict",
            "tone",
            "credit_cost",
            "ready_at",
            "audio_status",
            "audio_url",
            "audio_error",
        ]
        read_only_fields = fields

    def get_audio_url(self, obj: Story) -> str:
        if obj.audio_status != AudioStatus.READY:
            return obj.audio_url
        return self.presigned(audio_key(obj.pk), obj.audio_url)


class AudioRequestSerializer(serializers.Serializer):
    force = serializers.BooleanField(required=False, default=False)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False, allow_null=True)


class AudioQueuedSerializer(serializers.Serializer):
    job_id = serializers.CharField()
    story_id = serializers.UUIDField()
    audio_status = serializers.CharField()
    payment_kind = serializers.CharField()
    amount = serializers.IntegerField()


class AudioStateSerializer(serializers.Serializer):
    story_id = serializers.UUIDField()
    audio_status = serializers.CharField()
    audio_url = serializers.CharField(allow_blank=True)


class AudioCostSerializer(serializers.Serializer):
    cost = serializers.IntegerField()
    audio_star_cost = serializers.IntegerField()
    has_audio = serializers.BooleanField()
    audio_status = serializers.CharField()


class JobQueuedSerializer(serializers.Serializer):
    job_id = serializers.CharField()
    story_id = serializers.UUIDField()
