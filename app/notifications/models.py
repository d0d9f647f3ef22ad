"""
Notification model.

One row per in-app notice. Rows are created by NotificationService.notify
and only ever updated to flip the read flag.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationKind(models.TextChoices):
    CREDITS_ADDED = "credits_added", "Credits added"
    STORY_READY = "story_ready", "Story ready"
    STORY_FAILED = "story_failed", "Story failed"
    AUDIO_READY = "audio_ready", "Audio ready"
    SYSTEM = "system", "System"


class Notification(BaseModel):
    """
    In-app notification shown in the parent's inbox.

    Fields:
        user: Recipient
        type: NotificationKind value
        icon: Frontend icon name (gift, book, headphones)
        title / message: Rendered Hungarian text
        link: Optional frontend path opened on click
        is_read / read_at: Read state
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    type = models.CharField(
        max_length=32,
        choices=NotificationKind.choices,
        default=NotificationKind.SYSTEM,
    )
    icon = models.CharField(max_length=32, blank=True, default="")
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, default="")
    link = models.CharField(max_length=500, blank=True, default="")
    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["user", "is_read", "-created_at"],
                name="notif_user_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.type}) -> User {self.user_id} [{read_status}]"
