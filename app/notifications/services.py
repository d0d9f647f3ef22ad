"""
Notification service layer.

Services:
    NotificationService: Notification creation and read status management

Usage:
    from notifications.services import NotificationService

    NotificationService.notify(user, type="credits_added", title="...", message="...")
    result = NotificationService.mark_as_read(notification, user)
    result = NotificationService.mark_all_as_read(user)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import DatabaseError
from django.utils import timezone

from core.services import BaseService, ServiceResult
from notifications.models import Notification, NotificationKind

if TYPE_CHECKING:
    from authentication.models import User


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        notify: Create a notification, logging instead of raising on failure
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all user's unread notifications as read
    """

    @classmethod
    def notify(
        cls,
        user: User,
        *,
        type: str = NotificationKind.SYSTEM,
        title: str,
        message: str = "",
        icon: str = "",
        link: str = "",
    ) -> Notification | None:
        """
        Create a notification for a user.

        Fire-and-log: database errors are logged under
        ``notification.create_failed`` and None is returned, so callers
        inside fulfillment or the story worker never fail because of it.
        """
        try:
            notification = Notification.objects.create(
                user=user,
                type=type,
                icon=icon,
                title=title,
                message=message,
                link=link,
            )
        except DatabaseError:
            cls.get_logger().exception(
                "notification.create_failed",
                extra={"user_id": user.pk, "type": str(type)},
            )
            return None

        cls.get_logger().info(
            "notification.created",
            extra={"user_id": user.pk, "type": str(type), "notification_id": notification.pk},
        )
        return notification

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Idempotent: marking an already-read notification succeeds.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.user_id != user.pk:
            cls.get_logger().warning(
                f"User {user.pk} attempted to mark notification {notification.pk} "
                f"owned by user {notification.user_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """Mark all of the user's unread notifications as read in one query."""
        count = Notification.objects.filter(
            user=user,
            is_read=False,
        ).update(is_read=True, read_at=timezone.now())

        cls.get_logger().info(f"Marked {count} notifications as read for user {user.pk}")

        return ServiceResult.success(count)
