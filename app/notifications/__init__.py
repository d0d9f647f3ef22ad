"""
Notifications app for in-app user notices.

Payments and stories emit notifications (credits added, story ready) through
NotificationService.notify, which never raises: a failed notification must
not undo the business operation that triggered it.

Usage:
    from notifications.services import NotificationService

    NotificationService.notify(
        user,
        type=NotificationKind.CREDITS_ADDED,
        icon="gift",
        title="Sikeres feltöltés",
        message="Sikeresen jóváírtunk 1000 mesetallért!",
    )
"""
