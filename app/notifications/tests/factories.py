"""
Factory Boy factories for notification models.

Usage:
    from notifications.tests.factories import NotificationFactory

    notification = NotificationFactory(user=user, is_read=False)
"""

import factory

from authentication.tests.factories import UserFactory
from notifications.models import Notification, NotificationKind


class NotificationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Notification

    user = factory.SubFactory(UserFactory)
    type = NotificationKind.CREDITS_ADDED
    icon = "gift"
    title = "Sikeres feltöltés"
    message = factory.Sequence(lambda n: f"Sikeresen jóváírtunk {n + 1} mesetallért!")
    is_read = False
