"""
Provider event models for idempotent webhook processing.

Every verified webhook delivery is stored before it is acknowledged. The
unique event_id is the only duplicate guard: a second delivery of the same
event fails the insert and is acknowledged without being processed again.

Usage:
    from django.db import IntegrityError, transaction
    from payments.models import StripeEvent

    try:
        with transaction.atomic():
            event = StripeEvent.objects.create(event_id=evt.id, type=evt.type, payload=payload)
    except IntegrityError:
        return HttpResponse(status=200)  # duplicate delivery

    # ... process ...
    event.mark_processed()
    event.save(update_fields=["processed_at", "processing_error"])
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin


class ProviderEventQuerySet(models.QuerySet):
    def unprocessed(self) -> ProviderEventQuerySet:
        return self.filter(processed_at__isnull=True)


class ProviderEvent(UUIDPrimaryKeyMixin, models.Model):
    """
    Abstract base for stored provider webhook events.

    Fields:
        event_id: Provider event id, unique
        type: Provider event type (e.g. "checkout.session.completed")
        payload: Verified event body
        processed_at: Set once processing finished without error
        processing_error: Last processing error, cleared on success
        attempts: Number of processing runs
    """

    event_id = models.CharField(max_length=255, unique=True)
    type = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField()
    processed_at = models.DateTimeField(null=True, blank=True)
    processing_error = models.TextField(blank=True, default="")
    attempts = models.PositiveSmallIntegerField(default=0)
    received_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = ProviderEventQuerySet.as_manager()

    class Meta:
        abstract = True
        ordering = ["-received_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.event_id}, {self.type})"

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None

    def mark_processed(self) -> None:
        """
        Mark event as successfully processed.

        Note: Does not save - caller must save after calling.
        """
        self.processed_at = timezone.now()
        self.processing_error = ""

    def mark_failed(self, error_message: str) -> None:
        """
        Record a processing error. The event stays unprocessed.

        Note: Does not save - caller must save after calling.
        """
        self.processing_error = error_message[:2000]


class StripeEvent(ProviderEvent):
    api_version = models.CharField(max_length=50, blank=True, default="")
    created = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Event creation time reported by Stripe",
    )
    livemode = models.BooleanField(default=False)

    class Meta(ProviderEvent.Meta):
        db_table = "stripe_events"


class BarionEvent(ProviderEvent):
    payment_id = models.CharField(max_length=255, db_index=True)

    class Meta(ProviderEvent.Meta):
        db_table = "barion_events"
