"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    AppendOnlyMixin: Rows can be inserted but never updated or deleted

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Order(UUIDPrimaryKeyMixin, BaseModel):
        total_cents = models.PositiveIntegerField()

Note:
    Always list mixins before BaseModel in inheritance.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

from core.exceptions import ConflictError

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Order and story ids travel through provider metadata, redirect URLs and
    queue messages, so they must be non-guessable and known before insert.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class AppendOnlyMixin(models.Model):
    """
    Reject updates and deletes at the model layer.

    Only instance-level save()/delete() are guarded; queryset.update() and
    queryset.delete() bypass this, so ledger code never calls them.

    Usage:
        class CreditTransaction(AppendOnlyMixin, models.Model):
            amount = models.IntegerField()

        entry = CreditTransaction.objects.create(amount=-30)
        entry.amount = 0
        entry.save()  # raises ConflictError
    """

    class Meta:
        abstract = True

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ConflictError(
                f"{self.__class__.__name__} rows are append-only",
                error_code="APPEND_ONLY",
                details={"id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any):
        raise ConflictError(
            f"{self.__class__.__name__} rows cannot be deleted",
            error_code="APPEND_ONLY",
            details={"id": str(self.pk)},
        )
