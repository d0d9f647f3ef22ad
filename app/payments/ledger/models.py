"""
Ledger models for user balances.

Two balance kinds are tracked in two structurally identical append-only
tables:
- CreditTransaction: credits ("mesetallér") spent on stories and audio
- AudioStarTransaction: audio stars ("hangcsillag") spent on narration

A balance is never stored; it is the sum of the signed amounts of a user's
rows in one table. LedgerAccount is a lock row per (user, kind) that
serializes reservations for that user.

Usage:
    from payments.ledger.models import CreditTransaction, EntryType

    CreditTransaction.objects.filter(user=user, type=EntryType.PURCHASE)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin


class LedgerKind(models.TextChoices):
    """Balance kinds; each has its own entry table."""

    CREDITS = "credits", "Credits"
    AUDIO_STARS = "audio_stars", "Audio stars"


class EntryType(models.TextChoices):
    """
    Types of ledger entries.

    Values:
        RESERVE: Debit taken when a story or audio job is accepted
        REFUND: Compensating credit after a job fails for good
        PURCHASE: Credits bought through checkout
        BONUS: Plan bonus granted with a purchase
        MANUAL: Operator adjustment
        SPEND: Debit without a reservation step
    """

    RESERVE = "reserve", "Reserve"
    REFUND = "refund", "Refund"
    PURCHASE = "purchase", "Purchase"
    BONUS = "bonus", "Bonus"
    MANUAL = "manual", "Manual"
    SPEND = "spend", "Spend"


class LedgerAccount(UUIDPrimaryKeyMixin, models.Model):
    """
    Lock target for one user's balance of one kind.

    Holds no balance. reserve() and refund_once() take SELECT ... FOR UPDATE
    on this row so the balance read and the insert that follows are atomic
    against concurrent reservations for the same user.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="ledger_accounts",
    )
    kind = models.CharField(
        max_length=20,
        choices=LedgerKind.choices,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "kind"],
                name="unique_ledger_account_per_user_kind",
            )
        ]

    def __str__(self) -> str:
        return f"{self.get_kind_display()} ({self.user_id})"


class LedgerEntry(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
    """
    One signed movement of a user's balance.

    Negative amounts are debits. Rows are immutable once inserted;
    corrections are new rows.

    Fields:
        user: Balance owner
        order: Order that paid for a purchase/bonus entry
        story: Story whose job reserved or got refunded
        type: EntryType
        amount: Signed integer amount
        reason / source: Tags used for refund deduplication
        created_at: Insert time
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="%(class)s_entries",
    )
    order = models.ForeignKey(
        "payments.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="%(class)s_entries",
    )
    story = models.ForeignKey(
        "stories.Story",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="%(class)s_entries",
    )
    type = models.CharField(
        max_length=20,
        choices=EntryType.choices,
    )
    amount = models.IntegerField(
        help_text="Signed amount; negative values are debits",
    )
    reason = models.CharField(max_length=100, blank=True, default="")
    source = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="%(class)s_user_idx"),
            models.Index(
                fields=["user", "story", "reason", "source"],
                name="%(class)s_dedup_idx",
            ),
            models.Index(fields=["order", "type"], name="%(class)s_order_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(amount=0),
                name="%(class)s_amount_nonzero",
            )
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()}: {self.amount:+d} ({self.user_id})"


class CreditTransaction(LedgerEntry):
    kind = LedgerKind.CREDITS

    class Meta(LedgerEntry.Meta):
        db_table = "credit_transactions"


class AudioStarTransaction(LedgerEntry):
    kind = LedgerKind.AUDIO_STARS

    class Meta(LedgerEntry.Meta):
        db_table = "audio_star_transactions"
