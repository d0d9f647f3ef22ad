"""
Ledger service layer for user balances.

All balance writes go through LedgerService so every debit is checked
under the user's account lock and every refund is deduplicated.

Usage:
    from payments.ledger import ledger, LedgerKind, STORY_RESERVE, STORY_FAILED

    ledger.reserve(user, 30, story=story, tag=STORY_RESERVE)
    ledger.refund_once(user, story, 30, tag=STORY_FAILED)
    ledger.balance(user, LedgerKind.CREDITS)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import Sum, Value
from django.db.models.functions import Coalesce

from .exceptions import InsufficientBalance
from .models import (
    AudioStarTransaction,
    CreditTransaction,
    EntryType,
    LedgerAccount,
    LedgerEntry,
    LedgerKind,
)
from .types import Balances, LedgerTag

if TYPE_CHECKING:
    from authentication.models import User
    from payments.models import Order
    from stories.models import Story

logger = logging.getLogger(__name__)

ENTRY_MODELS: dict[str, type[LedgerEntry]] = {
    LedgerKind.CREDITS: CreditTransaction,
    LedgerKind.AUDIO_STARS: AudioStarTransaction,
}


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Balance is always the aggregate sum, never cached
    - reserve() locks the user's LedgerAccount row before reading the sum
    - refund_once() checks both entry tables before inserting
    - grant() does no deduplication; fulfillment owns that

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def model_for(kind: LedgerKind | str) -> type[LedgerEntry]:
        try:
            return ENTRY_MODELS[kind]
        except KeyError:
            raise ValueError(f"Unknown ledger kind: {kind!r}") from None

    @staticmethod
    def get_or_create_account(user: User, kind: LedgerKind | str) -> LedgerAccount:
        account, _ = LedgerAccount.objects.get_or_create(user=user, kind=kind)
        return account

    @staticmethod
    def account_lock_query(user: User, kinds: list[str]):
        """SELECT ... FOR UPDATE over the user's account rows, in id order."""
        return LedgerAccount.objects.filter(user=user, kind__in=kinds).select_for_update().order_by("id")

    @staticmethod
    def _lock_accounts(user: User, kinds: list[str]) -> list[LedgerAccount]:
        """
        Lock the user's account rows for the given kinds.

        Must run inside transaction.atomic(). Rows are created on first use
        and locked in id order so concurrent callers never deadlock.
        """
        for kind in kinds:
            LedgerService.get_or_create_account(user, kind)
        return list(LedgerService.account_lock_query(user, kinds))

    @staticmethod
    def balance(user: User, kind: LedgerKind | str = LedgerKind.CREDITS) -> int:
        """Sum of the user's signed amounts in the table for ``kind``."""
        model = LedgerService.model_for(kind)
        result = model.objects.filter(user=user).aggregate(
            total=Coalesce(Sum("amount"), Value(0)),
        )
        return result["total"]

    @staticmethod
    def balances(user: User) -> Balances:
        return Balances(
            credits=LedgerService.balance(user, LedgerKind.CREDITS),
            audio_stars=LedgerService.balance(user, LedgerKind.AUDIO_STARS),
        )

    @staticmethod
    def reserve(
        user: User,
        amount: int,
        *,
        tag: LedgerTag,
        story: Story | None = None,
        kind: LedgerKind | str = LedgerKind.CREDITS,
    ) -> LedgerEntry:
        """
        Debit ``amount`` from the user's balance.

        Runs in its own atomic block, which joins the caller's transaction
        when there is one; story creation relies on this so the reserve and
        the story row commit together.

        Raises:
            ValueError: If amount is not positive
            InsufficientBalance: If the balance is below amount. Nothing
                is written.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        model = LedgerService.model_for(kind)

        with transaction.atomic():
            LedgerService._lock_accounts(user, [kind])

            available = LedgerService.balance(user, kind)
            if available < amount:
                logger.info(
                    "ledger.reserve_rejected",
                    extra={
                        "user_id": user.pk,
                        "kind": str(kind),
                        "required": amount,
                        "available": available,
                    },
                )
                raise InsufficientBalance(kind, required=amount, available=available)

            entry = model.objects.create(
                user=user,
                story=story,
                type=EntryType.RESERVE,
                amount=-amount,
                reason=tag.reason,
                source=tag.source,
            )

        logger.info(
            "ledger.reserved",
            extra={
                "user_id": user.pk,
                "kind": str(kind),
                "amount": amount,
                "story_id": str(story.pk) if story else None,
                "reason": tag.reason,
            },
        )
        return entry

    @staticmethod
    def grant(
        user: User,
        amount: int,
        *,
        type: EntryType | str,
        reason: str,
        source: str,
        order: Order | None = None,
        story: Story | None = None,
        kind: LedgerKind | str = LedgerKind.CREDITS,
    ) -> LedgerEntry:
        """
        Insert a positive entry.

        No deduplication: callers that may run twice (fulfillment) must
        check for an existing entry under their own lock first.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        model = LedgerService.model_for(kind)
        entry = model.objects.create(
            user=user,
            order=order,
            story=story,
            type=type,
            amount=amount,
            reason=reason,
            source=source,
        )
        logger.info(
            "ledger.granted",
            extra={
                "user_id": user.pk,
                "kind": str(kind),
                "amount": amount,
                "type": str(type),
                "order_id": str(order.pk) if order else None,
            },
        )
        return entry

    @staticmethod
    def refund_once(
        user: User,
        story: Story,
        amount: int,
        *,
        tag: LedgerTag,
        kind: LedgerKind | str = LedgerKind.CREDITS,
    ) -> LedgerEntry | None:
        """
        Credit back a failed job's reservation at most once.

        A refund is keyed by (user, story, reason, source) and looked up in
        both entry tables, so an audio job that reserved audio stars and a
        retry that would refund credits cannot both succeed.

        Returns:
            The new entry, or None when a matching refund already exists.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        model = LedgerService.model_for(kind)

        with transaction.atomic():
            LedgerService._lock_accounts(user, list(ENTRY_MODELS))

            already_refunded = any(
                entry_model.objects.filter(
                    user=user,
                    story=story,
                    type=EntryType.REFUND,
                    reason=tag.reason,
                    source=tag.source,
                ).exists()
                for entry_model in ENTRY_MODELS.values()
            )
            if already_refunded:
                logger.info(
                    "ledger.refund_skipped",
                    extra={
                        "user_id": user.pk,
                        "story_id": str(story.pk),
                        "reason": tag.reason,
                        "source": tag.source,
                    },
                )
                return None

            entry = model.objects.create(
                user=user,
                story=story,
                type=EntryType.REFUND,
                amount=amount,
                reason=tag.reason,
                source=tag.source,
            )

        logger.info(
            "ledger.refunded",
            extra={
                "user_id": user.pk,
                "kind": str(kind),
                "amount": amount,
                "story_id": str(story.pk),
                "reason": tag.reason,
            },
        )
        return entry

    @staticmethod
    def purchase_exists(order: Order) -> bool:
        """Whether a purchase entry for this order is already recorded."""
        return CreditTransaction.objects.filter(
            order=order,
            type=EntryType.PURCHASE,
        ).exists()

    @staticmethod
    def reserved_amount(
        story: Story,
        *,
        tag: LedgerTag,
        kind: LedgerKind | str = LedgerKind.CREDITS,
    ) -> int:
        """Absolute amount of the latest matching reserve for a story, or 0."""
        model = LedgerService.model_for(kind)
        entry = (
            model.objects.filter(
                story=story,
                type=EntryType.RESERVE,
                reason=tag.reason,
                source=tag.source,
            )
            .order_by("-created_at")
            .first()
        )
        return abs(entry.amount) if entry else 0


# Singleton instance for convenience
ledger = LedgerService()
