"""
Tests for ledger models.

Entries are append-only: instance save() after insert and delete() raise.
"""

import pytest
from django.db import IntegrityError

from core.exceptions import ConflictError
from payments.ledger.models import CreditTransaction, LedgerAccount, LedgerKind
from payments.ledger.tests.factories import (
    AudioStarTransactionFactory,
    CreditTransactionFactory,
    LedgerAccountFactory,
)


class TestAppendOnlyEntries:
    def test_update_is_rejected(self, user):
        entry = CreditTransactionFactory(user=user, amount=50)
        entry.amount = 5000

        with pytest.raises(ConflictError) as exc_info:
            entry.save()

        assert exc_info.value.error_code == "APPEND_ONLY"
        entry.refresh_from_db()
        assert entry.amount == 50

    def test_delete_is_rejected(self, user):
        entry = AudioStarTransactionFactory(user=user)

        with pytest.raises(ConflictError):
            entry.delete()

        assert entry.__class__.objects.filter(pk=entry.pk).exists()

    def test_zero_amount_is_rejected_by_database(self, user):
        with pytest.raises(IntegrityError):
            CreditTransaction.objects.create(user=user, type="manual", amount=0)

    def test_str_shows_signed_amount(self, user):
        entry = CreditTransactionFactory(user=user, type="reserve", amount=-30)

        assert "-30" in str(entry)


class TestLedgerAccount:
    def test_one_account_per_user_and_kind(self, user):
        LedgerAccountFactory(user=user, kind=LedgerKind.CREDITS)

        with pytest.raises(IntegrityError):
            LedgerAccount.objects.create(user=user, kind=LedgerKind.CREDITS)

    def test_kinds_are_separate_accounts(self, user):
        LedgerAccountFactory(user=user, kind=LedgerKind.CREDITS)
        LedgerAccountFactory(user=user, kind=LedgerKind.AUDIO_STARS)

        assert LedgerAccount.objects.filter(user=user).count() == 2
