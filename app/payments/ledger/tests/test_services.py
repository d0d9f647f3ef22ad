"""
Tests for LedgerService.

Test Classes:
    TestBalance: aggregate sums per kind
    TestReserve: locked debit and rejection without side effects
    TestGrant: positive entries
    TestRefundOnce: deduplicated compensation across both tables
    TestAccountLocking: account rows locked FOR UPDATE in id order
    TestConcurrentReserve: parallel debits on PostgreSQL
"""

from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest
from django.db import connection

from authentication.tests.factories import UserFactory
from payments.ledger import (
    AUDIO_FAILED,
    AUDIO_RESERVE,
    STORY_FAILED,
    STORY_RESERVE,
    AudioStarTransaction,
    CreditTransaction,
    EntryType,
    InsufficientBalance,
    LedgerAccount,
    LedgerKind,
    LedgerService,
    ledger,
)
from payments.ledger.tests.factories import CreditTransactionFactory


class TestBalance:
    def test_empty_balance_is_zero(self, user):
        assert ledger.balance(user) == 0
        assert ledger.balance(user, LedgerKind.AUDIO_STARS) == 0

    def test_sums_signed_amounts(self, user):
        CreditTransactionFactory(user=user, amount=100)
        CreditTransactionFactory(user=user, type=EntryType.RESERVE, amount=-30)

        assert ledger.balance(user) == 70

    def test_balances_reports_both_kinds(self, funded_user):
        balances = ledger.balances(funded_user)

        assert balances.to_dict() == {"credits": 100, "audio_stars": 2}

    def test_unknown_kind_raises(self, user):
        with pytest.raises(ValueError):
            ledger.balance(user, "gold")


class TestReserve:
    def test_inserts_negative_entry(self, funded_user, story):
        entry = ledger.reserve(funded_user, 30, story=story, tag=STORY_RESERVE)

        assert entry.amount == -30
        assert entry.type == EntryType.RESERVE
        assert (entry.reason, entry.source) == ("story_reserve", "story_create")
        assert ledger.balance(funded_user) == 70

    def test_creates_lock_row_on_first_use(self, funded_user, story):
        ledger.reserve(funded_user, 30, story=story, tag=STORY_RESERVE)

        assert LedgerAccount.objects.filter(user=funded_user, kind=LedgerKind.CREDITS).exists()

    def test_exact_balance_can_be_reserved(self, funded_user, story):
        ledger.reserve(funded_user, 100, story=story, tag=STORY_RESERVE)

        assert ledger.balance(funded_user) == 0

    def test_insufficient_balance_writes_nothing(self, funded_user, story):
        with pytest.raises(InsufficientBalance) as exc_info:
            ledger.reserve(funded_user, 101, story=story, tag=STORY_RESERVE)

        assert exc_info.value.required == 101
        assert exc_info.value.available == 100
        assert exc_info.value.http_status == 402
        assert not CreditTransaction.objects.filter(type=EntryType.RESERVE).exists()

    def test_audio_star_reserve_uses_audio_table(self, funded_user, story):
        ledger.reserve(
            funded_user, 1, story=story, tag=AUDIO_RESERVE, kind=LedgerKind.AUDIO_STARS
        )

        assert ledger.balance(funded_user, LedgerKind.AUDIO_STARS) == 1
        assert ledger.balance(funded_user) == 100

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_raises(self, funded_user, amount):
        with pytest.raises(ValueError):
            ledger.reserve(funded_user, amount, tag=STORY_RESERVE)


class TestGrant:
    def test_inserts_positive_entry(self, user):
        entry = ledger.grant(
            user, 1000, type=EntryType.PURCHASE, reason="Stripe checkout purchase", source="stripe"
        )

        assert entry.amount == 1000
        assert ledger.balance(user) == 1000

    def test_grant_does_not_deduplicate(self, user):
        for _ in range(2):
            ledger.grant(user, 5, type=EntryType.BONUS, reason="bonus", source="stripe")

        assert ledger.balance(user) == 10


class TestRefundOnce:
    def test_reserve_then_refund_conserves_balance(self, funded_user, story):
        ledger.reserve(funded_user, 30, story=story, tag=STORY_RESERVE)

        entry = ledger.refund_once(funded_user, story, 30, tag=STORY_FAILED)

        assert entry is not None
        assert entry.type == EntryType.REFUND
        assert ledger.balance(funded_user) == 100

    def test_second_refund_is_skipped(self, funded_user, story):
        ledger.reserve(funded_user, 30, story=story, tag=STORY_RESERVE)
        ledger.refund_once(funded_user, story, 30, tag=STORY_FAILED)

        assert ledger.refund_once(funded_user, story, 30, tag=STORY_FAILED) is None
        assert ledger.balance(funded_user) == 100

    def test_refund_in_other_table_blocks_refund(self, funded_user, story):
        ledger.refund_once(funded_user, story, 1, tag=AUDIO_FAILED, kind=LedgerKind.AUDIO_STARS)

        result = ledger.refund_once(funded_user, story, 400, tag=AUDIO_FAILED)

        assert result is None
        assert not CreditTransaction.objects.filter(type=EntryType.REFUND).exists()
        assert AudioStarTransaction.objects.filter(type=EntryType.REFUND).count() == 1

    def test_different_tags_are_independent(self, funded_user, story):
        ledger.refund_once(funded_user, story, 30, tag=STORY_FAILED)

        assert ledger.refund_once(funded_user, story, 400, tag=AUDIO_FAILED) is not None

    def test_job_scoped_tags_are_independent(self, funded_user, story):
        first = ledger.refund_once(funded_user, story, 1, tag=AUDIO_FAILED.for_job("job-1"))
        second = ledger.refund_once(funded_user, story, 1, tag=AUDIO_FAILED.for_job("job-2"))

        assert first.source == "audio_worker:job-1"
        assert second.source == "audio_worker:job-2"
        assert ledger.refund_once(funded_user, story, 1, tag=AUDIO_FAILED.for_job("job-1")) is None


class TestReservedAmount:
    def test_returns_absolute_reserve(self, funded_user, story):
        ledger.reserve(funded_user, 30, story=story, tag=STORY_RESERVE)

        assert ledger.reserved_amount(story, tag=STORY_RESERVE) == 30

    def test_zero_without_reserve(self, story):
        assert ledger.reserved_amount(story, tag=AUDIO_RESERVE) == 0


class TestAccountLocking:
    def test_lock_query_is_for_update_in_id_order(self, user):
        query = ledger.account_lock_query(user, [LedgerKind.CREDITS]).query

        assert query.select_for_update
        assert query.order_by == ("id",)

    def test_reserve_locks_its_kind(self, funded_user, story, mocker):
        spy = mocker.spy(LedgerService, "account_lock_query")

        ledger.reserve(funded_user, 1, story=story, tag=AUDIO_RESERVE, kind=LedgerKind.AUDIO_STARS)

        spy.assert_called_once_with(funded_user, [LedgerKind.AUDIO_STARS])
        assert [account.kind for account in spy.spy_return] == [LedgerKind.AUDIO_STARS]

    def test_refund_locks_both_kinds_in_id_order(self, funded_user, story, mocker):
        ledger.reserve(funded_user, 1, story=story, tag=AUDIO_RESERVE, kind=LedgerKind.AUDIO_STARS)
        ledger.reserve(funded_user, 30, story=story, tag=STORY_RESERVE)
        spy = mocker.spy(LedgerService, "account_lock_query")

        ledger.refund_once(funded_user, story, 30, tag=STORY_FAILED)

        spy.assert_called_once_with(funded_user, [LedgerKind.CREDITS, LedgerKind.AUDIO_STARS])
        locked = list(spy.spy_return)
        assert {account.kind for account in locked} == {LedgerKind.CREDITS, LedgerKind.AUDIO_STARS}
        assert [account.pk for account in locked] == sorted(account.pk for account in locked)


@pytest.mark.postgres
@pytest.mark.skipif(connection.vendor != "postgresql", reason="row locks need PostgreSQL")
@pytest.mark.django_db(transaction=True)
class TestConcurrentReserve:
    """
    Two workers reserving against one balance at the same time.

    Needs a real server: SQLite ignores SELECT ... FOR UPDATE.
    """

    def test_parallel_reserves_cannot_overdraw(self):
        user = UserFactory()
        CreditTransactionFactory(user=user, amount=1000)

        def reserve_600():
            connection.close()  # Force new connection for thread
            try:
                ledger.reserve(user, 600, tag=STORY_RESERVE)
            except InsufficientBalance:
                return False
            return True

        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [executor.submit(reserve_600) for _ in range(2)]
            results = sorted(future.result() for future in as_completed(futures))

        assert results == [False, True]
        assert ledger.balance(user) == 400
        assert CreditTransaction.objects.filter(user=user, type=EntryType.RESERVE).count() == 1
