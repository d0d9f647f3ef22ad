"""
Tests for payment Celery tasks.

Tasks are called synchronously; .delay is patched where a task queues
another one.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from core.services import ServiceResult
from payments.ledger import CreditTransaction, EntryType, ledger
from payments.models import Order, StripeEvent
from payments.state_machines import OrderStatus
from payments.tasks import (
    MAX_WEBHOOK_RETRIES,
    _process_event,
    process_barion_event,
    process_stripe_event,
    reconcile_paid_orders,
    retry_unprocessed_events,
)
from payments.tests.factories import (
    BarionEventFactory,
    OrderFactory,
    StripeEventFactory,
    barion_state_payload,
    checkout_completed_payload,
)


def _age(event, minutes):
    type(event).objects.filter(pk=event.pk).update(
        received_at=timezone.now() - timedelta(minutes=minutes)
    )


@pytest.mark.django_db
class TestProcessStripeEvent:
    def test_completed_checkout_grants_credits(self, user, pending_order):
        event = StripeEventFactory(payload=checkout_completed_payload(pending_order))

        result = process_stripe_event(str(event.pk))

        assert result["status"] == "processed"
        stored = StripeEvent.objects.get(pk=event.pk)
        assert stored.is_processed
        assert stored.attempts == 1
        assert Order.objects.get(pk=pending_order.pk).status == OrderStatus.PAID
        assert ledger.balance(user) == 1000

    def test_same_event_processed_once(self, user, pending_order):
        event = StripeEventFactory(payload=checkout_completed_payload(pending_order))

        process_stripe_event(str(event.pk))
        result = process_stripe_event(str(event.pk))

        assert result["status"] == "already_processed"
        assert ledger.balance(user) == 1000

    def test_two_events_for_one_order_grant_once(self, user, pending_order):
        first = StripeEventFactory(
            event_id="evt_a",
            payload=checkout_completed_payload(pending_order, event_id="evt_a"),
        )
        second = StripeEventFactory(
            event_id="evt_b",
            payload=checkout_completed_payload(pending_order, event_id="evt_b"),
        )

        process_stripe_event(str(first.pk))
        result = process_stripe_event(str(second.pk))

        assert result["status"] == "processed"
        assert ledger.balance(user) == 1000
        assert (
            CreditTransaction.objects.filter(order=pending_order, type=EntryType.PURCHASE).count()
            == 1
        )

    def test_amount_mismatch_is_terminal(self, user, pending_order):
        event = StripeEventFactory(
            payload=checkout_completed_payload(pending_order, amount_total=100)
        )

        result = process_stripe_event(str(event.pk))

        assert result["status"] == "terminal_failure"
        stored = StripeEvent.objects.get(pk=event.pk)
        assert stored.processed_at is not None
        assert "Amount mismatch" in stored.processing_error
        assert Order.objects.get(pk=pending_order.pk).status == OrderStatus.FAILED
        assert ledger.balance(user) == 0

    def test_unknown_event_type_is_processed(self):
        event = StripeEventFactory(type="customer.created", payload={"data": {"object": {}}})

        result = process_stripe_event(str(event.pk))

        assert result["status"] == "processed"

    def test_missing_event(self, db):
        result = process_stripe_event("00000000-0000-0000-0000-000000000000")

        assert result["status"] == "not_found"


@pytest.mark.django_db
class TestProcessEvent:
    def test_retryable_failure_leaves_event_unprocessed(self):
        event = StripeEventFactory()

        result = _process_event(
            StripeEvent,
            str(event.pk),
            lambda e: ServiceResult.failure("Order not found", error_code="ORDER_NOT_FOUND"),
        )

        assert result["status"] == "handler_failed"
        stored = StripeEvent.objects.get(pk=event.pk)
        assert stored.processed_at is None
        assert stored.processing_error == "Order not found"

    def test_exception_recorded_and_raised(self):
        event = StripeEventFactory()

        def explode(_event):
            raise RuntimeError("database went away")

        with pytest.raises(RuntimeError):
            _process_event(StripeEvent, str(event.pk), explode)

        stored = StripeEvent.objects.get(pk=event.pk)
        assert stored.attempts == 1
        assert stored.processing_error == "RuntimeError: database went away"
        assert stored.processed_at is None


@pytest.mark.django_db
class TestProcessBarionEvent:
    def test_succeeded_state_confirms_order(self, user, plan):
        order = OrderFactory(
            user=user,
            plan=plan,
            provider="barion",
            stripe_checkout_session_id=None,
            barion_payment_id="barion-pay-1",
        )
        event = BarionEventFactory(payload=barion_state_payload(order))

        result = process_barion_event(str(event.pk))

        assert result["status"] == "processed"
        assert Order.objects.get(pk=order.pk).status == OrderStatus.PAID
        assert ledger.balance(user) == 1000


@pytest.mark.django_db
class TestRetryUnprocessedEvents:
    def test_queues_old_unprocessed_events(self):
        stale = StripeEventFactory()
        _age(stale, 10)
        StripeEventFactory()
        done = StripeEventFactory(processed_at=timezone.now())
        _age(done, 10)
        exhausted = StripeEventFactory(attempts=MAX_WEBHOOK_RETRIES)
        _age(exhausted, 10)
        barion = BarionEventFactory()
        _age(barion, 10)

        with patch.object(process_stripe_event, "delay") as stripe_delay, patch.object(
            process_barion_event, "delay"
        ) as barion_delay:
            result = retry_unprocessed_events()

        assert result == {"queued_count": 2}
        stripe_delay.assert_called_once_with(str(stale.pk))
        barion_delay.assert_called_once_with(str(barion.pk))


@pytest.mark.django_db
class TestReconcilePaidOrders:
    def test_fulfills_stranded_paid_order(self, user, plan):
        order = OrderFactory(
            user=user,
            plan=plan,
            status=OrderStatus.PAID,
            paid_at=timezone.now() - timedelta(hours=1),
        )

        assert reconcile_paid_orders() == {"fulfilled_count": 1}
        assert ledger.balance(user) == 1000
        assert reconcile_paid_orders() == {"fulfilled_count": 0}
        assert CreditTransaction.objects.filter(order=order).count() == 1

    def test_recent_paid_orders_left_alone(self, user, paid_order):
        assert reconcile_paid_orders() == {"fulfilled_count": 0}
        assert ledger.balance(user) == 0
