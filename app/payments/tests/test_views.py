"""Integration tests for the payments API."""

from unittest.mock import patch

import pytest

from payments.exceptions import InvoicingError, PaymentProviderError
from payments.ledger import EntryType, ledger
from payments.models import Order
from payments.state_machines import OrderStatus
from payments.tests.factories import OrderFactory, PricingPlanFactory

BASE_URL = "/api/v1/payments/"


@pytest.mark.django_db
class TestPricingPlanList:
    def test_public_and_active_only(self, api_client, plan):
        PricingPlanFactory(code="retired", is_active=False)

        response = api_client.get(f"{BASE_URL}plans/")

        assert response.status_code == 200
        rows = response.json()
        assert [row["code"] for row in rows] == ["pack_1000"]
        assert rows[0]["effective_price_cents"] == 2990
        assert rows[0]["promo_active"] is False


class TestCouponValidate:
    def test_prices_plan(self, authenticated_client, plan, coupon):
        response = authenticated_client.post(
            f"{BASE_URL}coupons/validate/",
            {"code": "winter10", "plan_code": "pack_1000"},
            format="json",
        )

        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "code": "WINTER10",
            "subtotal_cents": 2990,
            "discount_cents": 299,
            "total_cents": 2691,
            "currency": "HUF",
        }

    def test_unknown_coupon(self, authenticated_client, plan):
        response = authenticated_client.post(
            f"{BASE_URL}coupons/validate/",
            {"code": "NOPE", "plan_code": "pack_1000"},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "COUPON_NOT_FOUND"

    def test_unknown_plan(self, authenticated_client, coupon):
        response = authenticated_client.post(
            f"{BASE_URL}coupons/validate/",
            {"code": "WINTER10", "plan_code": "pack_missing"},
            format="json",
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "PLAN_NOT_FOUND"

    def test_requires_authentication(self, api_client, plan):
        response = api_client.post(
            f"{BASE_URL}coupons/validate/",
            {"code": "WINTER10", "plan_code": "pack_1000"},
            format="json",
        )

        assert response.status_code == 401


class TestCheckout:
    def test_creates_order(self, authenticated_client, user, plan, fake_provider):
        with patch("payments.services.checkout.get_payment_provider", return_value=fake_provider):
            response = authenticated_client.post(
                f"{BASE_URL}checkout/", {"plan_code": "pack_1000"}, format="json"
            )

        assert response.status_code == 201
        body = response.json()
        order = Order.objects.get(pk=body["order_id"])
        assert order.user == user
        assert order.status == OrderStatus.PENDING_PAYMENT
        assert body["checkout_url"].endswith(f"cs_{order.pk}")
        assert body["provider"] == "stripe"

    def test_missing_plan_code(self, authenticated_client):
        response = authenticated_client.post(f"{BASE_URL}checkout/", {}, format="json")

        assert response.status_code == 400

    def test_provider_error(self, authenticated_client, plan, fake_provider):
        fake_provider.create_checkout_session.side_effect = PaymentProviderError("Stripe down")

        with patch("payments.services.checkout.get_payment_provider", return_value=fake_provider):
            response = authenticated_client.post(
                f"{BASE_URL}checkout/", {"plan_code": "pack_1000"}, format="json"
            )

        assert response.status_code == 502
        assert Order.objects.get().status == OrderStatus.FAILED


class TestOrders:
    def test_list_only_own(self, authenticated_client, pending_order, other_user, plan):
        OrderFactory(user=other_user, plan=plan)

        response = authenticated_client.get(f"{BASE_URL}orders/")

        assert response.status_code == 200
        rows = response.json()
        assert [row["id"] for row in rows] == [str(pending_order.pk)]
        assert rows[0]["items"][0]["plan_code_snapshot"] == "pack_1000"
        assert rows[0]["has_invoice"] is False

    def test_detail(self, authenticated_client, pending_order):
        response = authenticated_client.get(f"{BASE_URL}orders/{pending_order.pk}/")

        assert response.status_code == 200
        assert response.json()["status"] == OrderStatus.PENDING_PAYMENT

    def test_foreign_order_is_404(self, authenticated_client, other_user, plan):
        foreign = OrderFactory(user=other_user, plan=plan)

        response = authenticated_client.get(f"{BASE_URL}orders/{foreign.pk}/")

        assert response.status_code == 404


class TestOrderInvoice:
    def test_no_invoice_yet(self, authenticated_client, paid_order):
        response = authenticated_client.get(f"{BASE_URL}orders/{paid_order.pk}/invoice/")

        assert response.status_code == 404
        assert response.json()["error_code"] == "INVOICE_NOT_FOUND"

    def test_public_url(self, authenticated_client, user, plan):
        order = OrderFactory(user=user, plan=plan, status=OrderStatus.PAID, invoice_id=77)

        with patch(
            "payments.views.BillingoClient.get_public_url",
            return_value="https://app.billingo.hu/document-access/abc",
        ):
            response = authenticated_client.get(f"{BASE_URL}orders/{order.pk}/invoice/")

        assert response.status_code == 200
        assert response.json() == {
            "invoice_id": 77,
            "url": "https://app.billingo.hu/document-access/abc",
        }

    def test_billingo_failure(self, authenticated_client, user, plan):
        order = OrderFactory(user=user, plan=plan, status=OrderStatus.PAID, invoice_id=77)

        with patch(
            "payments.views.BillingoClient.get_public_url",
            side_effect=InvoicingError("Billingo down"),
        ):
            response = authenticated_client.get(f"{BASE_URL}orders/{order.pk}/invoice/")

        assert response.status_code == 502


class TestBalance:
    def test_balances(self, authenticated_client, user):
        ledger.grant(user, 1000, type=EntryType.PURCHASE, reason="test", source="test")

        response = authenticated_client.get(f"{BASE_URL}balance/")

        assert response.status_code == 200
        assert response.json() == {"credits": 1000, "audio_stars": 0}
