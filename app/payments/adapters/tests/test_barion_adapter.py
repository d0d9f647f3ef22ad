"""
Tests for the Barion adapter.

requests.request is patched; no test talks to the Barion sandbox.
"""

import hashlib
import hmac
import json
from unittest.mock import patch

import pytest
import requests
from django.test import override_settings

from authentication.tests.factories import UserFactory
from payments.adapters.barion_adapter import (
    BarionProvider,
    from_barion_amount,
    to_barion_amount,
    validate_callback_url,
    validate_redirect_url,
)
from payments.exceptions import AmountLimitError, BarionError, WebhookSignatureError

REQUEST = "payments.adapters.barion_adapter.requests.request"


class TestAmountConversion:
    def test_huf_whole_units(self):
        assert to_barion_amount(2990, "HUF") == 2990
        assert from_barion_amount(2990, "huf") == 2990.0

    def test_eur_decimal(self):
        assert to_barion_amount(999, "EUR") == 9.99
        assert from_barion_amount(9.99, "EUR") == pytest.approx(999)

    def test_missing_total(self):
        assert from_barion_amount(None, "HUF") == 0.0


class TestUrlValidation:
    def test_https_required(self):
        with pytest.raises(ValueError, match="HTTPS"):
            validate_redirect_url("http://mesemondo.example/ok")

    def test_localhost_rejected(self):
        with pytest.raises(ValueError, match="localhost"):
            validate_redirect_url("https://localhost:3000/ok")

    def test_malformed(self):
        with pytest.raises(ValueError, match="format"):
            validate_callback_url("not a url")

    def test_valid(self):
        assert validate_callback_url("https://api.example.com/cb") == "https://api.example.com/cb"


class TestProviderConfiguration:
    @override_settings(BARION_POS_KEY="", BARION_PAYEE_EMAIL="shop@example.com")
    def test_pos_key_required(self):
        with pytest.raises(ValueError, match="BARION_POS_KEY"):
            BarionProvider()

    @override_settings(
        BARION_POS_KEY="key",
        BARION_PAYEE_EMAIL="shop@example.com",
        BARION_ENVIRONMENT="production",
    )
    def test_production_endpoint(self):
        provider = BarionProvider()

        assert provider.client.base_url == "https://api.barion.com/v2"


@pytest.mark.usefixtures("barion_settings")
class TestCreateCheckoutSession:
    def test_start_payment(self, checkout_params, order_id, http_response):
        with patch(REQUEST) as mock_request:
            mock_request.return_value = http_response(
                200, {"PaymentId": "barion-pay-1", "Status": "Prepared", "Errors": []}
            )

            session = BarionProvider().create_checkout_session(checkout_params)

        method, url = mock_request.call_args.args
        body = mock_request.call_args.kwargs["json"]
        assert method == "POST"
        assert url == "https://api.test.barion.com/v2/Payment/Start"
        assert body["POSKey"] == "pos-key-123"
        assert body["PaymentRequestId"] == order_id
        assert body["Currency"] == "HUF"
        assert body["Locale"] == "hu-HU"
        transaction = body["Transactions"][0]
        assert transaction["Total"] == 2990
        assert transaction["Payee"] == "shop@mesemondo.example"
        assert transaction["POSTransactionId"] == f"{order_id}-txn"

        assert session.id == "barion-pay-1"
        assert session.url == "https://secure.test.barion.com/Pay?id=barion-pay-1"
        assert session.amount_total == 2990
        assert session.metadata["payment_request_id"] == order_id

    def test_below_minimum(self, checkout_params):
        checkout_params.total_cents = 50

        with patch(REQUEST) as mock_request:
            with pytest.raises(AmountLimitError):
                BarionProvider().create_checkout_session(checkout_params)

        mock_request.assert_not_called()

    def test_localhost_redirect_rejected(self, checkout_params):
        with override_settings(BARION_REDIRECT_URL="https://localhost/ok"):
            with pytest.raises(ValueError):
                BarionProvider().create_checkout_session(checkout_params)

    def test_errors_in_ok_response(self, checkout_params, http_response):
        body = {"Errors": [{"Title": "Invalid", "Description": "Payee is not valid"}]}

        with patch(REQUEST, return_value=http_response(200, body)):
            with pytest.raises(BarionError, match="Payee is not valid") as exc_info:
                BarionProvider().create_checkout_session(checkout_params)

        assert exc_info.value.errors == body["Errors"]

    def test_http_error(self, checkout_params, http_response):
        with patch(REQUEST, return_value=http_response(500, {}, reason="Server Error")):
            with pytest.raises(BarionError) as exc_info:
                BarionProvider().create_checkout_session(checkout_params)

        assert exc_info.value.status_code == 500
        assert exc_info.value.is_retryable

    def test_missing_payment_id(self, checkout_params, http_response):
        with patch(REQUEST, return_value=http_response(200, {"Status": "Prepared"})):
            with pytest.raises(BarionError, match="Missing PaymentId"):
                BarionProvider().create_checkout_session(checkout_params)


@pytest.mark.usefixtures("barion_settings")
class TestGetPaymentState:
    def test_query_string(self, http_response):
        with patch(REQUEST) as mock_request:
            mock_request.return_value = http_response(
                200, {"PaymentId": "p 1", "Status": "Succeeded"}
            )

            state = BarionProvider().get_payment_state("p 1")

        assert state["Status"] == "Succeeded"
        method, url = mock_request.call_args.args
        assert method == "GET"
        assert url.endswith("/Payment/GetPaymentState?POSKey=pos-key-123&PaymentId=p%201")

    def test_connection_error(self):
        with patch(REQUEST, side_effect=requests.ConnectionError("refused")):
            with pytest.raises(BarionError, match="Failed to communicate"):
                BarionProvider().get_payment_state("p1")


@pytest.mark.django_db
@pytest.mark.usefixtures("barion_settings")
def test_ensure_customer_uses_email():
    user = UserFactory(email="parent@example.com")

    assert BarionProvider().ensure_customer(user) == "parent@example.com"
    assert BarionProvider().ensure_customer(user) == "parent@example.com"


@pytest.mark.usefixtures("barion_settings")
class TestVerifyWebhookSignature:
    body = json.dumps({"PaymentId": "barion-pay-1", "Status": "Succeeded"}).encode()

    def _signature(self, secret="barion-secret"):
        return "sha256=" + hmac.new(secret.encode(), self.body, hashlib.sha256).hexdigest()

    def test_valid(self):
        event = BarionProvider().verify_webhook_signature(self.body, self._signature())

        assert event.id == "barion-pay-1"
        assert event.data["Status"] == "Succeeded"
        assert event.livemode is False

    def test_wrong_secret(self):
        with pytest.raises(WebhookSignatureError, match="verification failed"):
            BarionProvider().verify_webhook_signature(self.body, self._signature("other"))

    def test_bad_format(self):
        with pytest.raises(WebhookSignatureError, match="format"):
            BarionProvider().verify_webhook_signature(self.body, "md5=abc")

    def test_secret_required(self):
        with override_settings(BARION_WEBHOOK_SECRET=""):
            with pytest.raises(WebhookSignatureError, match="required"):
                BarionProvider().verify_webhook_signature(self.body, self._signature())
