"""
Barion payment provider.

Barion has no SDK; BarionApiClient talks to the REST API with requests and
BarionProvider implements the PaymentProvider contract on top of it.

Configuration (via settings):
- BARION_POS_KEY: Shop secret key
- BARION_PAYEE_EMAIL: Barion wallet that receives the money
- BARION_WEBHOOK_SECRET: HMAC secret for signed callbacks
- BARION_ENVIRONMENT: "production" or "sandbox"
- BARION_REDIRECT_URL / BARION_CALLBACK_URL: HTTPS only, no localhost
- BARION_API_TIMEOUT_SECONDS: API call timeout (default: 30)

Barion callbacks are usually unsigned and only carry a PaymentId; the
webhook view then asks GetPaymentState for the authoritative status. When
a "sha256=<hex>" signature header is present it is verified against the
raw body.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlparse

import requests
from django.conf import settings
from django.utils import timezone

from payments.adapters.base import (
    CheckoutParams,
    CheckoutSession,
    PaymentProvider,
    ProviderWebhookEvent,
)
from payments.exceptions import (
    AmountLimitError,
    BarionError,
    WebhookSignatureError,
)
from payments.state_machines import PaymentProviderName

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


API_ENDPOINTS = {
    "production": "https://api.barion.com/v2",
    "sandbox": "https://api.test.barion.com/v2",
}
PAYMENT_PAGE_DOMAINS = {
    "production": "https://secure.barion.com",
    "sandbox": "https://secure.test.barion.com",
}

MINIMUM_AMOUNTS = {"HUF": 100, "EUR": 50, "USD": 50}
DEFAULT_MINIMUM_AMOUNT = 50

PAYMENT_WINDOW = "00:15:00"
LOCALE = "hu-HU"

# Currencies Barion takes in whole units; the rest are sent as decimals
WHOLE_UNIT_CURRENCIES = {"HUF"}

SUCCESS_STATUSES = {"succeeded", "partiallysucceeded"}
CANCELED_STATUSES = {"canceled", "cancelled"}
FAILED_STATUSES = {"failed", "expired"}


def to_barion_amount(amount: int, currency: str) -> float | int:
    if currency.upper() in WHOLE_UNIT_CURRENCIES:
        return amount
    return round(amount / 100, 2)


def from_barion_amount(total: Any, currency: str) -> float:
    value = float(total or 0)
    if currency.upper() in WHOLE_UNIT_CURRENCIES:
        return value
    return value * 100


def validate_redirect_url(url: str) -> str:
    """
    Barion accepts only HTTPS redirect URLs on a real host.

    Raises:
        ValueError: Malformed, non-HTTPS or localhost URL
    """
    parsed = urlparse(url or "")
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid redirect URL format: {url}")
    if parsed.scheme != "https":
        raise ValueError(f"Redirect URL must use HTTPS protocol. Current: {parsed.scheme}:")
    if parsed.hostname in ("localhost", "127.0.0.1"):
        raise ValueError(
            "Barion does not accept localhost URLs. Use a public HTTPS URL "
            "(a tunnel such as ngrok for local development)."
        )
    return url


def validate_callback_url(url: str) -> str:
    parsed = urlparse(url or "")
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid callback URL format: {url}")
    if parsed.scheme != "https":
        raise ValueError("Callback URL must use HTTPS protocol")
    return url


class BarionApiClient:
    """
    Thin client for the Barion REST API.

    Barion can answer 200 with a non-empty "Errors" array; that is treated
    as a failure like any non-2xx response.
    """

    def __init__(self, base_url: str, pos_key: str, timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self.pos_key = pos_key
        self.timeout = timeout

    def start_payment(self, request: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/Payment/Start", body={**request, "POSKey": self.pos_key})

    def get_payment_state(self, payment_id: str) -> dict[str, Any]:
        path = (
            f"/Payment/GetPaymentState?POSKey={quote(self.pos_key)}"
            f"&PaymentId={quote(payment_id)}"
        )
        return self._request("GET", path)

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        operation = path.split("?")[0]
        start_time = time.time()
        try:
            response = requests.request(
                method,
                url,
                json=body if method == "POST" else None,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(
                "barion.request_failed",
                extra={"operation": operation, "duration_ms": (time.time() - start_time) * 1000},
                exc_info=True,
            )
            raise BarionError(f"Failed to communicate with Barion API: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        try:
            result = response.json()
        except ValueError:
            result = None

        if not response.ok:
            errors = result.get("Errors") if isinstance(result, dict) else None
            logger.error(
                "barion.api_error",
                extra={
                    "operation": operation,
                    "status_code": response.status_code,
                    "errors": errors,
                    "duration_ms": duration_ms,
                },
            )
            raise BarionError(
                f"Barion API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
                errors=errors,
            )

        if not isinstance(result, dict):
            raise BarionError("Invalid response from Barion API", status_code=response.status_code)

        errors = result.get("Errors") or []
        if errors:
            descriptions = ", ".join(str(e.get("Description", "")) for e in errors)
            logger.error(
                "barion.api_error",
                extra={"operation": operation, "errors": errors, "duration_ms": duration_ms},
            )
            raise BarionError(
                f"Barion API returned errors: {descriptions}",
                status_code=response.status_code,
                errors=errors,
            )

        logger.info(
            "barion.request_completed",
            extra={"operation": operation, "duration_ms": duration_ms},
        )
        return result


class BarionProvider(PaymentProvider):
    """
    Barion Smart Gateway implementation of PaymentProvider.

    Usage:
        provider = BarionProvider()
        session = provider.create_checkout_session(params)
        state = provider.get_payment_state(session.id)
    """

    name = PaymentProviderName.BARION

    def __init__(self) -> None:
        if not settings.BARION_POS_KEY:
            raise ValueError("BARION_POS_KEY is required when using Barion payment provider")
        if not settings.BARION_PAYEE_EMAIL:
            raise ValueError("BARION_PAYEE_EMAIL is required when using Barion payment provider")

        self.environment = (
            "production" if settings.BARION_ENVIRONMENT == "production" else "sandbox"
        )
        self.payee = settings.BARION_PAYEE_EMAIL
        self.client = BarionApiClient(
            API_ENDPOINTS[self.environment],
            settings.BARION_POS_KEY,
            timeout=getattr(settings, "BARION_API_TIMEOUT_SECONDS", 30),
        )

    def get_minimum_amount(self, currency: str) -> int:
        return MINIMUM_AMOUNTS.get(currency.upper(), DEFAULT_MINIMUM_AMOUNT)

    def ensure_customer(self, user: User) -> str:
        """Barion has no customer objects; the payer's e-mail stands in for one."""
        from payments.models import PaymentCustomer

        row, _ = PaymentCustomer.objects.get_or_create(
            user=user,
            provider=self.name,
            defaults={"customer_id": user.email},
        )
        return row.customer_id

    def create_checkout_session(self, params: CheckoutParams) -> CheckoutSession:
        """
        Start an immediate Barion payment and return the payment page URL.

        Raises:
            AmountLimitError: Total below the Barion minimum for the currency
            ValueError: Redirect or callback URL not acceptable to Barion
            BarionError: Barion API failure
        """
        redirect_url = validate_redirect_url(settings.BARION_REDIRECT_URL)
        callback_url = validate_callback_url(settings.BARION_CALLBACK_URL)

        currency = params.currency.upper()
        minimum = self.get_minimum_amount(currency)
        if params.total_cents < minimum:
            raise AmountLimitError(
                f"Amount too low for {currency}: {params.total_cents}. Minimum is {minimum}.",
                details={"total": params.total_cents, "minimum": minimum},
            )

        amount = to_barion_amount(params.total_cents, currency)
        description = f"{params.credits_total} Mesetallér"
        request = {
            "PaymentType": "Immediate",
            "PaymentWindow": PAYMENT_WINDOW,
            "GuestCheckout": True,
            "FundingSources": ["All"],
            "PaymentRequestId": params.order_id,
            "PayerHint": params.customer_email,
            "Transactions": [
                {
                    "POSTransactionId": f"{params.order_id}-txn",
                    "Payee": self.payee,
                    "Total": amount,
                    "Comment": description,
                    "Items": [
                        {
                            "Name": params.plan_name,
                            "Description": description,
                            "Quantity": 1,
                            "Unit": "db",
                            "UnitPrice": amount,
                            "ItemTotal": amount,
                            "SKU": params.plan_code,
                        }
                    ],
                }
            ],
            "Locale": LOCALE,
            "Currency": currency,
            "RedirectUrl": f"{redirect_url}?order_id={quote(params.order_id)}",
            "CallbackUrl": callback_url,
            "OrderNumber": params.order_id,
        }

        logger.info(
            "barion.payment_start",
            extra={"order_id": params.order_id, "amount": amount, "currency": currency},
        )
        result = self.client.start_payment(request)

        payment_id = result.get("PaymentId")
        if not payment_id:
            raise BarionError("Invalid response from Barion API: Missing PaymentId")

        status = result.get("Status") or ""
        if status.lower() in SUCCESS_STATUSES and result.get("RedirectUrl"):
            url = result["RedirectUrl"]
        else:
            url = f"{PAYMENT_PAGE_DOMAINS[self.environment]}/Pay?id={payment_id}"

        logger.info(
            "barion.payment_created",
            extra={"order_id": params.order_id, "payment_id": payment_id, "status": status},
        )
        return CheckoutSession(
            id=payment_id,
            url=url,
            amount_total=from_barion_amount(amount, currency),
            currency=currency,
            metadata={
                "order_id": params.order_id,
                "user_id": params.user_id,
                "plan_code": params.plan_code,
                "credits_total": str(params.credits_total),
                "payment_request_id": params.order_id,
                "barion_status": status,
            },
        )

    def get_payment_state(self, payment_id: str) -> dict[str, Any]:
        return self.client.get_payment_state(payment_id)

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> ProviderWebhookEvent:
        """
        Verify a "sha256=<hex>" HMAC of the raw body.

        Raises:
            WebhookSignatureError: No secret configured, malformed header,
                digest mismatch or a body that is not JSON
        """
        secret = settings.BARION_WEBHOOK_SECRET
        if not secret:
            raise WebhookSignatureError("BARION_WEBHOOK_SECRET is required for webhook verification")

        algorithm, _, received = (signature or "").partition("=")
        if algorithm != "sha256" or not received:
            raise WebhookSignatureError(
                'Invalid signature format. Expected "sha256=<hash>"',
            )

        expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
        if not hmac.compare_digest(received, expected):
            raise WebhookSignatureError("Webhook signature verification failed")

        try:
            data = json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureError("Webhook body is not valid JSON") from e

        return ProviderWebhookEvent(
            id=str(data.get("PaymentId") or data.get("EventId") or uuid.uuid4()),
            type=data.get("EventType") or "payment.completed",
            data=data,
            created=timezone.now(),
            livemode=self.environment == "production",
        )
