"""
Stripe payment provider.

All Stripe API interactions go through StripeProvider so error handling,
timeouts, idempotency and logging are consistent.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotent checkout session creation keyed by order id

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries inside the SDK (default: 3)
- STRIPE_SUCCESS_URL / STRIPE_CANCEL_URL: Checkout redirect targets

Currency units:
    HUF amounts are stored as whole forints, but the Stripe API expects
    HUF in hundredths. to_stripe_amount() and from_stripe_amount() convert
    between the two; every other currency passes through unchanged.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.adapters.base import (
    CheckoutParams,
    CheckoutSession,
    PaymentProvider,
    ProviderWebhookEvent,
)
from payments.exceptions import (
    AmountLimitError,
    StripeAPIUnavailableError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookSignatureError,
)
from payments.state_machines import PaymentProviderName

if TYPE_CHECKING:
    from authentication.models import User


WEBHOOK_TOLERANCE_SECONDS = 300

# Currencies stored in whole units that Stripe expects in hundredths
WHOLE_UNIT_CURRENCIES = {"huf"}

MINIMUM_AMOUNTS = {"huf": 175}
DEFAULT_MINIMUM_AMOUNT = 50


def to_stripe_amount(amount: int, currency: str) -> int:
    if currency.lower() in WHOLE_UNIT_CURRENCIES:
        return amount * 100
    return amount


def from_stripe_amount(amount: int | None, currency: str) -> float:
    if amount is None:
        return 0.0
    if currency.lower() in WHOLE_UNIT_CURRENCIES:
        return amount / 100
    return float(amount)


class StripeProvider(PaymentProvider):
    """
    Stripe Checkout implementation of PaymentProvider.

    Usage:
        provider = StripeProvider()
        customer_id = provider.ensure_customer(user)
        session = provider.create_checkout_session(params)
    """

    name = PaymentProviderName.STRIPE

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key, timeout and retries."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def get_minimum_amount(self, currency: str) -> int:
        return MINIMUM_AMOUNTS.get(currency.lower(), DEFAULT_MINIMUM_AMOUNT)

    # =========================================================================
    # Customers
    # =========================================================================

    def ensure_customer(self, user: User) -> str:
        """
        Return the user's Stripe customer id, creating the customer if needed.

        A stored id whose customer was deleted on Stripe's side is dropped
        and replaced.
        """
        from payments.models import PaymentCustomer

        self._configure_stripe()
        logger = self.get_logger()

        row = PaymentCustomer.objects.filter(user=user, provider=self.name).first()
        if row is not None:
            try:
                customer = stripe.Customer.retrieve(row.customer_id)
                if not getattr(customer, "deleted", False):
                    return row.customer_id
            except stripe.InvalidRequestError:
                pass
            logger.info(
                "stripe.customer_missing",
                extra={"user_id": user.pk, "customer_id": row.customer_id},
            )
            row.delete()

        log_context = {"operation": "create_customer", "user_id": user.pk}
        start_time = time.time()
        try:
            customer = stripe.Customer.create(
                email=user.email,
                metadata={"userId": str(user.pk)},
            )
        except Exception as e:
            self._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        PaymentCustomer.objects.create(
            user=user,
            provider=self.name,
            customer_id=customer.id,
        )
        logger.info(
            "stripe.customer_created",
            extra={
                **log_context,
                "customer_id": customer.id,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return customer.id

    # =========================================================================
    # Checkout
    # =========================================================================

    def create_checkout_session(self, params: CheckoutParams) -> CheckoutSession:
        """
        Create a Stripe Checkout session for a single-line order.

        The idempotency key is derived from the order id, so a retried call
        returns the session that was already created.

        Raises:
            AmountLimitError: Total below the Stripe minimum for the currency
            StripeError: Any Stripe API failure, translated
        """
        self._configure_stripe()
        logger = self.get_logger()

        currency = params.currency.lower()
        minimum = self.get_minimum_amount(currency)
        if params.total_cents < minimum:
            raise AmountLimitError(
                f"Amount too low for {currency.upper()}: {params.total_cents}. "
                f"Stripe minimum is {minimum}.",
                details={"total": params.total_cents, "minimum": minimum},
            )

        unit_amount = to_stripe_amount(params.total_cents, currency)
        idempotency_key = f"checkout_create:{params.order_id}"

        log_context = {
            "operation": "create_checkout_session",
            "order_id": params.order_id,
            "total_cents": params.total_cents,
            "unit_amount": unit_amount,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }

        session_params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": unit_amount,
                        "product_data": {
                            "name": params.plan_name,
                            "description": f"{params.credits_total} Mesetallér",
                            "metadata": {"plan_code": params.plan_code},
                        },
                    },
                    "quantity": 1,
                }
            ],
            "success_url": (
                f"{settings.STRIPE_SUCCESS_URL}"
                f"?session_id={{CHECKOUT_SESSION_ID}}&order_id={params.order_id}"
            ),
            "cancel_url": settings.STRIPE_CANCEL_URL,
            "metadata": {
                "order_id": params.order_id,
                "user_id": params.user_id,
                "plan_code": params.plan_code,
                "credits_total": str(params.credits_total),
            },
            "payment_intent_data": {"metadata": {"order_id": params.order_id}},
        }
        if params.customer_id:
            session_params["customer"] = params.customer_id
        elif params.customer_email:
            session_params["customer_email"] = params.customer_email

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            session = stripe.checkout.Session.create(
                idempotency_key=idempotency_key,
                **session_params,
            )
        except Exception as e:
            self._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        session_currency = session.currency or currency
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "session_id": session.id,
                "amount_total": session.amount_total,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )

        metadata = dict(session.metadata or {})
        if session.customer:
            metadata["customer_id"] = str(session.customer)
        return CheckoutSession(
            id=session.id,
            url=session.url,
            amount_total=from_stripe_amount(session.amount_total, session_currency),
            currency=session_currency.upper(),
            metadata=metadata,
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> ProviderWebhookEvent:
        """
        Verify and parse a Stripe webhook event.

        Raises:
            WebhookSignatureError: Missing or invalid signature, or a
                timestamp outside the 300 second tolerance
        """
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
                tolerance=WEBHOOK_TOLERANCE_SECONDS,
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise WebhookSignatureError(
                "Invalid webhook signature",
                details={"error": str(e)},
            ) from e

        data = event.to_dict()
        created = data.get("created")
        return ProviderWebhookEvent(
            id=data["id"],
            type=data["type"],
            data=data,
            created=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
            livemode=bool(data.get("livemode", False)),
            api_version=data.get("api_version") or "",
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            StripeInvalidRequestError: Invalid parameters or credentials
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: Network failure or Stripe 5xx
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(str(error), stripe_code=error.code) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            if "timed out" in str(error).lower():
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.StripeError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        # Not a Stripe error: let it propagate unchanged
        logger.error(
            f"Unexpected error calling Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
