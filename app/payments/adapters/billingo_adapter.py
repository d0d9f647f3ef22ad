"""
Billingo invoicing adapter.

Paid orders get a paid, 0% VAT ("AAM") invoice. The flow is create
partner, then create document, then e-mail the document to the buyer.
Invoicing is best-effort: callers log InvoicingError and keep the order
paid.

Configuration (via settings):
- BILLINGO_API_KEY: API key (X-API-KEY header)
- BILLINGO_BLOCK_ID: Invoice block, 0 for the account default
- BILLINGO_API_TIMEOUT_SECONDS: API call timeout (default: 15)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings
from django.utils import timezone

from payments.exceptions import InvoicingError

if TYPE_CHECKING:
    from authentication.models import BillingAddress, User
    from payments.models import Order, OrderItem

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.billingo.hu/v3"

DEFAULT_PARTNER_NAME = "Vásárló"
HUNGARY_ALIASES = {"HU", "Hungary", "Magyarország"}
DEFAULT_ADDRESS = {
    "country_code": "HU",
    "post_code": "0000",
    "city": "Budapest",
    "address": "N/A",
}


@dataclass
class BillingProfile:
    """Who the invoice is issued to."""

    email: str
    first_name: str = ""
    last_name: str = ""
    billing_address: BillingAddress | None = None

    @classmethod
    def for_user(cls, user: User) -> BillingProfile:
        return cls(
            email=user.email or "",
            first_name=user.first_name or "",
            last_name=user.last_name or "",
            billing_address=getattr(user, "billing_address", None),
        )


class BillingoClient:
    """Minimal Billingo v3 REST client."""

    def __init__(self, api_key: str | None = None, timeout: int | None = None):
        self.api_key = api_key if api_key is not None else settings.BILLINGO_API_KEY
        self.timeout = timeout or getattr(settings, "BILLINGO_API_TIMEOUT_SECONDS", 15)

    def create_partner(self, partner: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/partners", partner)

    def create_document(self, document: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/documents", document)

    def send_document(self, document_id: int, emails: list[str]) -> dict[str, Any]:
        return self._request("POST", f"/documents/{document_id}/send", {"emails": emails})

    def get_public_url(self, document_id: int) -> str:
        result = self._request("GET", f"/documents/{document_id}/public-url")
        return result.get("public_url") or ""

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.api_key:
            raise InvoicingError("BILLINGO_API_KEY is not configured")

        start_time = time.time()
        try:
            response = requests.request(
                method,
                f"{API_BASE_URL}{path}",
                json=body,
                headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise InvoicingError(f"Failed to communicate with Billingo: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        if not response.ok:
            logger.error(
                "billingo.api_error",
                extra={
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            raise InvoicingError(
                f"Billingo API error: {response.status_code} {response.reason}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        logger.debug("billingo.request_completed", extra={"path": path, "duration_ms": duration_ms})
        return response.json() if response.content else {}


def build_partner(profile: BillingProfile) -> dict[str, Any]:
    """Billingo partner payload; falls back to a placeholder address when incomplete."""
    address = profile.billing_address
    full_name = f"{profile.first_name} {profile.last_name}".strip()
    name = ((address.name if address else "") or full_name or DEFAULT_PARTNER_NAME).strip()

    if address and address.postal_code.strip() and address.city.strip() and address.street.strip():
        partner_address = {
            "country_code": "HU" if address.country in HUNGARY_ALIASES else "XX",
            "post_code": address.postal_code.strip(),
            "city": address.city.strip(),
            "address": address.street.strip(),
        }
    else:
        logger.warning(
            "billingo.default_address_used",
            extra={"has_billing_address": address is not None},
        )
        partner_address = dict(DEFAULT_ADDRESS)

    partner: dict[str, Any] = {"name": name, "address": partner_address}
    if profile.email.strip():
        partner["emails"] = [profile.email]
    if address and (address.tax_number or "").strip():
        partner["taxcode"] = address.tax_number.strip()
    return partner


def build_document_items(order: Order, items: list[OrderItem]) -> list[dict[str, Any]]:
    lines = [
        {
            "name": f"{item.plan_name_snapshot} ({item.credits_per_unit_snapshot} mesetallér)",
            "unit_price": item.line_subtotal_cents,
            "unit_price_type": "gross",
            "quantity": item.quantity,
            "unit": "db",
            "vat": "AAM",
            "comment": f"Rendelés: {str(order.id)[:8]}",
        }
        for item in items
    ]
    if order.discount_cents > 0:
        lines.append(
            {
                "name": "Kedvezmény",
                "unit_price": -order.discount_cents,
                "unit_price_type": "gross",
                "quantity": 1,
                "unit": "db",
                "vat": "AAM",
                "comment": "Voucher kedvezmény",
            }
        )
    return lines


def create_invoice(
    order: Order,
    items: list[OrderItem],
    billing_profile: BillingProfile,
    client: BillingoClient | None = None,
) -> int:
    """
    Issue a paid invoice for order and e-mail it to the buyer.

    Returns:
        The Billingo document id

    Raises:
        InvoicingError: Partner or document creation failed. A failed
            e-mail is logged and does not raise.
    """
    client = client or BillingoClient()

    partner = client.create_partner(build_partner(billing_profile))
    partner_id = partner.get("id")
    if not partner_id:
        raise InvoicingError("Failed to create partner: no ID returned")

    today = timezone.localdate().isoformat()
    document = client.create_document(
        {
            "partner_id": partner_id,
            "block_id": settings.BILLINGO_BLOCK_ID,
            "type": "invoice",
            "fulfillment_date": today,
            "due_date": today,
            "payment_method": "online_bankcard",
            "language": "hu",
            "currency": order.currency,
            "conversion_rate": 1,
            "electronic": False,
            "paid": True,
            "items": build_document_items(order, items),
            "comment": f"Online rendelés: {order.id}",
        }
    )
    invoice_id = document.get("id")
    if not invoice_id:
        raise InvoicingError("Failed to create invoice: no ID returned")

    logger.info("billingo.invoice_created", extra={"order_id": str(order.id), "invoice_id": invoice_id})

    if billing_profile.email.strip():
        try:
            client.send_document(invoice_id, [billing_profile.email])
        except InvoicingError:
            logger.error(
                "billingo.invoice_send_failed",
                extra={"order_id": str(order.id), "invoice_id": invoice_id},
                exc_info=True,
            )

    return invoice_id
