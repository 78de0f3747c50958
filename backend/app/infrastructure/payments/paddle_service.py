"""
Paddle Billing Service

Paddle Billing REST API over httpx. Webhooks carry a
`Paddle-Signature: ts=...;h1=...` header where h1 is an HMAC-SHA256
of "<ts>:<raw body>".
"""

import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from app.config.settings import Settings
from app.domain.subscription import (
    BillingProviderName,
    CheckoutResponse,
    PortalResponse,
    SubscriptionEvent,
    SubscriptionStatus,
    is_known_status,
)
from app.infrastructure.exceptions import NotFoundError, WebhookVerificationError
from app.infrastructure.payments.base import (
    CHECKOUT_PERIOD,
    RestBillingProvider,
    as_str,
    hmac_sha256_hex,
    parse_timestamp,
)


logger = logging.getLogger(__name__)


PADDLE_URLS = {
    "sandbox": "https://sandbox-api.paddle.com",
    "production": "https://api.paddle.com",
}

COMPLETED_TRANSACTION_STATUSES = {"paid", "completed"}


def parse_signature_header(header: str) -> dict[str, str]:
    """'ts=1671552777;h1=abc' -> {'ts': '1671552777', 'h1': 'abc'}"""
    parts = {}
    for chunk in header.split(";"):
        key, sep, value = chunk.strip().partition("=")
        if sep:
            parts[key] = value
    return parts


class PaddleService(RestBillingProvider):
    """Paddle Billing provider."""

    name = BillingProviderName.PADDLE

    def __init__(self, settings: Settings):
        super().__init__(settings.paddle_api_key or "")
        self.base_url = PADDLE_URLS[settings.paddle_environment]
        self._webhook_secret = settings.paddle_webhook_secret or ""
        self._default_price_id = settings.paddle_price_id

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def fetch_subscription(self, subscription_id: str) -> Optional[SubscriptionEvent]:
        body = await self._request(
            "GET",
            f"/subscriptions/{subscription_id}",
            "fetch_subscription",
            params={"include": "next_transaction"},
        )
        if not body or not isinstance(body.get("data"), Mapping):
            return None
        event = self._event_from_data(body["data"])
        return await self.complete_event(event) if event else None

    async def fetch_checkout(self, checkout_id: str) -> SubscriptionEvent:
        """Sync from a completed transaction (Paddle's checkout record)."""
        body = await self._request("GET", f"/transactions/{checkout_id}", "fetch_checkout")
        data = (body or {}).get("data") or {}
        if data.get("status") not in COMPLETED_TRANSACTION_STATUSES:
            raise NotFoundError(
                "Transaction not found or not completed",
                operation="fetch_checkout",
            )

        price, product = self._first_item(data)
        now = datetime.now(timezone.utc)
        event = SubscriptionEvent(
            provider=self.name,
            subscription_id=as_str(data.get("subscription_id")) or str(checkout_id),
            status=SubscriptionStatus.ACTIVE,
            customer_id=as_str(data.get("customer_id")),
            product_id=as_str(price.get("product_id") or product.get("id")),
            product_name=product.get("name") or price.get("name") or price.get("description"),
            price_id=as_str(price.get("id")),
            checkout_id=str(checkout_id),
            current_period_start=now,
            current_period_end=now + CHECKOUT_PERIOD,
        )
        return await self.complete_event(event)

    async def complete_event(self, event: SubscriptionEvent) -> SubscriptionEvent:
        """Paddle payloads only carry customer_id; look up email and name."""
        if event.customer_email or not event.customer_id:
            return event

        body = await self._request("GET", f"/customers/{event.customer_id}", "fetch_customer")
        customer = (body or {}).get("data") or {}
        return event.model_copy(
            update={
                "customer_email": customer.get("email"),
                "customer_name": customer.get("name"),
            }
        )

    # =========================================================================
    # Checkout & Portal
    # =========================================================================

    async def create_checkout(
        self,
        customer_email: str,
        success_url: str,
        product_id: Optional[str] = None,
        customer_name: Optional[str] = None,
    ) -> CheckoutResponse:
        price_id = product_id or self._default_price_id
        if not price_id:
            raise self._unsupported("checkout without PADDLE_PRICE_ID")

        payload = {
            "items": [{"price_id": price_id, "quantity": 1}],
            "custom_data": {
                "customer_email": customer_email,
                "success_url": success_url,
            },
        }
        body = await self._request("POST", "/transactions", "create_checkout", json=payload)
        data = (body or {}).get("data") or {}
        url = (data.get("checkout") or {}).get("url")
        if not url:
            raise self._unsupported("checkout (no checkout URL, check the default payment link)")

        logger.info(f"Created Paddle transaction {data.get('id')} for {customer_email}")
        return CheckoutResponse(url=url, checkout_id=as_str(data.get("id")))

    async def create_portal_session(self, customer_id: str, return_url: str) -> PortalResponse:
        body = await self._request(
            "POST",
            f"/customers/{customer_id}/portal-sessions",
            "create_portal_session",
            json={},
        )
        urls = ((body or {}).get("data") or {}).get("urls") or {}
        url = (urls.get("general") or {}).get("overview")
        if not url:
            raise NotFoundError(
                "Customer portal not available",
                operation="create_portal_session",
            )
        return PortalResponse(url=url)

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        parts = parse_signature_header(headers.get("paddle-signature") or "")
        timestamp, signature = parts.get("ts"), parts.get("h1")
        if timestamp and signature:
            expected = hmac_sha256_hex(self._webhook_secret, timestamp.encode() + b":" + body)
            if hmac.compare_digest(expected, signature):
                return json.loads(body)

        raise WebhookVerificationError(
            "Invalid Paddle webhook signature",
            provider=self.name.value,
            operation="verify_webhook",
        )

    def parse_event(self, payload: Mapping[str, Any]) -> Optional[SubscriptionEvent]:
        event_type = payload.get("event_type") or ""
        if event_type and not event_type.startswith("subscription."):
            return None

        data = self._subscription_data(payload)
        if data is None:
            return None
        return self._event_from_data(data)

    @staticmethod
    def _first_item(data: Mapping[str, Any]) -> tuple[dict, dict]:
        items = data.get("items") or []
        item = items[0] if items else {}
        return item.get("price") or {}, item.get("product") or {}

    def _event_from_data(self, data: Mapping[str, Any]) -> Optional[SubscriptionEvent]:
        """Map a Paddle subscription entity to an event."""
        status = data.get("status")
        if not is_known_status(status):
            return None

        price, product = self._first_item(data)
        period = data.get("current_billing_period") or {}
        scheduled = data.get("scheduled_change") or {}
        custom = data.get("custom_data") or {}

        return SubscriptionEvent(
            provider=self.name,
            subscription_id=as_str(data.get("id")) or "",
            status=SubscriptionStatus(status),
            customer_email=custom.get("customer_email"),
            customer_id=as_str(data.get("customer_id")),
            product_id=as_str(price.get("product_id") or product.get("id")),
            product_name=product.get("name") or price.get("name") or price.get("description"),
            price_id=as_str(price.get("id")),
            current_period_start=parse_timestamp(period.get("starts_at")),
            current_period_end=parse_timestamp(period.get("ends_at")),
            cancel_at_period_end=scheduled.get("action") == "cancel",
        )
