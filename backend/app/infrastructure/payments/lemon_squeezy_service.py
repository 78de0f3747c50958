"""
Lemon Squeezy Billing Service

Talks to the Lemon Squeezy JSON:API over httpx. Subscription fields live
under data.attributes, and webhooks are signed with an HMAC-SHA256 hex
digest of the raw body in the X-Signature header.
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


# Lemon Squeezy spells it the British way
STATUS_ALIASES = {"cancelled": SubscriptionStatus.CANCELED.value}


def normalize_status(value: Any) -> Any:
    return STATUS_ALIASES.get(value, value)


class LemonSqueezyService(RestBillingProvider):
    """Lemon Squeezy billing provider."""

    name = BillingProviderName.LEMON_SQUEEZY
    base_url = "https://api.lemonsqueezy.com/v1"

    def __init__(self, settings: Settings):
        super().__init__(settings.lemon_squeezy_api_key or "")
        self._webhook_secret = settings.lemon_squeezy_webhook_secret or ""
        self._store_id = settings.lemon_squeezy_store_id
        self._default_variant_id = settings.lemon_squeezy_variant_id

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.api+json"
        headers["Content-Type"] = "application/vnd.api+json"
        return headers

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def fetch_subscription(self, subscription_id: str) -> Optional[SubscriptionEvent]:
        body = await self._request("GET", f"/subscriptions/{subscription_id}", "fetch_subscription")
        if not body or not isinstance(body.get("data"), Mapping):
            return None
        return self._event_from_resource(body["data"])

    async def fetch_checkout(self, checkout_id: str) -> SubscriptionEvent:
        """
        Sync from a paid order.

        Lemon Squeezy redirects with the order id, so `checkout_id` is an order id.
        """
        body = await self._request("GET", f"/orders/{checkout_id}", "fetch_checkout")
        attributes = ((body or {}).get("data") or {}).get("attributes") or {}
        if attributes.get("status") != "paid":
            raise NotFoundError(
                "Order not found or not paid",
                operation="fetch_checkout",
            )

        item = attributes.get("first_order_item") or {}
        now = datetime.now(timezone.utc)
        return SubscriptionEvent(
            provider=self.name,
            subscription_id=str(checkout_id),
            status=SubscriptionStatus.ACTIVE,
            customer_email=attributes.get("user_email"),
            customer_name=attributes.get("user_name"),
            customer_id=as_str(attributes.get("customer_id")),
            product_id=as_str(item.get("product_id")),
            product_name=item.get("product_name"),
            price_id=as_str(item.get("variant_id")),
            checkout_id=str(checkout_id),
            current_period_start=now,
            current_period_end=now + CHECKOUT_PERIOD,
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
        variant_id = product_id or self._default_variant_id
        if not variant_id or not self._store_id:
            raise self._unsupported("checkout without LEMON_SQUEEZY_STORE_ID/VARIANT_ID")

        checkout_data = {"email": customer_email}
        if customer_name:
            checkout_data["name"] = customer_name

        payload = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_data": checkout_data,
                    "product_options": {"redirect_url": success_url},
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": str(self._store_id)}},
                    "variant": {"data": {"type": "variants", "id": str(variant_id)}},
                },
            }
        }
        body = await self._request("POST", "/checkouts", "create_checkout", json=payload)
        data = (body or {}).get("data") or {}
        url = (data.get("attributes") or {}).get("url")
        if not url:
            raise self._unsupported("checkout (no URL returned)")

        logger.info(f"Created Lemon Squeezy checkout {data.get('id')} for {customer_email}")
        return CheckoutResponse(url=url, checkout_id=as_str(data.get("id")))

    async def create_portal_session(self, customer_id: str, return_url: str) -> PortalResponse:
        """Lemon Squeezy hands out a signed portal URL per customer."""
        body = await self._request("GET", f"/customers/{customer_id}", "create_portal_session")
        attributes = ((body or {}).get("data") or {}).get("attributes") or {}
        url = (attributes.get("urls") or {}).get("customer_portal")
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
        signature = headers.get("x-signature") or ""
        expected = hmac_sha256_hex(self._webhook_secret, body)
        if not signature or not hmac.compare_digest(expected, signature):
            raise WebhookVerificationError(
                "Invalid Lemon Squeezy webhook signature",
                provider=self.name.value,
                operation="verify_webhook",
            )
        return json.loads(body)

    def parse_event(self, payload: Mapping[str, Any]) -> Optional[SubscriptionEvent]:
        event_name = ((payload.get("meta") or {}).get("event_name")) or ""
        if not event_name.startswith("subscription_"):
            return None

        data = payload.get("data")
        if not isinstance(data, Mapping):
            return None
        return self._event_from_resource(data)

    def _event_from_resource(self, data: Mapping[str, Any]) -> Optional[SubscriptionEvent]:
        """Map a `subscriptions` JSON:API resource to an event."""
        attributes = data.get("attributes") or {}
        status = normalize_status(attributes.get("status"))
        if not is_known_status(status):
            return None

        return SubscriptionEvent(
            provider=self.name,
            subscription_id=as_str(data.get("id")) or "",
            status=SubscriptionStatus(status),
            customer_email=attributes.get("user_email"),
            customer_name=attributes.get("user_name"),
            customer_id=as_str(attributes.get("customer_id")),
            product_id=as_str(attributes.get("product_id")),
            product_name=attributes.get("product_name"),
            price_id=as_str(attributes.get("variant_id")),
            current_period_start=parse_timestamp(attributes.get("created_at")),
            current_period_end=parse_timestamp(
                attributes.get("renews_at") or attributes.get("ends_at")
            ),
            cancel_at_period_end=bool(attributes.get("cancelled")),
        )
