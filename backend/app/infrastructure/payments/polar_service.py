"""
Polar Billing Service

Polar.sh integration through the official polar-sdk: hosted checkout,
customer portal, subscription lookups and Standard Webhooks
signature verification.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from polar_sdk import Polar
from polar_sdk.webhooks import WebhookVerificationError as PolarVerificationError
from polar_sdk.webhooks import validate_event

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
    BillingProvider,
    as_str,
    parse_timestamp,
)


logger = logging.getLogger(__name__)


# Checkout states that mean the customer has paid
COMPLETED_CHECKOUT_STATUSES = {"succeeded", "confirmed"}


class PolarService(BillingProvider):
    """Polar.sh billing provider."""

    name = BillingProviderName.POLAR

    def __init__(self, settings: Settings, client: Optional[Polar] = None):
        self._webhook_secret = settings.polar_webhook_secret or ""
        self._default_product_id = settings.polar_product_id
        self._client = client or Polar(
            access_token=settings.polar_access_token,
            server=settings.polar_server,
        )

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def fetch_subscription(self, subscription_id: str) -> Optional[SubscriptionEvent]:
        try:
            subscription = await self._client.subscriptions.get_async(id=subscription_id)
        except Exception as e:
            raise self._error("fetch_subscription", e)

        if subscription is None:
            return None
        return self._event_from_data(subscription.model_dump(mode="json"))

    async def fetch_checkout(self, checkout_id: str) -> SubscriptionEvent:
        """
        Turn a completed Polar checkout into an active subscription event.

        The period is 30 days from now; the next subscription webhook
        replaces it with Polar's own bounds.
        """
        try:
            checkout = await self._client.checkouts.get_async(id=checkout_id)
        except Exception as e:
            raise self._error("fetch_checkout", e)

        data = checkout.model_dump(mode="json") if checkout is not None else {}
        if not data or data.get("status") not in COMPLETED_CHECKOUT_STATUSES:
            raise NotFoundError(
                "Checkout not found or not completed",
                operation="fetch_checkout",
            )

        product = data.get("product") or {}
        price = data.get("product_price") or {}
        now = datetime.now(timezone.utc)
        return SubscriptionEvent(
            provider=self.name,
            subscription_id=as_str(data.get("subscription_id")) or str(data["id"]),
            status=SubscriptionStatus.ACTIVE,
            customer_email=data.get("customer_email"),
            customer_name=data.get("customer_name"),
            customer_id=as_str(data.get("customer_id")) or data.get("customer_email"),
            product_id=as_str(data.get("product_id") or product.get("id")),
            product_name=product.get("name"),
            price_id=as_str(price.get("id")),
            checkout_id=str(data["id"]),
            current_period_start=now,
            current_period_end=now + CHECKOUT_PERIOD,
            cancel_at_period_end=False,
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
        product_id = product_id or self._default_product_id
        if not product_id:
            raise self._unsupported("checkout without POLAR_PRODUCT_ID")

        request = {
            "products": [product_id],
            "success_url": success_url,
            "customer_email": customer_email,
        }
        if customer_name:
            request["customer_name"] = customer_name

        try:
            checkout = await self._client.checkouts.create_async(request=request)
        except Exception as e:
            raise self._error("create_checkout", e)

        logger.info(f"Created Polar checkout {checkout.id} for {customer_email}")
        return CheckoutResponse(url=checkout.url, checkout_id=checkout.id)

    async def create_portal_session(self, customer_id: str, return_url: str) -> PortalResponse:
        try:
            session = await self._client.customer_sessions.create_async(
                request={"customer_id": customer_id}
            )
        except Exception as e:
            raise self._error("create_portal_session", e)

        logger.info(f"Created Polar portal session for customer {customer_id}")
        return PortalResponse(url=session.customer_portal_url)

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        try:
            validate_event(body=body, headers=dict(headers), secret=self._webhook_secret)
        except PolarVerificationError as e:
            raise WebhookVerificationError(
                "Invalid Polar webhook signature",
                provider=self.name.value,
                operation="verify_webhook",
                original_error=e,
            )
        return json.loads(body)

    def parse_event(self, payload: Mapping[str, Any]) -> Optional[SubscriptionEvent]:
        data = self._subscription_data(payload)
        if data is None:
            return None
        return self._event_from_data(data)

    def _event_from_data(self, data: Mapping[str, Any]) -> Optional[SubscriptionEvent]:
        """Map a Polar subscription object (webhook or API) to an event."""
        if not is_known_status(data.get("status")):
            logger.info(f"Ignoring Polar subscription status {data.get('status')!r}")
            return None

        customer = data.get("customer") or {}
        product = data.get("product") or {}
        price = data.get("price") or next(iter(data.get("prices") or []), None) or {}

        return SubscriptionEvent(
            provider=self.name,
            subscription_id=as_str(data.get("id")) or "",
            status=SubscriptionStatus(data["status"]),
            customer_email=customer.get("email"),
            customer_name=customer.get("name"),
            customer_id=as_str(customer.get("id") or data.get("customer_id")),
            product_id=as_str(product.get("id") or data.get("product_id")),
            product_name=product.get("name"),
            price_id=as_str(price.get("id")),
            current_period_start=parse_timestamp(data.get("current_period_start")),
            current_period_end=parse_timestamp(data.get("current_period_end")),
            cancel_at_period_end=bool(data.get("cancel_at_period_end")),
        )
