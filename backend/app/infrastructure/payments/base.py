"""
Billing Provider Interface

Every provider (Polar, Lemon Squeezy, Paddle) exposes the same
capabilities to the rest of the app and owns the mapping of its
payload shapes onto SubscriptionEvent.
"""

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

import httpx

from app.domain.subscription import (
    BillingProviderName,
    CheckoutResponse,
    PortalResponse,
    SubscriptionEvent,
    is_known_status,
)
from app.infrastructure.exceptions import ProviderError


logger = logging.getLogger(__name__)


# Period granted by a checkout sync until the first webhook arrives
CHECKOUT_PERIOD = timedelta(days=30)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from a provider payload; None if absent or malformed."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring malformed timestamp {value!r}")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def as_str(value: Any) -> Optional[str]:
    """Provider ids arrive as ints or strings; store them as strings."""
    if value is None or value == "":
        return None
    return str(value)


def hmac_sha256_hex(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class BillingProvider(ABC):
    """
    Capability interface implemented by each billing provider.

    Unsupported capabilities raise ProviderError; callers that only
    want to try (such as the plan resolver's refresh) check
    `supports_fetch` first.
    """

    name: BillingProviderName
    supports_fetch: bool = True

    # =========================================================================
    # Outbound API
    # =========================================================================

    @abstractmethod
    async def fetch_subscription(self, subscription_id: str) -> Optional[SubscriptionEvent]:
        """Current provider-side state of a subscription, or None if unknown."""

    @abstractmethod
    async def fetch_checkout(self, checkout_id: str) -> SubscriptionEvent:
        """
        A completed checkout as an active subscription event.

        Raises:
            NotFoundError: checkout does not exist or is not completed
        """

    @abstractmethod
    async def create_checkout(
        self,
        customer_email: str,
        success_url: str,
        product_id: Optional[str] = None,
        customer_name: Optional[str] = None,
    ) -> CheckoutResponse:
        """Create a hosted checkout and return its URL."""

    @abstractmethod
    async def create_portal_session(self, customer_id: str, return_url: str) -> PortalResponse:
        """Create a customer self-service portal session."""

    # =========================================================================
    # Webhooks
    # =========================================================================

    @abstractmethod
    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        """
        Check the webhook signature and return the decoded payload.

        Raises:
            WebhookVerificationError: signature missing or wrong
        """

    @abstractmethod
    def parse_event(self, payload: Mapping[str, Any]) -> Optional[SubscriptionEvent]:
        """
        Normalize a webhook payload.

        Returns None for anything that is not a subscription event with
        one of the four known statuses.
        """

    async def complete_event(self, event: SubscriptionEvent) -> SubscriptionEvent:
        """Fill in fields the webhook payload leaves out. Most providers send everything."""
        return event

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _subscription_data(payload: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        """The nested data object, if it carries a recognized status."""
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if not isinstance(data, Mapping):
            return None
        if not is_known_status(data.get("status")):
            return None
        return data

    def _unsupported(self, operation: str) -> ProviderError:
        return ProviderError(
            f"{self.name.value} does not support {operation}",
            provider=self.name.value,
            operation=operation,
        )

    def _error(self, operation: str, error: Exception) -> ProviderError:
        logger.error(f"{self.name.value} {operation} failed: {error}")
        return ProviderError(
            f"{self.name.value} {operation} failed",
            provider=self.name.value,
            operation=operation,
            original_error=error,
        )


class RestBillingProvider(BillingProvider):
    """Provider spoken to over its JSON REST API with httpx."""

    base_url: str = ""
    timeout: float = 30.0

    def __init__(self, api_key: str):
        self._api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Call the provider API.

        Returns:
            Decoded JSON body, or None on 404
        Raises:
            ProviderError: any other failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self._headers(),
                    json=json,
                    params=params,
                )
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(
                f"{self.name.value} API error: {e.response.status_code} - {e.response.text}"
            )
            raise self._error(operation, e)
        except httpx.HTTPError as e:
            raise self._error(operation, e)
