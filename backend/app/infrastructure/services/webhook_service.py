"""
Webhook Ingestor

Turns verified billing webhooks into subscription upserts. Anything that
is not a subscription event with a known status is logged and ignored.
"""

import logging
from enum import Enum
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.payments.base import BillingProvider
from app.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    PROCESSED = "processed"
    IGNORED = "ignored"
    DROPPED = "dropped"


def event_type_of(payload: Mapping[str, Any]) -> str:
    """Best-effort event name for logging across provider payload shapes."""
    return str(
        payload.get("type")
        or payload.get("event_type")
        or (payload.get("meta") or {}).get("event_name")
        or "unknown"
    )


class WebhookIngestor:
    """
    Applies provider webhook payloads to local state.

    Persistence errors propagate so the endpoint answers 500 and the
    provider redelivers.
    """

    def __init__(self, session: AsyncSession, provider: BillingProvider):
        self._provider = provider
        self._subscriptions = SubscriptionService(session, provider=provider)

    async def ingest(self, payload: Mapping[str, Any]) -> WebhookOutcome:
        event_type = event_type_of(payload)
        event = self._provider.parse_event(payload)
        if event is None:
            logger.info(f"Ignoring {self._provider.name.value} webhook {event_type}")
            return WebhookOutcome.IGNORED

        event = await self._provider.complete_event(event)
        subscription = await self._subscriptions.upsert_from_event(event)
        if subscription is None:
            return WebhookOutcome.DROPPED

        logger.info(
            f"Processed {self._provider.name.value} webhook {event_type} "
            f"for user {subscription.user_id}"
        )
        return WebhookOutcome.PROCESSED
