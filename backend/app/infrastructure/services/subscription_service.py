"""
Subscription Service

Keeps local subscription rows in step with the billing provider:
- Upsert from normalized provider events (webhooks, checkout sync)
- Resolve the subscription that decides a user's plan, refreshing
  it from the provider when it looks stale
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.domain.subscription import (
    Plan,
    Subscription,
    SubscriptionEvent,
    effective_plan,
    needs_refresh,
    resolve_plan,
    select_current_subscription,
)
from app.infrastructure.db.models.user import User
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.infrastructure.db.repositories.user_repository import UserRepository
from app.infrastructure.exceptions import TradeCardError
from app.infrastructure.payments.base import BillingProvider


logger = logging.getLogger(__name__)


class SubscriptionService:
    """
    Subscription upserter and plan resolver.

    The provider is only needed for checkout sync and refreshes; pure
    lookups work without one.
    """

    def __init__(
        self,
        session: AsyncSession,
        provider: Optional[BillingProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self._session = session
        self._users = UserRepository(session)
        self._subscriptions = SubscriptionRepository(session)
        self._provider = provider
        self._settings = settings or get_settings()

    # =========================================================================
    # Upserter
    # =========================================================================

    def plan_for(self, event: SubscriptionEvent) -> Plan:
        return resolve_plan(
            event.product_name,
            product_id=event.product_id,
            price_id=event.price_id,
            plan_map=self._settings.plan_product_map,
        )

    async def upsert_from_event(self, event: SubscriptionEvent) -> Optional[Subscription]:
        """
        Apply a provider event for whichever user owns its customer email.

        Events without an email are dropped with a warning; no user or
        subscription row is created for them.
        """
        if not event.customer_email:
            logger.warning(
                f"Dropping {event.provider.value} event for subscription "
                f"{event.subscription_id}: no customer email"
            )
            return None

        user = await self._users.get_or_create(event.customer_email, event.customer_name)
        return await self.upsert_for_user(user, event)

    async def upsert_for_user(self, user: User, event: SubscriptionEvent) -> Subscription:
        """Write the event onto the (user, provider) subscription row."""
        if event.customer_id:
            await self._users.set_customer_id(user.id, event.provider, event.customer_id)
        return await self._subscriptions.upsert(user.id, event, self.plan_for(event))

    async def sync_checkout(self, user: User, checkout_id: str) -> Subscription:
        """
        Record a completed checkout as an active subscription of the caller.

        Raises:
            NotFoundError: checkout unknown or not completed
            ProviderError: provider call failed
        """
        provider = self._require_provider()
        event = await provider.fetch_checkout(checkout_id)
        subscription = await self.upsert_for_user(user, event)
        logger.info(
            f"Synced checkout {checkout_id} for user {user.id}: plan={subscription.plan.value}"
        )
        return subscription

    # =========================================================================
    # Plan Resolver
    # =========================================================================

    async def list_subscriptions(self, user_id: UUID) -> List[Subscription]:
        return await self._subscriptions.list_for_user(user_id)

    async def get_current_subscription(
        self,
        user_id: UUID,
        refresh: bool = False,
        now: Optional[datetime] = None,
    ) -> Optional[Subscription]:
        """
        The subscription that decides the user's plan.

        Refreshes from the provider when the period has ended, the status
        is not active, or `refresh` is set.
        """
        current = select_current_subscription(await self.list_subscriptions(user_id))
        if current is None:
            return None

        now = now or datetime.now(timezone.utc)
        if needs_refresh(current, now=now, force=refresh):
            return await self.refresh(current)
        return current

    async def get_plan(self, user_id: UUID) -> Plan:
        """Plan of the most recent live subscription; free otherwise."""
        return effective_plan(await self._subscriptions.get_current(user_id))

    async def refresh(self, subscription: Subscription) -> Subscription:
        """
        Re-fetch a subscription from its provider and persist the result.

        Only the configured provider is asked. Any failure is logged and
        the stored record is returned unchanged.
        """
        provider = self._provider
        if (
            provider is None
            or not provider.supports_fetch
            or provider.name != subscription.provider
            or not subscription.provider_id
        ):
            return subscription

        try:
            event = await provider.fetch_subscription(subscription.provider_id)
            if event is None:
                logger.warning(
                    f"{provider.name.value} has no subscription {subscription.provider_id}; "
                    f"keeping local record"
                )
                return subscription

            async with self._session.begin_nested():
                if event.customer_id:
                    await self._users.set_customer_id(
                        subscription.user_id, event.provider, event.customer_id
                    )
                refreshed = await self._subscriptions.upsert(
                    subscription.user_id, event, self.plan_for(event)
                )
            logger.info(
                f"Refreshed subscription {subscription.provider_id}: "
                f"{subscription.status.value} -> {refreshed.status.value}"
            )
            return refreshed

        except (TradeCardError, SQLAlchemyError) as e:
            logger.warning(
                f"Failed to refresh subscription {subscription.provider_id}: {e}"
            )
            return subscription

    async def refresh_period_ended(self, limit: int = 50, now: Optional[datetime] = None) -> int:
        """Refresh live subscriptions whose period has ended. Returns how many changed."""
        now = now or datetime.now(timezone.utc)
        stale = await self._subscriptions.list_period_ended(now, limit=limit)
        changed = 0
        for subscription in stale:
            refreshed = await self.refresh(subscription)
            if refreshed is not subscription:
                changed += 1
        logger.info(f"Refreshed {changed}/{len(stale)} period-ended subscriptions")
        return changed

    def _require_provider(self) -> BillingProvider:
        if self._provider is None:
            raise TradeCardError("No billing provider configured")
        return self._provider
