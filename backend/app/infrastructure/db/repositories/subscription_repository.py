"""
Subscription Repository

Data access layer for subscription persistence.
Maps between the SQLModel row and the Subscription domain entity.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import (
    BillingProviderName,
    LIVE_STATUSES,
    Plan,
    Subscription,
    SubscriptionEvent,
    SubscriptionStatus,
)
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.subscription import SubscriptionModel


logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """
    Repository for subscription data access.

    Writes go through a single PostgreSQL upsert on (user_id, provider).
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def list_for_user(self, user_id: UUID) -> List[Subscription]:
        """All subscriptions of a user, newest first."""
        statement = (
            select(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .order_by(SubscriptionModel.created_at.desc())
        )
        result = await self._session.execute(statement)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def get_current(self, user_id: UUID) -> Optional[Subscription]:
        """
        Most recent live (active or past_due) subscription of a user.

        Returns:
            Subscription domain model or None
        """
        statement = (
            select(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.status.in_([s.value for s in LIVE_STATUSES]),
            )
            .order_by(SubscriptionModel.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(statement)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_for_provider(
        self,
        user_id: UUID,
        provider: BillingProviderName,
    ) -> Optional[Subscription]:
        statement = select(SubscriptionModel).where(
            SubscriptionModel.user_id == user_id,
            SubscriptionModel.provider == provider.value,
        )
        result = await self._session.execute(statement)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_period_ended(self, now: datetime, limit: int = 50) -> List[Subscription]:
        """Live subscriptions whose current period ended before `now`."""
        statement = (
            select(SubscriptionModel)
            .where(
                SubscriptionModel.current_period_end < now,
                SubscriptionModel.status.in_([s.value for s in LIVE_STATUSES]),
            )
            .order_by(SubscriptionModel.current_period_end)
            .limit(limit)
        )
        result = await self._session.execute(statement)
        return [self._to_domain(model) for model in result.scalars().all()]

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def upsert(
        self,
        user_id: UUID,
        event: SubscriptionEvent,
        plan: Plan,
    ) -> Subscription:
        """
        Create or update the subscription for (user_id, event.provider).

        Uses PostgreSQL upsert for atomicity. Period bounds absent from the
        event keep their stored values on update and default to now on insert.

        Returns:
            Created/updated subscription
        """
        now = utcnow()
        table = SubscriptionModel.__table__

        values = {
            "id": uuid4(),
            "user_id": user_id,
            "provider": event.provider.value,
            "provider_id": event.subscription_id,
            "customer_id": event.customer_id or "",
            "plan": plan.value,
            "status": event.status.value,
            "current_period_start": event.current_period_start or now,
            "current_period_end": event.current_period_end or now,
            "cancel_at_period_end": event.cancel_at_period_end,
            "metadata": event.provider_metadata(),
            "created_at": now,
            "updated_at": now,
        }

        stmt = pg_insert(table).values(**values)
        overwrite = {
            "status": stmt.excluded.status,
            "plan": stmt.excluded.plan,
            "provider_id": stmt.excluded.provider_id,
            "customer_id": stmt.excluded.customer_id,
            "cancel_at_period_end": stmt.excluded.cancel_at_period_end,
            "metadata": stmt.excluded["metadata"],
            "updated_at": now,
        }
        if event.current_period_start:
            overwrite["current_period_start"] = stmt.excluded.current_period_start
        if event.current_period_end:
            overwrite["current_period_end"] = stmt.excluded.current_period_end

        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "provider"],
            set_=overwrite,
        )
        await self._session.execute(stmt)

        subscription = await self.get_for_provider(user_id, event.provider)
        logger.info(
            f"Upserted {event.provider.value} subscription for user {user_id}: "
            f"plan={plan.value}, status={event.status.value}"
        )
        return subscription

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=model.id,
            user_id=model.user_id,
            provider=BillingProviderName(model.provider),
            provider_id=model.provider_id,
            customer_id=model.customer_id,
            plan=Plan(model.plan),
            status=SubscriptionStatus(model.status),
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=model.cancel_at_period_end or False,
            metadata=model.provider_metadata or {},
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
