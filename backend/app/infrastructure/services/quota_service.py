"""
Quota Service

Meters feature usage per calendar month against plan limits, for
signed-in users and anonymous IPs alike.
"""

import logging
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.quota import (
    ANONYMOUS_PLAN,
    Feature,
    QuotaIdentity,
    QuotaStatus,
    counter_for,
    current_period,
    evaluate,
    limits_for,
    resolve_feature,
)
from app.infrastructure.db.repositories.usage_repository import UsageRepository
from app.infrastructure.exceptions import QuotaExceededError
from app.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)


class QuotaService:
    """Quota accountant: report-only checks and atomic consumption."""

    def __init__(self, session: AsyncSession):
        self._usage = UsageRepository(session)
        self._subscriptions = SubscriptionService(session)

    async def plan_for(self, identity: QuotaIdentity) -> str:
        """Anonymous callers are always on the anonymous plan."""
        if not identity.is_authenticated:
            return ANONYMOUS_PLAN
        plan = await self._subscriptions.get_plan(identity.user_id)
        return plan.value

    async def check(
        self,
        identity: QuotaIdentity,
        feature: Union[str, Feature],
        period_ym: Optional[str] = None,
    ) -> QuotaStatus:
        """Current usage of a feature, without changing anything."""
        counter = counter_for(feature)
        period_ym = period_ym or current_period()
        plan = await self.plan_for(identity)
        current = await self._usage.get_count(identity, counter, period_ym)
        return evaluate(feature, plan, current, identity.is_authenticated)

    async def consume(
        self,
        identity: QuotaIdentity,
        feature: Union[str, Feature],
        amount: int = 1,
        period_ym: Optional[str] = None,
    ) -> QuotaStatus:
        """
        Use `amount` units of a feature.

        Raises:
            InvalidFeatureError: unknown feature
            QuotaExceededError: the limit would be passed; counters unchanged
        """
        resolved = resolve_feature(feature)
        counter = counter_for(resolved)
        period_ym = period_ym or current_period()
        plan = await self.plan_for(identity)
        limit = limits_for(plan).limit_for(counter)

        new_value = await self._usage.try_consume(identity, counter, period_ym, amount, limit)
        if new_value is None:
            current = await self._usage.get_count(identity, counter, period_ym)
            raise QuotaExceededError(
                feature=resolved.value,
                current=current,
                limit=limit,
                plan=plan,
            )

        return evaluate(resolved, plan, new_value, identity.is_authenticated)

    async def usage(self, identity: QuotaIdentity, period_ym: Optional[str] = None) -> dict[str, int]:
        """All counters for the period (zeros when nothing was used yet)."""
        return await self._usage.get_counters(identity, period_ym or current_period())
