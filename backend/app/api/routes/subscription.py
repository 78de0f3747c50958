"""
Subscription API Routes

Plan, limits and current usage for the signed-in user.
"""

import logging

from fastapi import APIRouter, Query

from app.api.dependencies import CurrentUser, QuotaServiceDep, SubscriptionServiceDep
from app.domain.quota import QuotaIdentity, limits_for
from app.domain.subscription import (
    SubscriptionInfoResponse,
    SubscriptionSummary,
    UsageCounters,
    UserSummary,
    effective_plan,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/subscription", response_model=SubscriptionInfoResponse)
async def get_subscription(
    user: CurrentUser,
    subscriptions: SubscriptionServiceDep,
    quota: QuotaServiceDep,
    refresh: bool = Query(False, description="Re-fetch the subscription from the provider"),
):
    """
    Current plan, its limits, this month's usage and the subscription
    that decides the plan.

    A subscription whose period has ended is refreshed from the provider
    first; if that fails the stored record is shown.
    """
    current = await subscriptions.get_current_subscription(user.id, refresh=refresh)
    plan = effective_plan(current)
    usage = await quota.usage(QuotaIdentity.for_user(user.id))

    summary = None
    if current is not None:
        summary = SubscriptionSummary(
            id=current.id,
            provider=current.provider,
            plan=current.plan,
            status=current.status,
            current_period_start=current.current_period_start,
            current_period_end=current.current_period_end,
            cancel_at_period_end=current.cancel_at_period_end,
        )

    logger.info(f"Subscription info for user {user.id}: plan={plan.value}")
    return SubscriptionInfoResponse(
        plan=plan.value,
        status=current.status.value if current else "free",
        limits=UsageCounters(**limits_for(plan.value).as_counters()),
        current_usage=UsageCounters(**usage),
        subscription=summary,
        user=UserSummary(id=user.id, email=user.email, name=user.name),
    )
