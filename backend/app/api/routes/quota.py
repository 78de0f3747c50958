"""
Quota API Routes

Report-only view of a feature's monthly allowance, for signed-in users
and anonymous visitors (metered by IP).
"""

from typing import Optional

from fastapi import APIRouter, Query

from app.api.dependencies import QuotaIdentityDep, QuotaServiceDep
from app.domain.quota import QuotaStatus
from app.infrastructure.exceptions import ValidationError


router = APIRouter()


@router.get("/quota", response_model=QuotaStatus)
async def get_quota(
    identity: QuotaIdentityDep,
    quota: QuotaServiceDep,
    feature: Optional[str] = Query(None, description="photos, imageProcessing, magicFill or export"),
):
    """How much of `feature` the caller has used this month. Never consumes."""
    if not feature:
        raise ValidationError("Feature parameter is required")
    return await quota.check(identity, feature)
