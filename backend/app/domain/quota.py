"""
Quota Domain Models

Plan limits, feature-to-counter mapping and the pure evaluation of
usage against limits. Persistence lives in the usage repository.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union
from uuid import UUID

from app.domain.subscription import CamelModel
from app.infrastructure.exceptions import InvalidFeatureError


ANONYMOUS_PLAN = "anonymous"


class Feature(str, Enum):
    """Metered features a caller can ask about."""
    PHOTOS = "photos"
    IMAGE_PROCESSING = "imageProcessing"
    MAGIC_FILL = "magicFill"
    EXPORT = "export"


class UsageCounter(str, Enum):
    """Counter columns shared by usage_stats and ip_quotas."""
    PHOTOS_PROCESSED = "photos_processed"
    MAGIC_FILL_COUNT = "magic_fill_count"
    EXPORT_COUNT = "export_count"


FEATURE_COUNTERS = {
    Feature.PHOTOS: UsageCounter.PHOTOS_PROCESSED,
    Feature.IMAGE_PROCESSING: UsageCounter.PHOTOS_PROCESSED,
    Feature.MAGIC_FILL: UsageCounter.MAGIC_FILL_COUNT,
    Feature.EXPORT: UsageCounter.EXPORT_COUNT,
}


@dataclass(frozen=True)
class PlanLimits:
    """Per-period caps for each counted feature."""
    photos_per_month: int
    magic_fill_per_month: int
    export_per_month: int

    def limit_for(self, counter: UsageCounter) -> int:
        return {
            UsageCounter.PHOTOS_PROCESSED: self.photos_per_month,
            UsageCounter.MAGIC_FILL_COUNT: self.magic_fill_per_month,
            UsageCounter.EXPORT_COUNT: self.export_per_month,
        }[counter]

    def as_counters(self) -> dict[str, int]:
        return {
            "photos_processed": self.photos_per_month,
            "magic_fill_count": self.magic_fill_per_month,
            "export_count": self.export_per_month,
        }


PLAN_LIMITS: dict[str, PlanLimits] = {
    "free": PlanLimits(photos_per_month=50, magic_fill_per_month=10, export_per_month=5),
    "pro": PlanLimits(photos_per_month=500, magic_fill_per_month=100, export_per_month=50),
    ANONYMOUS_PLAN: PlanLimits(photos_per_month=10, magic_fill_per_month=3, export_per_month=1),
}


@dataclass(frozen=True)
class QuotaIdentity:
    """Who is being metered: a signed-in user, or else a client IP."""
    user_id: Optional[UUID] = None
    ip_address: Optional[str] = None

    def __post_init__(self):
        if (self.user_id is None) == (self.ip_address is None):
            raise ValueError("QuotaIdentity needs exactly one of user_id or ip_address")

    @classmethod
    def for_user(cls, user_id: UUID) -> "QuotaIdentity":
        return cls(user_id=user_id)

    @classmethod
    def for_ip(cls, ip_address: str) -> "QuotaIdentity":
        return cls(ip_address=ip_address)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def key(self) -> Union[UUID, str]:
        return self.user_id if self.user_id is not None else self.ip_address


class QuotaStatus(CamelModel):
    """Usage of one feature in one period, as returned by GET /quota."""
    is_authenticated: bool
    feature: str
    plan: str
    current: int
    limit: int
    remaining: int
    allowed: bool


def resolve_feature(feature: Union[str, Feature]) -> Feature:
    """Parse a feature name, raising InvalidFeatureError for unknown ones."""
    try:
        return Feature(feature)
    except ValueError:
        raise InvalidFeatureError(str(feature))


def counter_for(feature: Union[str, Feature]) -> UsageCounter:
    return FEATURE_COUNTERS[resolve_feature(feature)]


def limits_for(plan: str) -> PlanLimits:
    """Limits for a plan name; unknown plans get the free tier."""
    return PLAN_LIMITS.get(plan, PLAN_LIMITS["free"])


def current_period(now: Optional[datetime] = None) -> str:
    """Calendar month bucket, e.g. '2026-10'."""
    now = now or datetime.now(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


def evaluate(
    feature: Union[str, Feature],
    plan: str,
    current: int,
    is_authenticated: bool,
) -> QuotaStatus:
    """Compare current usage with the plan's limit for a feature."""
    resolved = resolve_feature(feature)
    limit = limits_for(plan).limit_for(FEATURE_COUNTERS[resolved])
    return QuotaStatus(
        is_authenticated=is_authenticated,
        feature=resolved.value,
        plan=plan,
        current=current,
        limit=limit,
        remaining=max(limit - current, 0),
        allowed=current < limit,
    )
