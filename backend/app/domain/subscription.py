"""
Subscription Domain Models

Enums, DTOs, and domain entities for the billing bounded context,
plus the pure rules used to reconcile provider data with local state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for API DTOs serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Plan(str, Enum):
    """Service tiers a subscription can grant."""
    FREE = "free"
    PRO = "pro"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status as reported by the provider."""
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"


class BillingProviderName(str, Enum):
    """Supported billing providers."""
    POLAR = "polar"
    LEMON_SQUEEZY = "lemon-squeezy"
    PADDLE = "paddle"


# Statuses that still grant the subscription's plan
LIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE})

KNOWN_STATUSES = frozenset(status.value for status in SubscriptionStatus)


# =============================================================================
# Domain Entities
# =============================================================================

class SubscriptionEvent(BaseModel):
    """
    Provider-neutral view of a subscription event or checkout.

    Produced by each billing provider's parser and consumed by the
    subscription upserter.
    """
    provider: BillingProviderName
    subscription_id: str
    status: SubscriptionStatus
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_id: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    price_id: Optional[str] = None
    checkout_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False

    def provider_metadata(self) -> dict[str, str]:
        """Opaque metadata stored alongside the local subscription row."""
        metadata = {
            "productId": self.product_id or "",
            "priceId": self.price_id or "",
        }
        if self.checkout_id:
            metadata["checkoutId"] = self.checkout_id
        return metadata


class Subscription(BaseModel):
    """Core subscription domain entity."""
    id: Optional[UUID] = None
    user_id: UUID
    provider: BillingProviderName
    provider_id: Optional[str] = None
    customer_id: Optional[str] = None
    plan: Plan = Plan.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES


# =============================================================================
# Reconciliation Rules
# =============================================================================

def is_known_status(value: Any) -> bool:
    """True if value is one of the four statuses this system understands."""
    return isinstance(value, str) and value in KNOWN_STATUSES


def resolve_plan(
    product_name: Optional[str],
    product_id: Optional[str] = None,
    price_id: Optional[str] = None,
    plan_map: Optional[Mapping[str, str]] = None,
) -> Plan:
    """
    Derive the plan granted by a product.

    Explicit product/price ids from PLAN_PRODUCT_MAP win. Unmapped products
    fall back to a name check: "pro" anywhere in the name (any case) means
    the pro plan.
    """
    if plan_map:
        for key in (price_id, product_id):
            if key and key in plan_map:
                return Plan(plan_map[key])

    if "pro" in (product_name or "").lower():
        return Plan.PRO
    return Plan.FREE


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes from the database as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def select_current_subscription(
    subscriptions: Iterable[Subscription],
) -> Optional[Subscription]:
    """
    Pick the subscription that determines the user's plan.

    Most recent by creation time among live (active/past_due) rows;
    if none is live, the most recent row of any status.
    """
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    ordered = sorted(
        subscriptions,
        key=lambda sub: as_utc(sub.created_at) or epoch,
        reverse=True,
    )
    for sub in ordered:
        if sub.is_live:
            return sub
    return ordered[0] if ordered else None


def needs_refresh(
    subscription: Subscription,
    now: Optional[datetime] = None,
    force: bool = False,
) -> bool:
    """A subscription is stale when its period has ended or it is not active."""
    if force:
        return True
    if subscription.status != SubscriptionStatus.ACTIVE:
        return True
    period_end = as_utc(subscription.current_period_end)
    if period_end is None:
        return False
    return period_end < (now or datetime.now(timezone.utc))


def effective_plan(subscription: Optional[Subscription]) -> Plan:
    """Plan granted right now; anything not live falls back to free."""
    if subscription is None or not subscription.is_live:
        return Plan.FREE
    return subscription.plan


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CheckoutRequest(CamelModel):
    """Request DTO for creating a checkout."""
    product_id: Optional[str] = Field(
        default=None,
        description="Provider product/variant/price id; defaults to the configured one",
    )
    success_url: Optional[str] = Field(
        default=None,
        description="Redirect URL after successful payment",
    )


class CheckoutResponse(CamelModel):
    """Response DTO for checkout creation."""
    url: str
    checkout_id: Optional[str] = None


class PortalRequest(CamelModel):
    """Request DTO for creating a customer portal session."""
    return_url: Optional[str] = None


class PortalResponse(CamelModel):
    """Response DTO for portal session creation."""
    url: str


class SyncSubscriptionRequest(CamelModel):
    """Request DTO for syncing a subscription from a completed checkout."""
    checkout_id: str = Field(..., min_length=1)


class SyncSubscriptionResponse(CamelModel):
    plan: Plan
    status: SubscriptionStatus
    message: str = "Subscription synced successfully"


class SubscriptionSummary(CamelModel):
    id: Optional[UUID] = None
    provider: BillingProviderName
    plan: Plan
    status: SubscriptionStatus
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


class UserSummary(CamelModel):
    id: UUID
    email: str
    name: Optional[str] = None


class UsageCounters(CamelModel):
    photos_processed: int = 0
    magic_fill_count: int = 0
    export_count: int = 0


class SubscriptionInfoResponse(CamelModel):
    """Response DTO for GET /subscription."""
    plan: str
    status: str
    limits: UsageCounters
    current_usage: UsageCounters
    subscription: Optional[SubscriptionSummary] = None
    user: UserSummary


class BillingConfigResponse(CamelModel):
    provider: BillingProviderName
    public_config: dict[str, str]
