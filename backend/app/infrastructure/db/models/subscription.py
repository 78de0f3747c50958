"""
Subscription Database Model

SQLModel table for subscription data persistence.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON, Column, DateTime, UniqueConstraint
from sqlmodel import Field

from app.infrastructure.db.models.base import BaseModel


class SubscriptionModel(BaseModel, table=True):
    """
    Subscription table for storing user subscription data.

    One row per (user, provider); rows are upserted, never duplicated,
    and never deleted.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_subscriptions_user_provider"),
    )

    user_id: UUID = Field(foreign_key="users.id", index=True, nullable=False)

    # Provider identity
    provider: str = Field(max_length=32, nullable=False)
    provider_id: Optional[str] = Field(default=None, max_length=255, index=True)
    customer_id: Optional[str] = Field(default=None, max_length=255)

    # Subscription details
    plan: str = Field(default="free", max_length=20)
    status: str = Field(default="active", max_length=20, index=True)

    # Billing period dates
    current_period_start: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)
    )
    current_period_end: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)
    )
    cancel_at_period_end: bool = Field(default=False)

    # Opaque provider data (productId, priceId, checkoutId)
    provider_metadata: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False, default=dict),
    )
