"""
SQLModel ORM Models for Trade Card Builder

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.base import (
    BaseModel,
    TimestampMixin,
    UUIDMixin,
)
from app.infrastructure.db.models.user import User, UserCreate
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.db.models.usage import IpQuota, UsageStat
from app.infrastructure.db.models.product_draft import (
    ProductDraft,
    ProductDraftCreate,
    ProductDraftUpdate,
    ProductDraftRead,
    ProductDraftResponse,
    ProductDraftListResponse,
)


__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    # Accounts & billing
    "User",
    "UserCreate",
    "SubscriptionModel",
    # Usage
    "UsageStat",
    "IpQuota",
    # Drafts
    "ProductDraft",
    "ProductDraftCreate",
    "ProductDraftUpdate",
    "ProductDraftRead",
    "ProductDraftResponse",
    "ProductDraftListResponse",
]
