"""
Repository Layer for Trade Card Builder

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.db.repositories.user_repository import UserRepository
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.infrastructure.db.repositories.usage_repository import UsageRepository
from app.infrastructure.db.repositories.product_draft_repository import (
    ProductDraftRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    # Repositories
    "UserRepository",
    "SubscriptionRepository",
    "UsageRepository",
    "ProductDraftRepository",
]
