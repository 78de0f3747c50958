"""
User Repository

Find-or-create by email, used by both sign-in and billing webhooks.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import BillingProviderName
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.user import User, UserCreate
from app.infrastructure.db.repositories.base_repository import BaseRepository


logger = logging.getLogger(__name__)


CUSTOMER_ID_COLUMNS = {
    BillingProviderName.POLAR: "polar_customer_id",
    BillingProviderName.LEMON_SQUEEZY: "lemon_squeezy_customer_id",
    BillingProviderName.PADDLE: "paddle_customer_id",
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository(BaseRepository[User, UserCreate, UserCreate]):
    """Repository for user accounts."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == normalize_email(email))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, email: str, name: Optional[str] = None) -> User:
        """
        Return the user for an email, creating it on first sight.

        Concurrent first requests for the same email are resolved by the
        unique index: the losing insert does nothing and both read the row.
        """
        email = normalize_email(email)
        existing = await self.get_by_email(email)
        if existing is not None:
            return existing

        now = utcnow()
        stmt = (
            pg_insert(User.__table__)
            .values(
                id=uuid4(),
                email=email,
                name=name,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["email"])
        )
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.info(f"Created user for {email}")

        user = await self.get_by_email(email)
        if user is None:
            raise RuntimeError(f"User {email} vanished after upsert")
        return user

    async def set_customer_id(
        self,
        user_id: UUID,
        provider: BillingProviderName,
        customer_id: str,
    ) -> None:
        """Remember the provider-side customer id for a user."""
        column = CUSTOMER_ID_COLUMNS[provider]
        stmt = (
            update(User.__table__)
            .where(User.__table__.c.id == user_id)
            .values({column: customer_id, "updated_at": utcnow()})
        )
        await self.session.execute(stmt)
