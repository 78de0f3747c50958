"""
Product Draft Repository

Owner-scoped CRUD for product drafts. Every lookup filters on user_id,
so a draft owned by someone else reads exactly like a missing one.
"""

import logging
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.product import DraftStatus
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.product_draft import (
    ProductDraft,
    ProductDraftCreate,
    ProductDraftUpdate,
)
from app.infrastructure.db.repositories.base_repository import BaseRepository


logger = logging.getLogger(__name__)


class ProductDraftRepository(
    BaseRepository[ProductDraft, ProductDraftCreate, ProductDraftUpdate]
):
    """Repository for a merchant's product drafts."""

    def __init__(self, session: AsyncSession):
        super().__init__(ProductDraft, session)

    async def list_for_user(
        self,
        user_id: UUID,
        status: Optional[DraftStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ProductDraft]:
        """Drafts of a user, most recently updated first."""
        stmt = select(ProductDraft).where(ProductDraft.user_id == user_id)
        if status is not None:
            stmt = stmt.where(ProductDraft.status == status.value)
        stmt = (
            stmt.order_by(ProductDraft.updated_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_user(self, draft_id: UUID, user_id: UUID) -> Optional[ProductDraft]:
        stmt = select(ProductDraft).where(
            ProductDraft.id == draft_id,
            ProductDraft.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many_for_user(
        self,
        draft_ids: Sequence[UUID],
        user_id: UUID,
    ) -> List[ProductDraft]:
        """Drafts among `draft_ids` that the user owns, in request order."""
        stmt = select(ProductDraft).where(
            ProductDraft.id.in_(list(draft_ids)),
            ProductDraft.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        by_id = {draft.id: draft for draft in result.scalars().all()}
        return [by_id[draft_id] for draft_id in draft_ids if draft_id in by_id]

    async def create_for_user(
        self,
        user_id: UUID,
        data: ProductDraftCreate,
        status: DraftStatus = DraftStatus.DRAFT,
    ) -> ProductDraft:
        draft = await self.create(data, user_id=user_id, status=status.value)
        logger.info(f"Created draft {draft.id} (sku={draft.sku}) for user {user_id}")
        return draft

    async def update_for_user(
        self,
        draft_id: UUID,
        user_id: UUID,
        data: ProductDraftUpdate,
    ) -> Optional[ProductDraft]:
        """
        Apply a partial update to an owned draft.

        Returns:
            The updated draft, or None if the user owns no such draft
        """
        draft = await self.get_for_user(draft_id, user_id)
        if draft is None:
            return None

        if data.status is not None:
            # Stored as a plain string column
            data = data.model_copy(update={"status": data.status.value})
        draft.updated_at = utcnow()
        return await self.apply_update(draft, data)

    async def delete_for_user(self, draft_id: UUID, user_id: UUID) -> bool:
        draft = await self.get_for_user(draft_id, user_id)
        if draft is None:
            return False
        await self.delete_obj(draft)
        logger.info(f"Deleted draft {draft_id} for user {user_id}")
        return True

    async def mark_exported(self, draft_ids: Sequence[UUID], user_id: UUID) -> int:
        """Flip owned drafts to 'exported'. Returns the number of rows changed."""
        stmt = (
            update(ProductDraft.__table__)
            .where(
                ProductDraft.__table__.c.id.in_(list(draft_ids)),
                ProductDraft.__table__.c.user_id == user_id,
            )
            .values(status=DraftStatus.EXPORTED.value, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
