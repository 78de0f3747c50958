"""
Product Draft API Routes

CRUD for the signed-in merchant's product drafts. Drafts belonging to
other users are reported as not found.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.api.dependencies import CurrentUser, ProductDraftRepoDep
from app.domain.product import DraftStatus
from app.infrastructure.db.models.product_draft import (
    ProductDraftCreate,
    ProductDraftListResponse,
    ProductDraftRead,
    ProductDraftResponse,
    ProductDraftUpdate,
)
from app.infrastructure.exceptions import NotFoundError


logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found(draft_id: UUID) -> NotFoundError:
    return NotFoundError(f"Draft {draft_id} not found", table="product_drafts")


@router.get("/product-drafts", response_model=ProductDraftListResponse)
async def list_drafts(
    user: CurrentUser,
    repo: ProductDraftRepoDep,
    draft_status: Optional[DraftStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List the user's drafts, most recently updated first."""
    drafts = await repo.list_for_user(user.id, status=draft_status, limit=limit, offset=offset)
    logger.info(f"Listed {len(drafts)} drafts for user {user.id}")
    return ProductDraftListResponse(
        drafts=[ProductDraftRead.model_validate(draft) for draft in drafts]
    )


@router.post(
    "/product-drafts",
    response_model=ProductDraftResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_draft(
    request: ProductDraftCreate,
    user: CurrentUser,
    repo: ProductDraftRepoDep,
):
    draft = await repo.create_for_user(user.id, request)
    return ProductDraftResponse(draft=ProductDraftRead.model_validate(draft))


@router.get("/product-drafts/{draft_id}", response_model=ProductDraftResponse)
async def get_draft(draft_id: UUID, user: CurrentUser, repo: ProductDraftRepoDep):
    draft = await repo.get_for_user(draft_id, user.id)
    if draft is None:
        raise _not_found(draft_id)
    return ProductDraftResponse(draft=ProductDraftRead.model_validate(draft))


@router.patch("/product-drafts/{draft_id}", response_model=ProductDraftResponse)
async def update_draft(
    draft_id: UUID,
    request: ProductDraftUpdate,
    user: CurrentUser,
    repo: ProductDraftRepoDep,
):
    """Partial update; only fields present in the body change."""
    draft = await repo.update_for_user(draft_id, user.id, request)
    if draft is None:
        raise _not_found(draft_id)
    logger.info(f"Updated draft {draft_id} for user {user.id}")
    return ProductDraftResponse(draft=ProductDraftRead.model_validate(draft))


@router.delete("/product-drafts/{draft_id}")
async def delete_draft(draft_id: UUID, user: CurrentUser, repo: ProductDraftRepoDep):
    if not await repo.delete_for_user(draft_id, user.id):
        raise _not_found(draft_id)
    return {"success": True}
