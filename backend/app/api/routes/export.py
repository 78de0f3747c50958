"""
Export API Route

Downloads drafts as a marketplace CSV or a RU/KZ ZIP bundle.
"""

import logging

from fastapi import APIRouter, Response

from app.api.dependencies import CurrentUser, ProductDraftRepoDep, QuotaServiceDep
from app.domain.product import ExportRequest
from app.domain.quota import Feature, QuotaIdentity
from app.infrastructure.exceptions import NotFoundError
from app.infrastructure.services.export_service import ExportService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/export")
async def export_drafts(
    request: ExportRequest,
    user: CurrentUser,
    drafts: ProductDraftRepoDep,
    quota: QuotaServiceDep,
):
    """
    Export owned drafts and mark them exported.

    All ids must belong to the caller; nothing is charged otherwise.
    """
    found = await drafts.get_many_for_user(request.draft_ids, user.id)
    found_ids = {draft.id for draft in found}
    missing = [str(draft_id) for draft_id in request.draft_ids if draft_id not in found_ids]
    if missing:
        raise NotFoundError(
            f"{len(missing)} draft(s) not found",
            table="product_drafts",
        )

    await quota.consume(QuotaIdentity.for_user(user.id), Feature.EXPORT)

    export = ExportService().render(found, request.format)
    updated = await drafts.mark_exported(list(found_ids), user.id)
    logger.info(f"User {user.id} exported {updated} drafts as {request.format.value}")

    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
