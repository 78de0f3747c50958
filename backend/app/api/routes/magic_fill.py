"""
Magic Fill API Route

Turns a handful of known product facts (and optional photo text) into a
complete bilingual listing, stored as a new draft.
"""

import logging
import re
import uuid
from typing import Optional

from fastapi import APIRouter

from app.api.dependencies import (
    CurrentUser,
    EnrichmentServiceDep,
    ProductDraftRepoDep,
    QuotaServiceDep,
)
from app.domain.product import MagicFillRequest, MagicFillResponse, ProductEnrichment
from app.domain.quota import Feature, QuotaIdentity
from app.infrastructure.db.models.product_draft import ProductDraftCreate


logger = logging.getLogger(__name__)

router = APIRouter()


def generate_sku(enrichment: ProductEnrichment) -> str:
    """brand-model slug, or a random product-xxxxxxxx when both are missing."""
    parts = [part for part in (enrichment.brand, enrichment.model) if part]
    slug = re.sub(r"[^a-z0-9]+", "-", " ".join(parts).lower()).strip("-")
    if slug:
        return slug[:100]
    return f"product-{uuid.uuid4().hex[:8]}"


def clip(value: Optional[str], limit: int) -> Optional[str]:
    """Trim generated text to its draft column size."""
    if value is None:
        return None
    return value[:limit].rstrip() or None


def draft_from_enrichment(
    request: MagicFillRequest,
    enrichment: ProductEnrichment,
) -> ProductDraftCreate:
    manual = request.manual
    return ProductDraftCreate(
        sku=request.sku or generate_sku(enrichment),
        brand=clip(enrichment.brand or manual.brand, 255),
        type=clip(enrichment.type or manual.type, 255),
        model=clip(enrichment.model or manual.model, 255),
        key_spec=clip(enrichment.key_spec or manual.key_spec, 500),
        title_ru=clip(enrichment.title_ru, 500),
        title_kz=clip(enrichment.title_kz, 500),
        desc_ru=enrichment.description_ru,
        desc_kz=enrichment.description_kz,
        category=enrichment.category.value,
        gtin=request.gtin,
        attributes=dict(enrichment.attributes) or None,
    )


@router.post("/magic-fill", response_model=MagicFillResponse)
async def magic_fill(
    request: MagicFillRequest,
    user: CurrentUser,
    quota: QuotaServiceDep,
    enrichment_service: EnrichmentServiceDep,
    drafts: ProductDraftRepoDep,
):
    """
    Generate listing fields with AI and save them as a draft.

    One magicFill unit is consumed up front; a 429 is returned when the
    monthly allowance is used up.
    """
    await quota.consume(QuotaIdentity.for_user(user.id), Feature.MAGIC_FILL)

    product = request.manual.model_dump()
    if request.gtin:
        product["gtin"] = request.gtin
    enrichment = await enrichment_service.enrich(product, request.ocr_text)

    draft = await drafts.create_for_user(user.id, draft_from_enrichment(request, enrichment))
    logger.info(f"Magic fill created draft {draft.id} for user {user.id}")
    return MagicFillResponse(draft_id=draft.id, fields=enrichment)
