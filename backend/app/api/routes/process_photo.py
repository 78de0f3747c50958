"""
Photo Processing API Routes

Resizes and re-encodes product photos. Works without signing in; anonymous
callers are metered by IP.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, File, Form, Response, UploadFile
from pydantic import ValidationError as PydanticValidationError

from app.api.dependencies import QuotaIdentityDep, QuotaServiceDep
from app.domain.quota import Feature
from app.infrastructure.exceptions import QuotaExceededError, ValidationError
from app.infrastructure.services.image_processing_service import (
    ImageProcessingOptions,
    ImageProcessingService,
    capabilities,
)


logger = logging.getLogger(__name__)

router = APIRouter()


def parse_options(raw: Optional[str]) -> ImageProcessingOptions:
    """Options arrive as a JSON string in the multipart form."""
    if not raw:
        return ImageProcessingOptions()
    try:
        return ImageProcessingOptions.model_validate(json.loads(raw))
    except ValueError as e:
        # Both JSONDecodeError and pydantic's ValidationError are ValueErrors
        errors = (
            [error["msg"] for error in e.errors()]
            if isinstance(e, PydanticValidationError)
            else [str(e)]
        )
        raise ValidationError(
            "Invalid processing options",
            details={"errors": errors},
            original_error=e,
        )


@router.get("/process-photo")
async def get_capabilities():
    return capabilities()


@router.post("/process-photo")
async def process_photo(
    identity: QuotaIdentityDep,
    quota: QuotaServiceDep,
    image: UploadFile = File(...),
    options: Optional[str] = Form(None),
):
    """
    Resize and re-encode one photo.

    The allowance is checked before processing and one unit is consumed
    only once the image was processed successfully.
    """
    parsed = parse_options(options)

    status = await quota.check(identity, Feature.IMAGE_PROCESSING)
    if not status.allowed:
        raise QuotaExceededError(
            feature=Feature.IMAGE_PROCESSING.value,
            current=status.current,
            limit=status.limit,
            plan=status.plan,
        )

    data = await image.read()
    result = await ImageProcessingService().process(data, image.filename or "upload", parsed)

    await quota.consume(identity, Feature.IMAGE_PROCESSING)

    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "X-Original-Size": str(result.original_size),
            "X-Processing-Time": str(result.processing_time_ms),
            "X-Compression-Ratio": str(result.compression_ratio),
        },
    )
