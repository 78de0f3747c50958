"""
Product Domain Models

Draft statuses, GTIN validation, AI enrichment results and the
request/response DTOs for magic fill and export.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.domain.subscription import CamelModel


class DraftStatus(str, Enum):
    DRAFT = "draft"
    READY = "ready"
    EXPORTED = "exported"


class ProductCategory(str, Enum):
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    COSMETICS = "cosmetics"
    HOME = "home"
    SPORTS = "sports"
    OTHER = "other"


class ExportFormat(str, Enum):
    ZIP = "zip"
    CSV = "csv"


def coerce_category(value) -> ProductCategory:
    """Map free-form category text onto a known category, defaulting to other."""
    try:
        return ProductCategory(value)
    except ValueError:
        return ProductCategory.OTHER


# =============================================================================
# GTIN
# =============================================================================

GTIN_LENGTHS = (8, 12, 13, 14)


@dataclass(frozen=True)
class GtinValidationResult:
    is_valid: bool
    message: str
    sanitized: Optional[str] = None


def _check_digit_ok(digits: str) -> bool:
    """GS1 mod-10: weights alternate 3,1 from the digit left of the check digit."""
    body, check = digits[:-1], int(digits[-1])
    total = 0
    for position, char in enumerate(reversed(body)):
        total += int(char) * (3 if position % 2 == 0 else 1)
    return (10 - total % 10) % 10 == check


def validate_gtin(gtin: str) -> GtinValidationResult:
    """Validate a GTIN-8/12/13/14, ignoring spaces and dashes."""
    sanitized = re.sub(r"\D", "", gtin or "")
    if not sanitized:
        return GtinValidationResult(False, "GTIN is empty")
    if len(sanitized) not in GTIN_LENGTHS:
        return GtinValidationResult(
            False,
            f"GTIN must have 8, 12, 13 or 14 digits (got {len(sanitized)})",
        )
    if not _check_digit_ok(sanitized):
        return GtinValidationResult(False, "Invalid GTIN check digit")
    return GtinValidationResult(True, "GTIN is valid", sanitized)


# =============================================================================
# Magic Fill
# =============================================================================

class ManualProductFields(CamelModel):
    """Facts the merchant already knows, limited like the draft columns."""
    brand: Optional[str] = Field(default=None, max_length=255)
    type: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    key_spec: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=100)


class MagicFillRequest(CamelModel):
    """Request DTO for AI-assisted product field generation."""
    sku: Optional[str] = Field(default=None, max_length=100)
    gtin: Optional[str] = None
    manual: ManualProductFields = Field(default_factory=ManualProductFields)
    ocr_text: Optional[str] = Field(default=None, max_length=10000)

    @field_validator("gtin")
    @classmethod
    def gtin_must_be_valid(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        result = validate_gtin(value)
        if not result.is_valid:
            raise ValueError(result.message)
        return result.sanitized


class ProductEnrichment(CamelModel):
    """Structured listing fields produced by the AI (or the fallback)."""
    brand: Optional[str] = None
    type: Optional[str] = None
    model: Optional[str] = None
    key_spec: Optional[str] = None
    category: ProductCategory = ProductCategory.OTHER
    title_ru: Optional[str] = None
    title_kz: Optional[str] = None
    description_ru: Optional[str] = None
    description_kz: Optional[str] = None
    attributes: dict[str, str] = Field(default_factory=dict)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("category", mode="before")
    @classmethod
    def unknown_category_is_other(cls, value):
        return coerce_category(value)


class MagicFillResponse(CamelModel):
    draft_id: UUID
    fields: ProductEnrichment


# =============================================================================
# Export
# =============================================================================

class ExportRequest(CamelModel):
    draft_ids: list[UUID] = Field(..., min_length=1, max_length=200)
    format: ExportFormat = ExportFormat.ZIP
