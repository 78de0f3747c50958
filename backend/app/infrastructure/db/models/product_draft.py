"""
ProductDraft SQLModel

A merchant's in-progress marketplace listing. Create/Update schemas
double as request bodies for the draft CRUD endpoints.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import ConfigDict, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.domain.product import DraftStatus
from app.infrastructure.db.models.base import BaseModel


class ProductDraftBase(SQLModel):
    """Fields shared between create/read."""

    sku: str = Field(..., min_length=1, max_length=100)
    brand: Optional[str] = Field(default=None, max_length=255)
    type: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    key_spec: Optional[str] = Field(default=None, max_length=500)
    title_ru: Optional[str] = Field(default=None, max_length=500)
    title_kz: Optional[str] = Field(default=None, max_length=500)
    desc_ru: Optional[str] = None
    desc_kz: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    gtin: Optional[str] = Field(default=None, max_length=14)
    price: Optional[float] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)


class ProductDraft(ProductDraftBase, BaseModel, table=True):
    """Maps to the 'product_drafts' table."""

    __tablename__ = "product_drafts"

    user_id: UUID = Field(foreign_key="users.id", index=True, nullable=False)
    status: str = Field(default=DraftStatus.DRAFT.value, max_length=20, index=True)
    attributes: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    variants: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )


class ProductDraftCreate(ProductDraftBase):
    """Body for POST /product-drafts (camelCase accepted)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    attributes: Optional[dict[str, Any]] = None


class ProductDraftUpdate(SQLModel):
    """Body for PATCH /product-drafts/{id}; only sent fields change."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sku: Optional[str] = Field(default=None, min_length=1, max_length=100)
    brand: Optional[str] = Field(default=None, max_length=255)
    type: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    key_spec: Optional[str] = Field(default=None, max_length=500)
    title_ru: Optional[str] = Field(default=None, max_length=500)
    title_kz: Optional[str] = Field(default=None, max_length=500)
    desc_ru: Optional[str] = None
    desc_kz: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    gtin: Optional[str] = Field(default=None, max_length=14)
    price: Optional[float] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)
    attributes: Optional[dict[str, Any]] = None
    variants: Optional[dict[str, Any]] = None
    status: Optional[DraftStatus] = None

    @field_validator("sku", "status")
    @classmethod
    def required_columns_not_cleared(cls, value, info: ValidationInfo):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class ProductDraftRead(ProductDraftBase):
    """Draft as returned by the API (camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    user_id: UUID
    status: str
    attributes: Optional[dict[str, Any]] = None
    variants: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class ProductDraftResponse(SQLModel):
    draft: ProductDraftRead


class ProductDraftListResponse(SQLModel):
    drafts: list[ProductDraftRead]
