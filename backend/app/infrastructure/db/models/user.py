"""
User Database Model

Accounts are keyed by email; the OAuth front end and billing webhooks
both resolve users through it.
"""

from typing import Optional

from sqlmodel import Field, SQLModel

from app.infrastructure.db.models.base import BaseModel


class UserBase(SQLModel):
    email: str = Field(
        ...,
        max_length=320,
        unique=True,
        index=True,
        description="Login and billing email"
    )
    name: Optional[str] = Field(default=None, max_length=255)

    # External customer identifiers per billing provider
    polar_customer_id: Optional[str] = Field(default=None, max_length=255)
    lemon_squeezy_customer_id: Optional[str] = Field(default=None, max_length=255)
    paddle_customer_id: Optional[str] = Field(default=None, max_length=255)


class User(UserBase, BaseModel, table=True):
    """Maps to the 'users' table."""

    __tablename__ = "users"


class UserCreate(SQLModel):
    email: str
    name: Optional[str] = None
