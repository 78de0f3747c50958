"""
Usage Counter Models

Monthly usage buckets for signed-in users (usage_stats) and for
anonymous callers identified by IP (ip_quotas). Both tables share
the same counter columns.
"""

from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.infrastructure.db.models.base import BaseModel


class UsageCountersMixin(SQLModel):
    period_ym: str = Field(max_length=7, nullable=False, description="YYYY-MM")
    photos_processed: int = Field(default=0, nullable=False)
    magic_fill_count: int = Field(default=0, nullable=False)
    export_count: int = Field(default=0, nullable=False)


class UsageStat(UsageCountersMixin, BaseModel, table=True):
    __tablename__ = "usage_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "period_ym", name="uq_usage_stats_user_period"),
    )

    user_id: UUID = Field(foreign_key="users.id", index=True, nullable=False)


class IpQuota(UsageCountersMixin, BaseModel, table=True):
    __tablename__ = "ip_quotas"
    __table_args__ = (
        UniqueConstraint("ip_address", "period_ym", name="uq_ip_quotas_ip_period"),
    )

    ip_address: str = Field(max_length=64, index=True, nullable=False)
