"""
Usage Repository

Monthly usage counters for users (usage_stats) and anonymous IPs (ip_quotas).
Both tables share their counter columns, so every method picks the table
from the identity and otherwise runs the same statement.
"""

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import Table, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.quota import QuotaIdentity, UsageCounter
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.usage import IpQuota, UsageStat


logger = logging.getLogger(__name__)


class UsageRepository:
    """Reads and atomically increments per-period usage counters."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _table_for(identity: QuotaIdentity) -> tuple[Table, str]:
        if identity.is_authenticated:
            return UsageStat.__table__, "user_id"
        return IpQuota.__table__, "ip_address"

    async def get_counters(self, identity: QuotaIdentity, period_ym: str) -> dict[str, int]:
        """
        Current counters for an identity in a period.

        A missing row reads as all zeros; rows are only created on consume.
        """
        table, key_column = self._table_for(identity)
        stmt = select(
            table.c.photos_processed,
            table.c.magic_fill_count,
            table.c.export_count,
        ).where(
            table.c[key_column] == identity.key,
            table.c.period_ym == period_ym,
        )
        result = await self._session.execute(stmt)
        row = result.mappings().one_or_none()
        if row is None:
            return {counter.value: 0 for counter in UsageCounter}
        return {counter.value: row[counter.value] or 0 for counter in UsageCounter}

    async def get_count(
        self,
        identity: QuotaIdentity,
        counter: UsageCounter,
        period_ym: str,
    ) -> int:
        counters = await self.get_counters(identity, period_ym)
        return counters[counter.value]

    async def try_consume(
        self,
        identity: QuotaIdentity,
        counter: UsageCounter,
        period_ym: str,
        amount: int,
        limit: int,
    ) -> Optional[int]:
        """
        Add `amount` to a counter unless that would pass `limit`.

        Runs as one INSERT ... ON CONFLICT DO UPDATE ... WHERE statement, so
        concurrent consumers can never push the counter over the limit.

        Returns:
            The new counter value, or None when the limit would be exceeded
            (the row is left unchanged).
        """
        if amount > limit:
            return None

        table, key_column = self._table_for(identity)
        column = table.c[counter.value]
        now = utcnow()

        values = {
            "id": uuid4(),
            key_column: identity.key,
            "period_ym": period_ym,
            "created_at": now,
            "updated_at": now,
        }
        for other in UsageCounter:
            values[other.value] = 0
        # A fresh row starts the counter at `amount`.
        values[counter.value] = amount

        stmt = pg_insert(table).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[key_column, "period_ym"],
            set_={counter.value: column + amount, "updated_at": now},
            where=(column + amount) <= limit,
        ).returning(column)

        result = await self._session.execute(stmt)
        new_value = result.scalar_one_or_none()

        if new_value is None:
            logger.info(
                f"Quota denied for {identity.key}: {counter.value} at limit {limit} ({period_ym})"
            )
            return None

        logger.info(
            f"Consumed {amount} {counter.value} for {identity.key}: {new_value}/{limit} ({period_ym})"
        )
        return new_value
