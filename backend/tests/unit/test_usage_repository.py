"""
Unit tests for UsageRepository.

The session is mocked; statements are compiled with the PostgreSQL
dialect to check the conditional upsert that enforces limits.
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from app.domain.quota import QuotaIdentity, UsageCounter
from app.infrastructure.db.repositories.usage_repository import UsageRepository


def _session_returning(scalar=None, row=None):
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.mappings.return_value.one_or_none.return_value = row
    session = MagicMock()
    session.execute = AsyncMock(return_value=result)
    return session


def _compiled(session) -> str:
    stmt = session.execute.await_args.args[0]
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestTryConsume:

    @pytest.mark.asyncio
    async def test_conditional_upsert_for_user(self):
        session = _session_returning(scalar=4)
        repo = UsageRepository(session)

        result = await repo.try_consume(
            QuotaIdentity.for_user(uuid4()), UsageCounter.PHOTOS_PROCESSED, "2026-10", 1, 50
        )

        assert result == 4
        sql = _compiled(session)
        assert "INSERT INTO usage_stats" in sql
        assert "ON CONFLICT (user_id, period_ym) DO UPDATE" in sql
        update_clause = sql.split("DO UPDATE", 1)[1]
        assert "WHERE" in update_clause
        assert "<=" in update_clause.split("WHERE", 1)[1]
        assert "RETURNING usage_stats.photos_processed" in sql

    @pytest.mark.asyncio
    async def test_ip_identity_uses_ip_quotas(self):
        session = _session_returning(scalar=1)
        repo = UsageRepository(session)

        await repo.try_consume(
            QuotaIdentity.for_ip("203.0.113.7"), UsageCounter.EXPORT_COUNT, "2026-10", 1, 1
        )

        sql = _compiled(session)
        assert "INSERT INTO ip_quotas" in sql
        assert "ON CONFLICT (ip_address, period_ym) DO UPDATE" in sql

    @pytest.mark.asyncio
    async def test_no_row_returned_means_denied(self):
        session = _session_returning(scalar=None)
        repo = UsageRepository(session)

        result = await repo.try_consume(
            QuotaIdentity.for_user(uuid4()), UsageCounter.EXPORT_COUNT, "2026-10", 1, 5
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_amount_above_limit_never_hits_database(self):
        session = _session_returning()
        repo = UsageRepository(session)

        result = await repo.try_consume(
            QuotaIdentity.for_user(uuid4()), UsageCounter.EXPORT_COUNT, "2026-10", 2, 1
        )

        assert result is None
        session.execute.assert_not_called()


class TestGetCounters:

    @pytest.mark.asyncio
    async def test_missing_row_reads_as_zeros(self):
        repo = UsageRepository(_session_returning(row=None))

        counters = await repo.get_counters(QuotaIdentity.for_ip("203.0.113.7"), "2026-10")

        assert counters == {"photos_processed": 0, "magic_fill_count": 0, "export_count": 0}

    @pytest.mark.asyncio
    async def test_existing_row(self):
        row = {"photos_processed": 7, "magic_fill_count": 2, "export_count": 1}
        repo = UsageRepository(_session_returning(row=row))

        count = await repo.get_count(
            QuotaIdentity.for_user(uuid4()), UsageCounter.MAGIC_FILL_COUNT, "2026-10"
        )

        assert count == 2
