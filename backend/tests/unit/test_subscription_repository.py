"""
Unit tests for SubscriptionRepository.upsert.

The session is mocked; the upsert is compiled with the PostgreSQL
dialect to check its conflict target and the columns it overwrites.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from app.domain.subscription import (
    BillingProviderName,
    Plan,
    SubscriptionEvent,
    SubscriptionStatus,
)
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository


PERIOD_START = datetime(2026, 10, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2026, 11, 1, tzinfo=timezone.utc)


def _event(**overrides) -> SubscriptionEvent:
    values = {
        "provider": BillingProviderName.POLAR,
        "subscription_id": "sub_1",
        "status": SubscriptionStatus.ACTIVE,
        "customer_email": "merchant@example.com",
        "customer_id": "cus_1",
        "product_id": "prod_pro",
        "product_name": "Pro Plan",
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
    }
    values.update(overrides)
    return SubscriptionEvent(**values)


def _session(user_id):
    stored = SubscriptionModel(
        id=uuid4(),
        user_id=user_id,
        provider="polar",
        provider_id="sub_1",
        customer_id="cus_1",
        plan="pro",
        status="active",
        current_period_start=PERIOD_START,
        current_period_end=PERIOD_END,
        cancel_at_period_end=False,
        provider_metadata={"productId": "prod_pro", "priceId": ""},
        created_at=PERIOD_START,
        updated_at=PERIOD_START,
    )
    result = MagicMock()
    result.scalar_one_or_none.return_value = stored
    session = MagicMock()
    session.execute = AsyncMock(return_value=result)
    return session


def _upsert_sql(session) -> str:
    stmt = session.execute.await_args_list[0].args[0]
    return str(stmt.compile(dialect=postgresql.dialect())).replace('"', "")


def _set_columns(sql: str) -> set:
    set_clause = sql.split("DO UPDATE SET", 1)[1]
    return {assignment.split("=", 1)[0].strip() for assignment in set_clause.split(", ")}


class TestUpsert:

    @pytest.mark.asyncio
    async def test_conflict_target_is_user_and_provider(self):
        user_id = uuid4()
        session = _session(user_id)

        subscription = await SubscriptionRepository(session).upsert(user_id, _event(), Plan.PRO)

        sql = _upsert_sql(session)
        assert "INSERT INTO subscriptions" in sql
        assert "ON CONFLICT (user_id, provider) DO UPDATE" in sql
        assert subscription.plan == Plan.PRO
        assert subscription.provider == BillingProviderName.POLAR

    @pytest.mark.asyncio
    async def test_overwrites_provider_reported_fields(self):
        user_id = uuid4()
        session = _session(user_id)

        await SubscriptionRepository(session).upsert(
            user_id, _event(status=SubscriptionStatus.CANCELED), Plan.FREE
        )

        columns = _set_columns(_upsert_sql(session))
        assert columns == {
            "status",
            "plan",
            "provider_id",
            "customer_id",
            "cancel_at_period_end",
            "metadata",
            "updated_at",
            "current_period_start",
            "current_period_end",
        }

    @pytest.mark.asyncio
    async def test_created_at_and_owner_never_updated(self):
        user_id = uuid4()
        session = _session(user_id)

        await SubscriptionRepository(session).upsert(user_id, _event(), Plan.PRO)

        columns = _set_columns(_upsert_sql(session))
        assert "created_at" not in columns
        assert "id" not in columns
        assert "user_id" not in columns

    @pytest.mark.asyncio
    async def test_missing_period_keeps_stored_bounds(self):
        user_id = uuid4()
        session = _session(user_id)

        await SubscriptionRepository(session).upsert(
            user_id,
            _event(current_period_start=None, current_period_end=None),
            Plan.PRO,
        )

        columns = _set_columns(_upsert_sql(session))
        assert "current_period_start" not in columns
        assert "current_period_end" not in columns

    @pytest.mark.asyncio
    async def test_redelivery_issues_the_same_update(self):
        user_id = uuid4()
        first, second = _session(user_id), _session(user_id)

        await SubscriptionRepository(first).upsert(user_id, _event(), Plan.PRO)
        await SubscriptionRepository(second).upsert(user_id, _event(), Plan.PRO)

        first_sql, second_sql = _upsert_sql(first), _upsert_sql(second)
        assert first_sql.split("ON CONFLICT", 1)[1] == second_sql.split("ON CONFLICT", 1)[1]
        first_params = first.execute.await_args_list[0].args[0].compile(
            dialect=postgresql.dialect()
        ).params
        assert first_params["status"] == "active"
        assert first_params["plan"] == "pro"
        assert first_params["metadata"] == {"productId": "prod_pro", "priceId": ""}
