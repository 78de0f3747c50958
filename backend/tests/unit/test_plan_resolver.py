"""
Unit tests for the plan resolution rules in app.domain.subscription.

Covers product -> plan mapping, selection of the subscription that
decides a user's plan, and staleness detection.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.domain.subscription import (
    BillingProviderName,
    Plan,
    Subscription,
    SubscriptionEvent,
    SubscriptionStatus,
    effective_plan,
    is_known_status,
    needs_refresh,
    resolve_plan,
    select_current_subscription,
)


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _subscription(**overrides) -> Subscription:
    values = {
        "id": uuid4(),
        "user_id": uuid4(),
        "provider": BillingProviderName.POLAR,
        "provider_id": "sub_1",
        "plan": Plan.PRO,
        "status": SubscriptionStatus.ACTIVE,
        "current_period_start": NOW - timedelta(days=10),
        "current_period_end": NOW + timedelta(days=20),
        "created_at": NOW - timedelta(days=10),
    }
    values.update(overrides)
    return Subscription(**values)


class TestResolvePlan:

    @pytest.mark.parametrize("name", ["Pro Plan", "PRO", "Trade Card Pro (monthly)", "professional"])
    def test_names_containing_pro_are_pro(self, name):
        assert resolve_plan(name) == Plan.PRO

    @pytest.mark.parametrize("name", ["Starter", "Basic", "", None])
    def test_other_names_are_free(self, name):
        assert resolve_plan(name) == Plan.FREE

    def test_price_mapping_wins_over_name(self):
        plan = resolve_plan(
            "Pro Plan",
            product_id="prod_1",
            price_id="price_free",
            plan_map={"price_free": "free", "prod_1": "pro"},
        )
        assert plan == Plan.FREE

    def test_product_mapping_used_when_price_unmapped(self):
        plan = resolve_plan("Starter", product_id="prod_1", price_id="price_x", plan_map={"prod_1": "pro"})
        assert plan == Plan.PRO

    def test_unmapped_ids_fall_back_to_name(self):
        plan = resolve_plan("Pro Plan", product_id="prod_other", plan_map={"prod_1": "free"})
        assert plan == Plan.PRO


class TestKnownStatus:

    @pytest.mark.parametrize("status", ["active", "canceled", "past_due", "unpaid"])
    def test_known(self, status):
        assert is_known_status(status)

    @pytest.mark.parametrize("status", ["trialing", "cancelled", "", None, 3])
    def test_unknown(self, status):
        assert not is_known_status(status)


class TestSelectCurrentSubscription:

    def test_empty(self):
        assert select_current_subscription([]) is None

    def test_most_recent_live_wins(self):
        older = _subscription(created_at=NOW - timedelta(days=30))
        newer = _subscription(created_at=NOW - timedelta(days=1), status=SubscriptionStatus.PAST_DUE)
        assert select_current_subscription([older, newer]) is newer

    def test_live_preferred_over_newer_canceled(self):
        active = _subscription(created_at=NOW - timedelta(days=30))
        canceled = _subscription(created_at=NOW, status=SubscriptionStatus.CANCELED)
        assert select_current_subscription([canceled, active]) is active

    def test_falls_back_to_most_recent_of_any_status(self):
        old = _subscription(created_at=NOW - timedelta(days=30), status=SubscriptionStatus.UNPAID)
        new = _subscription(created_at=NOW, status=SubscriptionStatus.CANCELED)
        assert select_current_subscription([old, new]) is new

    def test_naive_created_at_treated_as_utc(self):
        naive = _subscription(created_at=datetime(2026, 10, 18, 12, 0))
        aware = _subscription(created_at=NOW - timedelta(days=5))
        assert select_current_subscription([aware, naive]) is naive


class TestNeedsRefresh:

    def test_active_within_period_is_fresh(self):
        assert needs_refresh(_subscription(), now=NOW) is False

    def test_period_ended_is_stale(self):
        sub = _subscription(current_period_end=NOW - timedelta(seconds=1))
        assert needs_refresh(sub, now=NOW) is True

    def test_not_active_is_stale(self):
        assert needs_refresh(_subscription(status=SubscriptionStatus.PAST_DUE), now=NOW) is True

    def test_no_period_end_is_fresh(self):
        assert needs_refresh(_subscription(current_period_end=None), now=NOW) is False

    def test_force(self):
        assert needs_refresh(_subscription(), now=NOW, force=True) is True


class TestEffectivePlan:

    def test_none_is_free(self):
        assert effective_plan(None) == Plan.FREE

    def test_past_due_keeps_plan(self):
        assert effective_plan(_subscription(status=SubscriptionStatus.PAST_DUE)) == Plan.PRO

    @pytest.mark.parametrize("status", [SubscriptionStatus.CANCELED, SubscriptionStatus.UNPAID])
    def test_not_live_is_free(self, status):
        assert effective_plan(_subscription(status=status)) == Plan.FREE


class TestSubscriptionEventMetadata:

    def test_metadata_includes_checkout_only_when_present(self):
        event = SubscriptionEvent(
            provider=BillingProviderName.POLAR,
            subscription_id="sub_1",
            status=SubscriptionStatus.ACTIVE,
            product_id="prod_1",
        )
        assert event.provider_metadata() == {"productId": "prod_1", "priceId": ""}

        with_checkout = event.model_copy(update={"checkout_id": "co_1"})
        assert with_checkout.provider_metadata()["checkoutId"] == "co_1"
