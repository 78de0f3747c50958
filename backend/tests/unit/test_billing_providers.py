"""
Unit tests for the billing providers: webhook signature checks and the
mapping of each provider's payloads onto SubscriptionEvent.

No provider API is contacted; polar-sdk's client and the REST helper
are mocked.
"""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from polar_sdk.webhooks import WebhookVerificationError as PolarVerificationError

from app.config.settings import Settings
from app.domain.subscription import BillingProviderName, SubscriptionStatus
from app.infrastructure.exceptions import (
    NotFoundError,
    ProviderError,
    WebhookVerificationError,
)
from app.infrastructure.payments import (
    LemonSqueezyService,
    PaddleService,
    PolarService,
    build_billing_provider,
)
from app.infrastructure.payments.base import parse_timestamp
from app.infrastructure.payments.paddle_service import parse_signature_header


WEBHOOK_SECRET = "whsec_test"


def _settings(**overrides) -> Settings:
    values = {
        "auth_secret": "test-auth-secret",
        "billing_provider": "polar",
        "polar_access_token": "polar_token",
        "polar_webhook_secret": WEBHOOK_SECRET,
        "lemon_squeezy_api_key": "ls_key",
        "lemon_squeezy_webhook_secret": WEBHOOK_SECRET,
        "lemon_squeezy_store_id": "1",
        "lemon_squeezy_variant_id": "2",
        "paddle_api_key": "pdl_key",
        "paddle_webhook_secret": WEBHOOK_SECRET,
        "paddle_price_id": "pri_1",
    }
    values.update(overrides)
    return Settings(**values)


def _hex(payload: bytes) -> str:
    return hmac.new(WEBHOOK_SECRET.encode(), payload, hashlib.sha256).hexdigest()


# =============================================================================
# Shared helpers
# =============================================================================

class TestHelpers:

    def test_parse_timestamp_variants(self):
        assert parse_timestamp("2026-10-01T00:00:00Z").tzinfo is not None
        assert parse_timestamp("2026-10-01T00:00:00").tzinfo is not None
        assert parse_timestamp("not a date") is None
        assert parse_timestamp(None) is None

    def test_parse_signature_header(self):
        assert parse_signature_header("ts=1671552777;h1=abc") == {"ts": "1671552777", "h1": "abc"}
        assert parse_signature_header("garbage") == {}

    @pytest.mark.parametrize(
        "name, cls",
        [("polar", PolarService), ("lemon-squeezy", LemonSqueezyService), ("paddle", PaddleService)],
    )
    def test_factory_builds_each_provider(self, name, cls):
        with patch("app.infrastructure.payments.polar_service.Polar"):
            provider = build_billing_provider(_settings(billing_provider=name))
        assert isinstance(provider, cls)


# =============================================================================
# Polar
# =============================================================================

POLAR_SUBSCRIPTION = {
    "id": "sub_polar_1",
    "status": "active",
    "current_period_start": "2026-10-01T00:00:00Z",
    "current_period_end": "2026-11-01T00:00:00Z",
    "cancel_at_period_end": False,
    "customer": {"id": "cus_polar_1", "email": "merchant@example.com", "name": "Merchant"},
    "product": {"id": "prod_polar_1", "name": "Pro Plan"},
    "prices": [{"id": "price_polar_1"}],
}


class TestPolarService:

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def polar(self, client):
        return PolarService(_settings(polar_product_id="prod_polar_1"), client=client)

    def test_parse_subscription_event(self, polar):
        event = polar.parse_event({"type": "subscription.updated", "data": POLAR_SUBSCRIPTION})

        assert event.provider == BillingProviderName.POLAR
        assert event.subscription_id == "sub_polar_1"
        assert event.status == SubscriptionStatus.ACTIVE
        assert event.customer_email == "merchant@example.com"
        assert event.customer_id == "cus_polar_1"
        assert event.product_name == "Pro Plan"
        assert event.price_id == "price_polar_1"
        assert event.current_period_end.month == 11

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "order.created", "data": {"id": "ord_1", "status": "paid"}},
            {"type": "subscription.updated", "data": {**POLAR_SUBSCRIPTION, "status": "trialing"}},
            {"type": "checkout.created", "data": "not an object"},
            {"type": "customer.created"},
        ],
    )
    def test_non_subscription_payloads_ignored(self, polar, payload):
        assert polar.parse_event(payload) is None

    def test_verify_webhook_returns_payload(self, polar):
        body = json.dumps({"type": "subscription.created", "data": POLAR_SUBSCRIPTION}).encode()
        with patch("app.infrastructure.payments.polar_service.validate_event") as validate:
            payload = polar.verify_webhook(body, {"webhook-signature": "v1,abc"})

        validate.assert_called_once()
        assert validate.call_args.kwargs["secret"] == WEBHOOK_SECRET
        assert payload["data"]["id"] == "sub_polar_1"

    def test_verify_webhook_rejects_bad_signature(self, polar):
        with patch(
            "app.infrastructure.payments.polar_service.validate_event",
            side_effect=PolarVerificationError("bad signature"),
        ):
            with pytest.raises(WebhookVerificationError):
                polar.verify_webhook(b"{}", {})

    @pytest.mark.asyncio
    async def test_fetch_checkout_succeeded(self, polar, client):
        checkout = MagicMock()
        checkout.model_dump.return_value = {
            "id": "co_1",
            "status": "succeeded",
            "subscription_id": "sub_polar_1",
            "customer_id": "cus_polar_1",
            "customer_email": "merchant@example.com",
            "product_id": "prod_polar_1",
            "product": {"id": "prod_polar_1", "name": "Pro Plan"},
        }
        client.checkouts.get_async = AsyncMock(return_value=checkout)

        event = await polar.fetch_checkout("co_1")

        assert event.subscription_id == "sub_polar_1"
        assert event.checkout_id == "co_1"
        assert event.status == SubscriptionStatus.ACTIVE
        assert (event.current_period_end - event.current_period_start).days == 30

    @pytest.mark.asyncio
    async def test_fetch_checkout_not_completed(self, polar, client):
        checkout = MagicMock()
        checkout.model_dump.return_value = {"id": "co_1", "status": "open"}
        client.checkouts.get_async = AsyncMock(return_value=checkout)

        with pytest.raises(NotFoundError):
            await polar.fetch_checkout("co_1")

    @pytest.mark.asyncio
    async def test_sdk_failure_becomes_provider_error(self, polar, client):
        client.subscriptions.get_async = AsyncMock(side_effect=RuntimeError("timeout"))

        with pytest.raises(ProviderError) as exc_info:
            await polar.fetch_subscription("sub_polar_1")
        assert exc_info.value.details == {"provider": "polar", "operation": "fetch_subscription"}

    @pytest.mark.asyncio
    async def test_create_checkout_prefills_email(self, polar, client):
        client.checkouts.create_async = AsyncMock(
            return_value=MagicMock(id="co_2", url="https://polar.sh/checkout/co_2")
        )

        response = await polar.create_checkout("merchant@example.com", "https://app/success")

        request = client.checkouts.create_async.await_args.kwargs["request"]
        assert request["products"] == ["prod_polar_1"]
        assert request["customer_email"] == "merchant@example.com"
        assert response.url == "https://polar.sh/checkout/co_2"

    @pytest.mark.asyncio
    async def test_create_portal_session(self, polar, client):
        client.customer_sessions.create_async = AsyncMock(
            return_value=MagicMock(customer_portal_url="https://polar.sh/portal/x")
        )

        response = await polar.create_portal_session("cus_polar_1", "https://app/studio")

        assert response.url == "https://polar.sh/portal/x"


# =============================================================================
# Lemon Squeezy
# =============================================================================

LEMON_WEBHOOK = {
    "meta": {"event_name": "subscription_updated"},
    "data": {
        "type": "subscriptions",
        "id": 1234,
        "attributes": {
            "status": "cancelled",
            "user_email": "merchant@example.com",
            "user_name": "Merchant",
            "customer_id": 987,
            "product_id": 55,
            "product_name": "Trade Card Pro",
            "variant_id": 66,
            "created_at": "2026-10-01T00:00:00.000000Z",
            "renews_at": None,
            "ends_at": "2026-11-01T00:00:00.000000Z",
            "cancelled": True,
        },
    },
}


class TestLemonSqueezyService:

    @pytest.fixture
    def lemon(self):
        return LemonSqueezyService(_settings(billing_provider="lemon-squeezy"))

    def test_signature_accepted(self, lemon):
        body = json.dumps(LEMON_WEBHOOK).encode()
        payload = lemon.verify_webhook(body, {"x-signature": _hex(body)})
        assert payload["meta"]["event_name"] == "subscription_updated"

    @pytest.mark.parametrize("headers", [{}, {"x-signature": "deadbeef"}])
    def test_signature_rejected(self, lemon, headers):
        with pytest.raises(WebhookVerificationError):
            lemon.verify_webhook(b"{}", headers)

    def test_parse_event_normalizes_cancelled(self, lemon):
        event = lemon.parse_event(LEMON_WEBHOOK)

        assert event.provider == BillingProviderName.LEMON_SQUEEZY
        assert event.subscription_id == "1234"
        assert event.status == SubscriptionStatus.CANCELED
        assert event.customer_id == "987"
        assert event.price_id == "66"
        assert event.cancel_at_period_end is True
        assert event.current_period_end.month == 11

    def test_order_events_ignored(self, lemon):
        assert lemon.parse_event({**LEMON_WEBHOOK, "meta": {"event_name": "order_created"}}) is None

    @pytest.mark.asyncio
    async def test_fetch_checkout_requires_paid_order(self, lemon):
        with patch.object(
            lemon,
            "_request",
            AsyncMock(return_value={"data": {"attributes": {"status": "pending"}}}),
        ):
            with pytest.raises(NotFoundError):
                await lemon.fetch_checkout("ord_1")

    @pytest.mark.asyncio
    async def test_create_checkout_posts_json_api(self, lemon):
        request = AsyncMock(
            return_value={"data": {"id": "chk_1", "attributes": {"url": "https://lemon/chk_1"}}}
        )
        with patch.object(lemon, "_request", request):
            response = await lemon.create_checkout("merchant@example.com", "https://app/success")

        method, path, _ = request.await_args.args
        body = request.await_args.kwargs["json"]
        assert (method, path) == ("POST", "/checkouts")
        assert body["data"]["relationships"]["variant"]["data"]["id"] == "2"
        assert response.checkout_id == "chk_1"


# =============================================================================
# Paddle
# =============================================================================

PADDLE_WEBHOOK = {
    "event_type": "subscription.activated",
    "data": {
        "id": "sub_pdl_1",
        "status": "active",
        "customer_id": "ctm_1",
        "items": [
            {
                "price": {"id": "pri_1", "product_id": "pro_1", "description": "Monthly"},
                "product": {"id": "pro_1", "name": "Pro Plan"},
            }
        ],
        "current_billing_period": {
            "starts_at": "2026-10-01T00:00:00Z",
            "ends_at": "2026-11-01T00:00:00Z",
        },
        "scheduled_change": {"action": "cancel"},
    },
}


class TestPaddleService:

    @pytest.fixture
    def paddle(self):
        return PaddleService(_settings(billing_provider="paddle"))

    def test_uses_sandbox_by_default(self, paddle):
        assert paddle.base_url == "https://sandbox-api.paddle.com"

    def test_signature_accepted(self, paddle):
        body = json.dumps(PADDLE_WEBHOOK).encode()
        header = f"ts=1700000000;h1={_hex(b'1700000000:' + body)}"

        payload = paddle.verify_webhook(body, {"paddle-signature": header})

        assert payload["event_type"] == "subscription.activated"

    def test_signature_over_other_timestamp_rejected(self, paddle):
        body = json.dumps(PADDLE_WEBHOOK).encode()
        header = f"ts=1700000001;h1={_hex(b'1700000000:' + body)}"

        with pytest.raises(WebhookVerificationError):
            paddle.verify_webhook(body, {"paddle-signature": header})

    def test_parse_event(self, paddle):
        event = paddle.parse_event(PADDLE_WEBHOOK)

        assert event.subscription_id == "sub_pdl_1"
        assert event.customer_email is None
        assert event.customer_id == "ctm_1"
        assert event.product_name == "Pro Plan"
        assert event.cancel_at_period_end is True

    def test_transaction_events_ignored(self, paddle):
        payload = {"event_type": "transaction.completed", "data": {"status": "active"}}
        assert paddle.parse_event(payload) is None

    @pytest.mark.asyncio
    async def test_complete_event_looks_up_customer(self, paddle):
        event = paddle.parse_event(PADDLE_WEBHOOK)
        request = AsyncMock(
            return_value={"data": {"email": "merchant@example.com", "name": "Merchant"}}
        )
        with patch.object(paddle, "_request", request):
            completed = await paddle.complete_event(event)

        assert request.await_args.args[:2] == ("GET", "/customers/ctm_1")
        assert completed.customer_email == "merchant@example.com"
        assert completed.customer_name == "Merchant"

    @pytest.mark.asyncio
    async def test_create_portal_session(self, paddle):
        request = AsyncMock(
            return_value={"data": {"urls": {"general": {"overview": "https://paddle/portal"}}}}
        )
        with patch.object(paddle, "_request", request):
            response = await paddle.create_portal_session("ctm_1", "https://app/studio")

        assert response.url == "https://paddle/portal"
