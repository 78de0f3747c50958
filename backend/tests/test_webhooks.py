"""
Integration Tests for Billing Webhooks

Verifies:
- Signature verification failure (403)
- Malformed JSON (400)
- Event processing outcomes and commit before acknowledging
- Persistence failures answered with 500 so the provider retries
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.subscription import BillingProviderName
from app.infrastructure.exceptions import WebhookVerificationError
from app.infrastructure.payments import get_billing_provider, get_polar_service
from app.infrastructure.services.webhook_service import WebhookOutcome


EVENT = {
    "type": "subscription.updated",
    "data": {
        "id": "sub_1",
        "status": "active",
        "customer": {"email": "merchant@example.com"},
        "product": {"name": "Pro Plan"},
    },
}


class TestBillingWebhooks:

    @pytest.fixture
    def session(self, app):
        """Session shared by the route and the assertions."""
        from app.infrastructure.db.database import get_session

        session = AsyncMock()

        async def shared_session():
            yield session

        app.dependency_overrides[get_session] = shared_session
        return session

    @pytest.fixture
    def provider(self, app):
        mock = MagicMock()
        mock.name = BillingProviderName.POLAR
        mock.verify_webhook.side_effect = lambda body, headers: json.loads(body)
        app.dependency_overrides[get_polar_service] = lambda: mock
        app.dependency_overrides[get_billing_provider] = lambda: mock
        return mock

    @pytest.fixture
    def ingest(self):
        with patch("app.api.routes.webhooks.WebhookIngestor") as ingestor_cls:
            ingestor_cls.return_value.ingest = AsyncMock(return_value=WebhookOutcome.PROCESSED)
            yield ingestor_cls.return_value.ingest

    def test_invalid_signature(self, client, provider, ingest):
        provider.verify_webhook.side_effect = WebhookVerificationError(
            "Invalid Polar webhook signature", provider="polar"
        )

        response = client.post("/api/webhooks/polar", json=EVENT)

        assert response.status_code == 403
        assert response.json()["error"] == "WebhookVerificationError"
        ingest.assert_not_called()

    def test_invalid_json(self, client, provider, ingest):
        response = client.post(
            "/api/webhooks/polar",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        ingest.assert_not_called()

    def test_processed_event_committed(self, client, session, provider, ingest):
        response = client.post("/api/webhooks/polar", json=EVENT)

        assert response.status_code == 200
        assert response.json() == {"status": "processed"}
        assert ingest.await_args.args[0]["data"]["id"] == "sub_1"
        session.commit.assert_awaited()

    @pytest.mark.parametrize("outcome", [WebhookOutcome.IGNORED, WebhookOutcome.DROPPED])
    def test_unprocessed_events_still_acknowledged(self, client, session, provider, ingest, outcome):
        ingest.return_value = outcome

        response = client.post("/api/webhooks/billing", json={"type": "order.created"})

        assert response.status_code == 200
        assert response.json() == {"status": outcome.value}

    def test_write_failure_returns_500(self, client, session, provider, ingest):
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("db down"))

        response = client.post("/api/webhooks/billing", json=EVENT)

        assert response.status_code == 500
