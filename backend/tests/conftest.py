"""
Test configuration and fixtures for Trade Card Builder.

Environment variables are set before the app is imported so Settings
validates without a .env file. No database or billing provider is
contacted; routes run against mocks through app.dependency_overrides.
"""

import os

os.environ.setdefault("AUTH_SECRET", "test-auth-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BILLING_PROVIDER", "polar")
os.environ.setdefault("POLAR_ACCESS_TOKEN", "polar_test_token")
os.environ.setdefault("POLAR_WEBHOOK_SECRET", "polar_test_webhook_secret")
os.environ.setdefault("POLAR_PRODUCT_ID", "prod_test")

from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.infrastructure.db.models.product_draft import ProductDraft
from app.infrastructure.db.models.user import User


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application with a mocked database session."""
    from app.main import app
    from app.infrastructure.db.database import get_session

    async def fake_session() -> AsyncGenerator[AsyncMock, None]:
        yield AsyncMock()

    app.dependency_overrides[get_session] = fake_session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app, raise_server_exceptions=False)


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def user():
    return User(id=uuid4(), email="merchant@example.com", name="Merchant")


@pytest.fixture
def auth_user(app, user):
    """Sign every request in as `user`."""
    from app.api.dependencies import get_current_user, get_optional_user

    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_optional_user] = lambda: user
    return user


@pytest.fixture
def anonymous(app):
    """Treat every request as signed out."""
    from app.api.dependencies import get_optional_user

    app.dependency_overrides[get_optional_user] = lambda: None


@pytest.fixture
def make_draft(user):
    """Factory for stored drafts owned by `user`."""
    def _make(**overrides) -> ProductDraft:
        now = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
        values = {
            "id": uuid4(),
            "user_id": user.id,
            "sku": "SKU-1",
            "brand": "Samsung",
            "type": "Смартфон",
            "model": "Galaxy A55",
            "key_spec": "8/256 ГБ",
            "title_ru": "Смартфон Samsung Galaxy A55 8/256 ГБ",
            "title_kz": "Samsung Galaxy A55 смартфоны 8/256 ГБ",
            "desc_ru": "Описание",
            "desc_kz": "Сипаттама",
            "category": "electronics",
            "price": 199990.0,
            "quantity": 3,
            "status": "draft",
            "attributes": {"Цвет": "черный"},
            "variants": None,
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return ProductDraft(**values)

    return _make


@pytest.fixture
def mock_quota_service():
    mock = MagicMock()
    mock.check = AsyncMock()
    mock.consume = AsyncMock()
    mock.usage = AsyncMock(
        return_value={"photos_processed": 0, "magic_fill_count": 0, "export_count": 0}
    )
    return mock


@pytest.fixture
def mock_draft_repo():
    mock = MagicMock()
    for name in (
        "list_for_user",
        "get_for_user",
        "get_many_for_user",
        "create_for_user",
        "update_for_user",
        "delete_for_user",
        "mark_exported",
    ):
        setattr(mock, name, AsyncMock())
    return mock
