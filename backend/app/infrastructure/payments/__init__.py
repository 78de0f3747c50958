"""
Payments Infrastructure Module

Billing provider implementations and the factory that picks the one
selected by BILLING_PROVIDER.
"""

from functools import lru_cache
from typing import Optional

from app.config.settings import Settings, get_settings
from app.infrastructure.payments.base import BillingProvider
from app.infrastructure.payments.lemon_squeezy_service import LemonSqueezyService
from app.infrastructure.payments.paddle_service import PaddleService
from app.infrastructure.payments.polar_service import PolarService


PROVIDER_CLASSES = {
    "polar": PolarService,
    "lemon-squeezy": LemonSqueezyService,
    "paddle": PaddleService,
}


def build_billing_provider(settings: Settings, name: Optional[str] = None) -> BillingProvider:
    """Instantiate a billing provider; defaults to the configured one."""
    return PROVIDER_CLASSES[name or settings.billing_provider](settings)


@lru_cache
def get_billing_provider() -> BillingProvider:
    """Get the configured billing provider singleton."""
    return build_billing_provider(get_settings())


@lru_cache
def get_polar_service() -> PolarService:
    """Polar client for the dedicated /webhooks/polar endpoint."""
    return PolarService(get_settings())


__all__ = [
    "BillingProvider",
    "PolarService",
    "LemonSqueezyService",
    "PaddleService",
    "build_billing_provider",
    "get_billing_provider",
    "get_polar_service",
]
