"""
Application Settings for Trade Card Builder

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Literal, Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    BILLING_PROVIDER controls which billing backend handles checkout,
    customer portal and webhooks:
    - polar: Polar.sh (official polar-sdk)
    - lemon-squeezy: Lemon Squeezy REST API
    - paddle: Paddle Billing REST API
    """

    # Session tokens issued by the OAuth front end
    auth_secret: str
    auth_algorithm: str = "HS256"

    # Application Settings
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    app_version: str = "0.1.0"

    # CORS Configuration
    frontend_url: str = "http://localhost:3000"
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Billing Provider
    billing_provider: Literal["polar", "lemon-squeezy", "paddle"] = "polar"

    # Polar.sh
    polar_access_token: Optional[str] = None
    polar_webhook_secret: Optional[str] = None
    polar_product_id: Optional[str] = None
    polar_server: Optional[Literal["sandbox", "production"]] = None

    # Lemon Squeezy
    lemon_squeezy_api_key: Optional[str] = None
    lemon_squeezy_webhook_secret: Optional[str] = None
    lemon_squeezy_store_id: Optional[str] = None
    lemon_squeezy_variant_id: Optional[str] = None

    # Paddle
    paddle_api_key: Optional[str] = None
    paddle_webhook_secret: Optional[str] = None
    paddle_price_id: Optional[str] = None
    paddle_environment: Literal["sandbox", "production"] = "sandbox"

    # Product/price id -> plan name ("pro" or "free")
    plan_product_map: dict[str, str] = {}

    # OpenAI (Magic Fill)
    openai_api_key: Optional[str] = None
    openai_model: Literal[
        "gpt-3.5-turbo", "gpt-4", "gpt-4-turbo", "gpt-4o", "gpt-4o-mini"
    ] = "gpt-4o-mini"
    openai_timeout_seconds: float = 30.0

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_billing_keys(self) -> "Settings":
        """Validate credentials for the selected billing provider."""
        if self.polar_server is None:
            self.polar_server = "production" if self.is_production else "sandbox"

        required = {
            "polar": {
                "POLAR_ACCESS_TOKEN": self.polar_access_token,
                "POLAR_WEBHOOK_SECRET": self.polar_webhook_secret,
            },
            "lemon-squeezy": {
                "LEMON_SQUEEZY_API_KEY": self.lemon_squeezy_api_key,
                "LEMON_SQUEEZY_WEBHOOK_SECRET": self.lemon_squeezy_webhook_secret,
            },
            "paddle": {
                "PADDLE_API_KEY": self.paddle_api_key,
                "PADDLE_WEBHOOK_SECRET": self.paddle_webhook_secret,
            },
        }[self.billing_provider]

        missing = [key for key, value in required.items() if not value]
        if missing:
            raise ValueError(
                f"{', '.join(missing)} required when BILLING_PROVIDER={self.billing_provider}"
            )

        for key, plan in self.plan_product_map.items():
            if plan not in ("free", "pro"):
                raise ValueError(
                    f"PLAN_PRODUCT_MAP[{key}] must be 'free' or 'pro', got {plan!r}"
                )

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    def public_billing_config(self) -> dict:
        """Billing configuration that is safe to expose to the browser."""
        public = {"provider": self.billing_provider}
        if self.billing_provider == "polar" and self.polar_product_id:
            public["productId"] = self.polar_product_id
        return public

    def service_status(self) -> dict:
        """Which optional integrations are configured (no secrets)."""
        return {
            "auth": "available",
            "billing": self.billing_provider,
            "magicFill": "configured" if self.openai_api_key else "fallback",
            "database": "configured" if self.database_url else "not-configured",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
