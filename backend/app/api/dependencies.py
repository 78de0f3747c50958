"""
API Dependencies

FastAPI dependency injection for authentication and common services.

Security: session tokens issued by the OAuth front end are HS256 JWTs
signed with AUTH_SECRET. They are always verified, never just decoded.
"""

import logging
from typing import Annotated, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config.settings import Settings, get_settings
from app.domain.quota import QuotaIdentity
from app.infrastructure.ai.openai_service import (
    ProductEnrichmentService,
    get_enrichment_service,
)
from app.infrastructure.db.dependencies import SessionDep, UserRepoDep
from app.infrastructure.db.models.user import User
from app.infrastructure.exceptions import UnauthorizedError
from app.infrastructure.payments import BillingProvider, get_billing_provider
from app.infrastructure.services.quota_service import QuotaService
from app.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def decode_session_token(token: str, settings: Settings) -> dict:
    """
    Verify a session JWT and return its claims.

    Raises:
        UnauthorizedError: expired, badly signed, or missing exp/email
    """
    try:
        return jwt.decode(
            token,
            settings.auth_secret,
            algorithms=[settings.auth_algorithm],
            options={"require": ["exp", "email"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Session has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Session token rejected: {e}")
        raise UnauthorizedError("Invalid session token")


async def get_current_user(
    users: UserRepoDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """
    Resolve the signed-in user, creating the row on first sign-in.

    Raises:
        UnauthorizedError: token missing or invalid
    """
    if not credentials:
        raise UnauthorizedError("Missing authorization token")

    claims = decode_session_token(credentials.credentials, get_settings())
    return await users.get_or_create(claims["email"], claims.get("name"))


async def get_optional_user(
    users: UserRepoDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[User]:
    """
    Signed-in user if a valid token is present.

    Returns ``None`` for missing or invalid tokens (anonymous endpoints).
    """
    if not credentials:
        return None

    try:
        return await get_current_user(users, credentials)
    except UnauthorizedError:
        return None


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
ClientIp = Annotated[str, Depends(get_client_ip)]


async def get_quota_identity(user: OptionalUser, ip_address: ClientIp) -> QuotaIdentity:
    """Meter signed-in callers by user, everyone else by IP."""
    if user is not None:
        return QuotaIdentity.for_user(user.id)
    return QuotaIdentity.for_ip(ip_address)


QuotaIdentityDep = Annotated[QuotaIdentity, Depends(get_quota_identity)]


# =============================================================================
# Services
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings)]
BillingProviderDep = Annotated[BillingProvider, Depends(get_billing_provider)]


async def get_subscription_service(
    session: SessionDep,
    provider: BillingProviderDep,
) -> SubscriptionService:
    return SubscriptionService(session, provider=provider)


async def get_quota_service(session: SessionDep) -> QuotaService:
    return QuotaService(session)


SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]
QuotaServiceDep = Annotated[QuotaService, Depends(get_quota_service)]
EnrichmentServiceDep = Annotated[ProductEnrichmentService, Depends(get_enrichment_service)]


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
from app.infrastructure.db.dependencies import (  # noqa: E402, F401
    ProductDraftRepoDep,
)
