"""
Billing API Routes

Checkout, customer portal and checkout sync for the configured billing
provider, plus the public billing configuration.
"""

import logging

from fastapi import APIRouter

from app.api.dependencies import (
    BillingProviderDep,
    CurrentUser,
    SettingsDep,
    SubscriptionServiceDep,
)
from app.domain.subscription import (
    BillingConfigResponse,
    BillingProviderName,
    CheckoutRequest,
    CheckoutResponse,
    PortalRequest,
    PortalResponse,
    SubscriptionStatus,
    SyncSubscriptionRequest,
    SyncSubscriptionResponse,
)
from app.infrastructure.db.repositories.user_repository import CUSTOMER_ID_COLUMNS
from app.infrastructure.exceptions import NotFoundError


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/billing/config", response_model=BillingConfigResponse)
async def get_billing_config(settings: SettingsDep):
    """Active provider and its browser-safe configuration."""
    return BillingConfigResponse(
        provider=BillingProviderName(settings.billing_provider),
        public_config=settings.public_billing_config(),
    )


@router.post("/billing/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    user: CurrentUser,
    provider: BillingProviderDep,
    settings: SettingsDep,
):
    """
    Create a hosted checkout for the signed-in user.

    The checkout is prefilled with the user's email so the resulting
    webhook maps back to the same account.
    """
    success_url = request.success_url or f"{settings.frontend_url}/studio?checkout=success"
    checkout = await provider.create_checkout(
        customer_email=user.email,
        success_url=success_url,
        product_id=request.product_id,
        customer_name=user.name,
    )
    logger.info(f"Checkout {checkout.checkout_id} created for user {user.id}")
    return checkout


@router.post("/billing/portal", response_model=PortalResponse)
async def create_portal_session(
    user: CurrentUser,
    provider: BillingProviderDep,
    subscriptions: SubscriptionServiceDep,
    settings: SettingsDep,
    request: PortalRequest = PortalRequest(),
):
    """Open the provider's self-service portal for an active subscriber."""
    active = next(
        (
            sub
            for sub in await subscriptions.list_subscriptions(user.id)
            if sub.provider == provider.name and sub.status == SubscriptionStatus.ACTIVE
        ),
        None,
    )
    if active is None:
        logger.warning(f"No active {provider.name.value} subscription for user {user.id}")
        raise NotFoundError("No active subscription", operation="create_portal_session")

    customer_id = active.customer_id or getattr(user, CUSTOMER_ID_COLUMNS[provider.name])
    if not customer_id:
        raise NotFoundError("No billing customer on file", operation="create_portal_session")

    return_url = request.return_url or f"{settings.frontend_url}/studio"
    return await provider.create_portal_session(customer_id, return_url)


@router.post("/billing/sync-subscription", response_model=SyncSubscriptionResponse)
async def sync_subscription(
    request: SyncSubscriptionRequest,
    user: CurrentUser,
    subscriptions: SubscriptionServiceDep,
):
    """
    Record a just-completed checkout without waiting for the webhook.

    Called by the success page with the checkout id from the redirect.
    """
    subscription = await subscriptions.sync_checkout(user, request.checkout_id)
    return SyncSubscriptionResponse(plan=subscription.plan, status=subscription.status)
