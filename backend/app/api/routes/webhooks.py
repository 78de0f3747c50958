"""
Billing Webhook Handlers

Receives subscription lifecycle events from the billing provider and
feeds them to the webhook ingestor.

- /webhooks/polar: Polar events, verified with polar-sdk
- /webhooks/billing: events for whichever provider BILLING_PROVIDER selects

Redelivery is safe: every event ends in an upsert keyed by
(user, provider). Persistence errors are not caught here, so the
endpoint answers 500 and the provider retries.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.api.dependencies import BillingProviderDep, SessionDep
from app.infrastructure.exceptions import ValidationError
from app.infrastructure.payments import BillingProvider, PolarService, get_polar_service
from app.infrastructure.services.webhook_service import WebhookIngestor


logger = logging.getLogger(__name__)

router = APIRouter()


async def _handle(request: Request, session: SessionDep, provider: BillingProvider) -> dict:
    body = await request.body()

    # Raises WebhookVerificationError (403) on a bad signature
    try:
        payload = provider.verify_webhook(body, request.headers)
    except ValueError as e:
        raise ValidationError("Webhook body is not valid JSON", original_error=e)

    outcome = await WebhookIngestor(session, provider).ingest(payload)

    # Commit before acknowledging so a failed write is answered with 500
    await session.commit()
    return {"status": outcome.value}


@router.post("/webhooks/polar")
async def polar_webhook(
    request: Request,
    session: SessionDep,
    polar: Annotated[PolarService, Depends(get_polar_service)],
):
    """Handle Polar subscription.created/updated/canceled and friends."""
    return await _handle(request, session, polar)


@router.post("/webhooks/billing")
async def billing_webhook(
    request: Request,
    session: SessionDep,
    provider: BillingProviderDep,
):
    """Handle webhooks for the configured billing provider."""
    logger.info(f"Webhook received for {provider.name.value}")
    return await _handle(request, session, provider)
