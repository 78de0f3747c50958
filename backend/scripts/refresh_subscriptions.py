#!/usr/bin/env python3
"""
Subscription Refresh Script

Re-fetches live subscriptions whose billing period has ended from the
configured billing provider, so renewals and lapses missed by webhooks
are picked up. Run as a cron job or manually.

Usage:
    python -m scripts.refresh_subscriptions              # Refresh up to 50
    python -m scripts.refresh_subscriptions --limit 200  # Refresh up to 200
"""

import asyncio
import argparse
import logging

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.infrastructure.db.database import close_db, get_session_context, init_db
from app.infrastructure.payments import get_billing_provider
from app.infrastructure.services.subscription_service import SubscriptionService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def refresh_subscriptions(limit: int = 50) -> int:
    """Refresh up to `limit` period-ended subscriptions; returns how many changed."""
    provider = get_billing_provider()
    logger.info(f"Refreshing period-ended {provider.name.value} subscriptions (limit: {limit})...")

    await init_db()
    try:
        async with get_session_context() as session:
            service = SubscriptionService(session, provider=provider)
            return await service.refresh_period_ended(limit=limit)
    finally:
        await close_db()


async def main():
    parser = argparse.ArgumentParser(description="Refresh subscriptions whose period has ended")
    parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of subscriptions to refresh (default: 50)"
    )
    args = parser.parse_args()

    changed = await refresh_subscriptions(limit=args.limit)
    print(f"\nRefreshed subscriptions: {changed}")


if __name__ == "__main__":
    asyncio.run(main())
