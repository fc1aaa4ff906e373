"""
Expire trial subscriptions whose trial window has ended.

Meant to be run periodically (cron, systemd timer).

Usage:
    python -m scripts.expire_trials
"""
import asyncio

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.subscriptions.access import expire_trials
from app.utils import get_logger


log = get_logger(__name__)


async def main():
    await init_db()
    async with AsyncSessionLocal() as db:
        expired = await expire_trials(db)
    for subscription in expired:
        log.info(f"Trial expired for organization {subscription.organization_id}")
    log.info("Done")


if __name__ == "__main__":
    asyncio.run(main())
