"""
Subscription-status gate.

Derives a coarse access tier for an organization. Billing gating is a soft
business rule: callers get a boolean to branch on, nothing here raises for
billing reasons.
"""
from dataclasses import dataclass
from datetime import datetime
import enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.models import Organization
from app.features.subscriptions.models import Subscription, SubscriptionStatus
from app.features.subscriptions.utils import as_utc, utc_now
from app.utils import get_logger


log = get_logger(__name__)


class AccessStatus(str, enum.Enum):
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


_STATUS_MAP = {
    SubscriptionStatus.TRIAL: AccessStatus.TRIAL,
    SubscriptionStatus.ACTIVE: AccessStatus.ACTIVE,
    SubscriptionStatus.EXPIRED: AccessStatus.EXPIRED,
}

PAID_OR_TRIAL = frozenset({AccessStatus.ACTIVE, AccessStatus.TRIAL})

SUSPENDED = "suspended"


@dataclass(frozen=True)
class BillingAccess:
    ok: bool
    status: AccessStatus
    reason: Optional[str] = None


def access_status_for(subscription: Optional[Subscription]) -> AccessStatus:
    if subscription is None:
        return AccessStatus.NO_SUBSCRIPTION
    return _STATUS_MAP.get(subscription.status, AccessStatus.NO_SUBSCRIPTION)


def billing_access_for(status: AccessStatus) -> BillingAccess:
    return BillingAccess(ok=status in PAID_OR_TRIAL, status=status)


async def get_subscription_by_org(db: AsyncSession, organization_id: str) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription).where(Subscription.organization_id == organization_id)
    )
    return result.scalar_one_or_none()


async def is_organization_active(db: AsyncSession, organization_id: str) -> bool:
    result = await db.execute(select(Organization.is_active).where(Organization.id == organization_id))
    active = result.scalar_one_or_none()
    return active is None or bool(active)


async def get_access_status_by_org(db: AsyncSession, organization_id: Optional[str]) -> AccessStatus:
    """Access tier for an organization; None short-circuits without a query."""
    if not organization_id:
        return AccessStatus.NO_SUBSCRIPTION
    subscription = await get_subscription_by_org(db, organization_id)
    return access_status_for(subscription)


async def assert_paid_or_trial_by_org(db: AsyncSession, organization_id: Optional[str]) -> BillingAccess:
    """
    ACTIVE and TRIAL are ok; everything else is reported, not raised.

    A suspended organization is never ok, whatever its plan, and carries
    reason "suspended".
    """
    status = await get_access_status_by_org(db, organization_id)
    access = billing_access_for(status)
    if organization_id and not await is_organization_active(db, organization_id):
        log.info(f"Organization {organization_id} is suspended")
        return BillingAccess(ok=False, status=status, reason=SUSPENDED)
    if not access.ok:
        log.debug(f"Organization {organization_id} not entitled to paid features: {status.value}")
    return access


async def expire_trials(db: AsyncSession, now: Optional[datetime] = None) -> list[Subscription]:
    """Mark TRIAL subscriptions whose trial has ended as EXPIRED."""
    now = as_utc(now or utc_now())
    result = await db.execute(
        select(Subscription).where(Subscription.status == SubscriptionStatus.TRIAL)
    )
    expired = []
    for subscription in result.scalars().all():
        if subscription.trial_end is not None and as_utc(subscription.trial_end) <= now:
            subscription.status = SubscriptionStatus.EXPIRED
            expired.append(subscription)
    if expired:
        await db.commit()
        log.info(f"Expired {len(expired)} trial subscription(s)")
    return expired
