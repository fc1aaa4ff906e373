"""
Subscription routes: billing status for the current tenant and trial
administration for super admins.
"""
from datetime import timedelta
from typing import Annotated
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.errors import NotFoundError
from app.features.users.auth import Identity
from app.features.users.dependencies import get_current_super_admin
from app.features.permissions.dependencies import AuthContext, authorize, create_audit_log
from app.features.subscriptions.access import (
    AccessStatus,
    assert_paid_or_trial_by_org,
    get_subscription_by_org,
)
from app.features.subscriptions.models import Subscription, SubscriptionStatus
from app.features.subscriptions.schemas import (
    ExtendTrialRequest,
    SubscriptionResponse,
    SubscriptionStatusResponse,
)
from app.features.subscriptions.utils import (
    as_utc,
    compute_one_year_period_end,
    get_days_left,
    get_next_reminder,
    utc_now,
)


router = APIRouter(tags=["subscriptions"])

MAX_TRIAL_EXTENSION_DAYS = 30


@router.get("/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    ctx: Annotated[AuthContext, Depends(authorize(require_org=False))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Billing status of the acting organization. Without a tenant this reports NO_SUBSCRIPTION."""
    subscription = None
    if ctx.organization_id is not None:
        subscription = await get_subscription_by_org(db, ctx.organization_id)

    access = await assert_paid_or_trial_by_org(db, ctx.organization_id)
    days_left = next_reminder = None
    if access.status is AccessStatus.TRIAL and subscription.trial_end is not None:
        now = utc_now()
        days_left = get_days_left(subscription.trial_end, now)
        next_reminder = get_next_reminder(subscription.trial_end, now)

    return SubscriptionStatusResponse(
        organization_id=ctx.organization_id,
        status=access.status,
        ok=access.ok,
        trial_end=subscription.trial_end if subscription else None,
        days_left=days_left,
        billing_url=None if access.ok else config.BILLING_URL,
        reason=access.reason,
        next_reminder=next_reminder,
    )


async def _get_subscription_or_404(db: AsyncSession, organization_id: str) -> Subscription:
    subscription = await get_subscription_by_org(db, organization_id)
    if subscription is None:
        raise NotFoundError("Subscription")
    return subscription


@router.post("/{organization_id}/extend-trial", response_model=SubscriptionResponse)
async def extend_trial(
    organization_id: str,
    extend_data: ExtendTrialRequest,
    request: Request,
    admin: Annotated[Identity, Depends(get_current_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Push the trial end back by 1 to 30 days (super admin only)."""
    subscription = await _get_subscription_or_404(db, organization_id)
    extend_by = min(MAX_TRIAL_EXTENSION_DAYS, max(1, extend_data.days))

    base = as_utc(subscription.trial_end) if subscription.trial_end else utc_now()
    subscription.trial_end = base + timedelta(days=extend_by)
    await db.commit()
    await db.refresh(subscription)

    await create_audit_log(
        db,
        user_id=admin.user_id,
        action="TRIAL_EXTEND",
        resource_type="subscription",
        resource_id=subscription.id,
        organization_id=organization_id,
        details={"days": extend_by},
        request=request,
    )
    return subscription


@router.post("/{organization_id}/convert", response_model=SubscriptionResponse)
async def convert_trial(
    organization_id: str,
    request: Request,
    admin: Annotated[Identity, Depends(get_current_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Convert the organization to a paid plan (super admin only).

    Idempotent: an already active subscription is returned unchanged.
    """
    subscription = await _get_subscription_or_404(db, organization_id)
    previous_status = subscription.status

    if previous_status is not SubscriptionStatus.ACTIVE:
        now = utc_now()
        subscription.status = SubscriptionStatus.ACTIVE
        # Clamp a future trial end so the UI shows Active, not leftover days
        if subscription.trial_end is not None and as_utc(subscription.trial_end) > now:
            subscription.trial_end = now
        subscription.current_period_end = compute_one_year_period_end(now)
        await db.commit()
        await db.refresh(subscription)

    await create_audit_log(
        db,
        user_id=admin.user_id,
        action="TRIAL_CONVERT",
        resource_type="subscription",
        resource_id=subscription.id,
        organization_id=organization_id,
        details={
            "previous_status": previous_status.value,
            "idempotent": previous_status is SubscriptionStatus.ACTIVE,
        },
        request=request,
    )
    return subscription
