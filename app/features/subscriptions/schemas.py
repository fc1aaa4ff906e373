"""
Pydantic schemas for subscription endpoints.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.subscriptions.access import AccessStatus
from app.features.subscriptions.models import SubscriptionStatus


class SubscriptionStatusResponse(BaseModel):
    """Billing state of the acting organization."""
    organization_id: str | None = None
    status: AccessStatus
    ok: bool
    trial_end: datetime | None = None
    days_left: int | None = None
    billing_url: str | None = None
    reason: str | None = None
    next_reminder: datetime | None = None


class ExtendTrialRequest(BaseModel):
    days: int = Field(..., description="Days to add; clamped to 1..30")


class SubscriptionResponse(BaseModel):
    id: str
    organization_id: str
    status: SubscriptionStatus
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    current_period_end: datetime | None = None

    model_config = {"from_attributes": True}
