"""Tests for the subscription-status gate.

Reference:
    - app/features/subscriptions/access.py
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.features.subscriptions.access import (
    AccessStatus,
    assert_paid_or_trial_by_org,
    expire_trials,
    get_access_status_by_org,
)
from app.features.subscriptions.models import Subscription, SubscriptionStatus
from tests.conftest import create_org


class TestNullShortCircuit:
    """A missing organization id never touches the database."""

    @pytest.mark.unit
    async def test_status_for_none(self):
        assert await get_access_status_by_org(None, None) is AccessStatus.NO_SUBSCRIPTION

    @pytest.mark.unit
    async def test_billing_for_none(self):
        access = await assert_paid_or_trial_by_org(None, None)
        assert access.ok is False
        assert access.status is AccessStatus.NO_SUBSCRIPTION


@pytest.mark.integration
class TestAccessStatusByOrg:
    async def test_unknown_organization(self, db):
        assert await get_access_status_by_org(db, "does-not-exist") is AccessStatus.NO_SUBSCRIPTION

    async def test_organization_without_subscription(self, session_factory, db):
        org = await create_org(session_factory, "Bare", status=None)
        access = await assert_paid_or_trial_by_org(db, org.id)
        assert access.ok is False
        assert access.status is AccessStatus.NO_SUBSCRIPTION

    @pytest.mark.parametrize(
        "status, expected, ok",
        [
            (SubscriptionStatus.TRIAL, AccessStatus.TRIAL, True),
            (SubscriptionStatus.ACTIVE, AccessStatus.ACTIVE, True),
            (SubscriptionStatus.EXPIRED, AccessStatus.EXPIRED, False),
        ],
    )
    async def test_status_mapping(self, session_factory, db, status, expected, ok):
        org = await create_org(session_factory, f"Org {status.value}", status=status)
        access = await assert_paid_or_trial_by_org(db, org.id)
        assert access.status is expected
        assert access.ok is ok

    @pytest.mark.parametrize("status", [SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE])
    async def test_suspended_organization_is_not_ok(self, session_factory, db, status):
        org = await create_org(session_factory, "Frozen", status=status, is_active=False)
        access = await assert_paid_or_trial_by_org(db, org.id)
        assert access.ok is False
        assert access.status.value == status.value
        assert access.reason == "suspended"

    async def test_active_organization_has_no_reason(self, session_factory, db):
        org = await create_org(session_factory, "Live")
        assert (await assert_paid_or_trial_by_org(db, org.id)).reason is None


@pytest.mark.integration
class TestExpireTrials:
    async def test_only_overdue_trials_expire(self, session_factory, db):
        now = datetime.now(timezone.utc)
        overdue = await create_org(session_factory, "Overdue", trial_end=now - timedelta(hours=1))
        running = await create_org(session_factory, "Running", trial_end=now + timedelta(days=3))
        paid = await create_org(session_factory, "Paid", status=SubscriptionStatus.ACTIVE, trial_end=now - timedelta(days=30))

        expired = await expire_trials(db, now=now)

        assert [s.organization_id for s in expired] == [overdue.id]
        result = await db.execute(select(Subscription.organization_id, Subscription.status))
        statuses = dict(result.all())
        assert statuses[overdue.id] is SubscriptionStatus.EXPIRED
        assert statuses[running.id] is SubscriptionStatus.TRIAL
        assert statuses[paid.id] is SubscriptionStatus.ACTIVE

    async def test_nothing_to_expire(self, session_factory, db):
        await create_org(session_factory, "Fresh")
        assert await expire_trials(db) == []
