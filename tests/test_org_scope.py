"""Unit tests for organization scope resolution.

Reference:
    - app/features/organizations/dependencies.py
"""

import pytest

from app.core.errors import ForbiddenError, NoOrganizationError
from app.features.organizations.dependencies import (
    assert_org_access,
    resolve_org_context,
    resolve_target_organization,
    tenant_filter,
)
from app.features.organizations.impersonation import ImpersonationContext
from app.features.permissions.catalog import Role
from app.features.users.auth import Identity
from app.features.users.models import User


pytestmark = pytest.mark.unit


@pytest.fixture
def member() -> Identity:
    return Identity(user_id="u-1", role=Role.EMPLOYEE, organization_id="org-1")


@pytest.fixture
def super_admin() -> Identity:
    return Identity(user_id="u-root", role=Role.ORG_MEMBER, is_super_admin=True, organization_id=None)


@pytest.fixture
def impersonating_org_2() -> ImpersonationContext:
    return ImpersonationContext(organization_id="org-2", issued_by="u-root")


class TestResolveOrgContext:
    def test_member_resolves_own_org(self, member):
        ctx = resolve_org_context(member)
        assert ctx.organization_id == "org-1"
        assert ctx.impersonating is False

    def test_member_ignores_impersonation(self, member, impersonating_org_2):
        ctx = resolve_org_context(member, impersonating_org_2)
        assert ctx.organization_id == "org-1"
        assert ctx.impersonating is False

    def test_super_admin_impersonation_wins(self, super_admin, impersonating_org_2):
        ctx = resolve_org_context(super_admin, impersonating_org_2)
        assert ctx.organization_id == "org-2"
        assert ctx.impersonating is True

    def test_super_admin_with_own_org_and_impersonation(self, impersonating_org_2):
        identity = Identity(user_id="u-root", role=Role.ORG_ADMIN, is_super_admin=True, organization_id="org-1")
        assert resolve_org_context(identity, impersonating_org_2).organization_id == "org-2"
        assert resolve_org_context(identity).organization_id == "org-1"

    def test_no_org_no_impersonation_resolves_none(self, super_admin):
        assert resolve_org_context(super_admin).organization_id is None

    def test_impersonation_never_changes_role(self, super_admin, impersonating_org_2):
        resolve_org_context(super_admin, impersonating_org_2)
        assert super_admin.role is Role.ORG_MEMBER


class TestAssertOrgAccess:
    def test_returns_org_id(self, member):
        assert assert_org_access(member) == "org-1"

    def test_raises_without_org(self):
        identity = Identity(user_id="u-2", role=Role.ORG_MEMBER)
        with pytest.raises(NoOrganizationError) as exc_info:
            assert_org_access(identity)
        assert exc_info.value.code == "NO_ORGANIZATION"

    def test_super_admin_without_impersonation_raises(self, super_admin):
        with pytest.raises(NoOrganizationError):
            assert_org_access(super_admin)

    def test_super_admin_with_impersonation(self, super_admin, impersonating_org_2):
        assert assert_org_access(super_admin, impersonating_org_2) == "org-2"


class TestResolveTargetOrganization:
    def test_member_own_target(self, member):
        assert resolve_target_organization(member, None, "org-1") == "org-1"

    def test_member_other_target_forbidden(self, member):
        with pytest.raises(ForbiddenError):
            resolve_target_organization(member, None, "org-2")

    def test_member_other_target_forbidden_even_with_impersonation(self, member, impersonating_org_2):
        with pytest.raises(ForbiddenError):
            resolve_target_organization(member, impersonating_org_2, "org-2")

    def test_member_without_target_gets_own(self, member):
        assert resolve_target_organization(member, None, None) == "org-1"

    def test_super_admin_explicit_target(self, super_admin, impersonating_org_2):
        assert resolve_target_organization(super_admin, None, "org-9") == "org-9"
        assert resolve_target_organization(super_admin, impersonating_org_2, "org-9") == "org-9"

    def test_super_admin_falls_back_to_impersonation(self, super_admin, impersonating_org_2):
        assert resolve_target_organization(super_admin, impersonating_org_2, None) == "org-2"

    def test_super_admin_needs_a_target(self, super_admin):
        with pytest.raises(NoOrganizationError):
            resolve_target_organization(super_admin, None, None)


class TestTenantFilter:
    def test_member_is_restricted(self, member):
        clause = tenant_filter(member, None, User.organization_id)
        assert clause is not None
        assert clause.right.value == "org-1"

    def test_super_admin_unrestricted(self, super_admin):
        assert tenant_filter(super_admin, None, User.organization_id) is None

    def test_super_admin_impersonating_is_restricted(self, super_admin, impersonating_org_2):
        clause = tenant_filter(super_admin, impersonating_org_2, User.organization_id)
        assert clause.right.value == "org-2"

    def test_member_without_org_raises(self):
        with pytest.raises(NoOrganizationError):
            tenant_filter(Identity(user_id="u", role=Role.CLIENT), None, User.organization_id)
