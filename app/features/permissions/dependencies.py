"""
Authorization dependencies.

Composes identity, permission evaluation, organization scope and the
subscription gate into a single FastAPI dependency. Checks run strictly in that
order and the first failure short-circuits the request.
"""
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.errors import ForbiddenError, PaymentRequiredError
from app.features.users.auth import Identity
from app.features.users.dependencies import get_current_identity
from app.features.organizations.impersonation import ImpersonationContext
from app.features.organizations.dependencies import (
    get_impersonation,
    assert_org_access,
    resolve_org_context,
    resolve_target_organization,
)
from app.features.permissions.catalog import Permission, has_effective_permission, parse_permission
from app.features.permissions.models import AuditLog
from app.features.subscriptions.access import BillingAccess, assert_paid_or_trial_by_org
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Outcome of a successful authorization."""
    identity: Identity
    organization_id: Optional[str]
    impersonating: bool = False
    billing: Optional[BillingAccess] = None


def check_permission(identity: Identity, permission: Permission | str) -> None:
    """
    Raise ForbiddenError unless the identity holds the permission.

    Super admins bypass the role matrix.
    """
    if identity.is_super_admin:
        log.debug(f"User {identity.user_id} is super admin - granted {permission}")
        return
    if not has_effective_permission(identity.role, permission, identity.permissions):
        log.debug(f"User {identity.user_id} ({identity.role.value}) denied {permission}")
        raise ForbiddenError("Forbidden: Insufficient permissions", details={"required": str(parse_permission(permission).value)})


def authorize(
    permission: Optional[Permission] = None,
    *,
    require_org: bool = True,
    require_billing: bool = False
):
    """
    FastAPI dependency factory for privileged routes.

    Usage:
        @router.patch("/me")
        async def update_org(ctx: AuthContext = Depends(authorize(Permission.ORG_EDIT))):
            ...

    Routes with an ``organization_id`` path parameter resolve that target;
    everything else resolves the caller's own (or impersonated) organization.

    Args:
        permission: Permission the caller must hold (None = any authenticated user)
        require_org: Fail with NoOrganizationError when no organization resolves
        require_billing: Attach the subscription gate result to the context
    """
    async def authorization_dependency(
        request: Request,
        identity: Annotated[Identity, Depends(get_current_identity)],
        impersonation: Annotated[Optional[ImpersonationContext], Depends(get_impersonation)],
        db: Annotated[AsyncSession, Depends(get_db)]
    ) -> AuthContext:
        if permission is not None:
            check_permission(identity, permission)

        target_org_id = request.path_params.get("organization_id")
        if target_org_id is not None:
            organization_id = resolve_target_organization(identity, impersonation, target_org_id)
        elif require_org:
            organization_id = assert_org_access(identity, impersonation)
        else:
            organization_id = resolve_org_context(identity, impersonation).organization_id

        impersonating = (
            identity.is_super_admin
            and impersonation is not None
            and impersonation.organization_id == organization_id
        )

        billing = None
        if require_billing:
            billing = await assert_paid_or_trial_by_org(db, organization_id)

        return AuthContext(
            identity=identity,
            organization_id=organization_id,
            impersonating=impersonating,
            billing=billing,
        )

    return authorization_dependency


def require_paid_features(ctx: AuthContext) -> None:
    """
    Send callers without an active plan or trial to the billing page.

    Super admins are not subject to billing.
    """
    if ctx.identity.is_super_admin or ctx.billing is None or ctx.billing.ok:
        return
    details = {"status": ctx.billing.status.value, "billing_url": config.BILLING_URL}
    if ctx.billing.reason:
        details["reason"] = ctx.billing.reason
    raise PaymentRequiredError(details=details)


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "IMPERSONATE_START", "ROLE_CHANGED")
        resource_type: Type of resource (e.g., "organization", "user")
        resource_id: ID of the resource
        organization_id: Organization context
        details: Additional details
        request: Incoming request, for client address and user agent
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        organization_id=organization_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    log.info(
        f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id} org={organization_id}"
    )

    return audit_log
