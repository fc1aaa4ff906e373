"""
Organization scope resolution and organization lookup dependencies.

The resolver decides which tenant a request acts on. A non-super-admin always
acts on their own organization; a tenant id taken from request input is never
adopted for them.
"""
from dataclasses import dataclass
from typing import Annotated, Optional
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement
from starlette.requests import Request

from app.core.database.engine import get_db
from app.core.errors import ForbiddenError, NoOrganizationError, NotFoundError
from app.features.users.auth import Identity
from app.features.users.dependencies import get_current_identity
from app.features.organizations.impersonation import (
    ImpersonationContext,
    ImpersonationContextProvider,
    get_impersonation_provider,
)
from app.features.organizations.models import Organization
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class OrgContext:
    organization_id: Optional[str]
    impersonating: bool = False


def resolve_org_context(
    identity: Identity,
    impersonation: Optional[ImpersonationContext] = None
) -> OrgContext:
    """
    Derive the acting organization.

    Priority:
    1. super admin with an active impersonation -> impersonated organization
    2. the user's own organization
    3. None
    """
    if impersonation is not None:
        if identity.is_super_admin:
            return OrgContext(organization_id=impersonation.organization_id, impersonating=True)
        log.warning(
            f"Ignoring impersonation of org {impersonation.organization_id} by non super admin {identity.user_id}"
        )
    return OrgContext(organization_id=identity.organization_id)


def assert_org_access(
    identity: Identity,
    impersonation: Optional[ImpersonationContext] = None
) -> str:
    """
    Resolve the acting organization or fail.

    Raises:
        NoOrganizationError: when no organization resolves
    """
    organization_id = resolve_org_context(identity, impersonation).organization_id
    if not organization_id:
        raise NoOrganizationError()
    return organization_id


def resolve_target_organization(
    identity: Identity,
    impersonation: Optional[ImpersonationContext],
    target_org_id: Optional[str]
) -> str:
    """
    Resolve the organization for a route that names one explicitly.

    Non super admins may only target their own organization. Super admins
    target any organization but must name one, either explicitly or through
    impersonation; there is no default tenant for them.

    Raises:
        ForbiddenError: non super admin targeting another organization
        NoOrganizationError: nothing to resolve
    """
    if identity.is_super_admin:
        if target_org_id:
            return target_org_id
        if impersonation is not None:
            return impersonation.organization_id
        raise NoOrganizationError("An explicit organization is required")

    own_org_id = assert_org_access(identity)
    if target_org_id and target_org_id != own_org_id:
        log.info(f"User {identity.user_id} denied access to org {target_org_id}")
        raise ForbiddenError("Forbidden: Cannot access data from another organization")
    return own_org_id


def tenant_filter(
    identity: Identity,
    impersonation: Optional[ImpersonationContext],
    column: ColumnElement
) -> Optional[ColumnElement[bool]]:
    """
    Clause limiting a query to the acting tenant.

    Returns None (no restriction) for a super admin who is not impersonating.

    Raises:
        NoOrganizationError: for a regular user without an organization
    """
    if identity.is_super_admin and impersonation is None:
        return None
    return column == assert_org_access(identity, impersonation)


# ============================================================================
# FastAPI Dependencies
# ============================================================================

def get_impersonation(
    request: Request,
    provider: Annotated[ImpersonationContextProvider, Depends(get_impersonation_provider)]
) -> Optional[ImpersonationContext]:
    return provider.get(request)


async def get_org_context(
    identity: Annotated[Identity, Depends(get_current_identity)],
    impersonation: Annotated[Optional[ImpersonationContext], Depends(get_impersonation)]
) -> OrgContext:
    """Tolerant resolution for read endpoints."""
    return resolve_org_context(identity, impersonation)


async def get_organization_by_id(
    organization_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Organization:
    """
    Get organization by ID.

    Raises:
        NotFoundError: if organization not found
    """
    result = await db.execute(
        select(Organization).where(Organization.id == organization_id)
    )
    organization = result.scalar_one_or_none()

    if organization is None:
        raise NotFoundError("Organization", organization_id)

    return organization
