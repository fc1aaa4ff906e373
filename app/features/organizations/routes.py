"""
Organization feature routes.
"""
import re
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import ConflictError, ForbiddenError
from app.features.users.auth import Identity
from app.features.users.models import User
from app.features.users.dependencies import get_current_user, get_current_identity, get_current_super_admin
from app.features.permissions.catalog import Permission, Role
from app.features.permissions.dependencies import AuthContext, authorize, create_audit_log
from app.features.organizations.models import Organization
from app.features.organizations.impersonation import (
    ImpersonationContext,
    ImpersonationContextProvider,
    get_impersonation_provider,
)
from app.features.organizations.dependencies import (
    OrgContext,
    get_impersonation,
    get_org_context,
    get_organization_by_id,
)
from app.features.organizations.schemas import (
    ImpersonationResponse,
    MyOrganizationResponse,
    OrganizationAdminUpdate,
    OrganizationPublic,
    OrganizationRegister,
    OrganizationResponse,
    OrganizationUpdate,
    RegistrationResponse,
)
from app.features.subscriptions.access import AccessStatus, access_status_for
from app.features.subscriptions.models import Subscription, SubscriptionStatus
from app.features.subscriptions.utils import compute_trial_window, utc_now
from app.utils import get_logger


log = get_logger(__name__)

router = APIRouter(tags=["organizations"])


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower().strip())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug[:48]


async def unique_slug(db: AsyncSession, name: str) -> Optional[str]:
    """Slug for the name, suffixed with -1, -2, ... until unused."""
    base = slugify(name)
    if not base:
        return None
    candidate = base
    attempt = 0
    while (await db.execute(select(Organization.id).where(Organization.slug == candidate))).first():
        attempt += 1
        candidate = f"{base}-{attempt}"[:60]
    return candidate


def to_response(organization: Organization) -> OrganizationResponse:
    response = OrganizationResponse.model_validate(organization)
    response.member_count = len(organization.users)
    response.access_status = access_status_for(organization.subscription)
    return response


@router.post("/register", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_organization(
    org_data: OrganizationRegister,
    request: Request,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Register a new organization with a free trial.

    The caller becomes its organization admin.
    """
    if user.organization_id is not None:
        raise ConflictError("User already belongs to an organization")

    result = await db.execute(
        select(Organization).where(
            or_(Organization.name == org_data.name, Organization.primary_email == org_data.primary_email)
        )
    )
    if result.scalars().first() is not None:
        raise ConflictError("Organization already exists")

    organization = Organization(
        **org_data.model_dump(),
        slug=await unique_slug(db, org_data.name),
    )
    db.add(organization)
    await db.flush()

    trial_start, trial_end = compute_trial_window(utc_now())
    subscription = Subscription(
        organization_id=organization.id,
        status=SubscriptionStatus.TRIAL,
        trial_start=trial_start,
        trial_end=trial_end,
    )
    db.add(subscription)

    user.organization_id = organization.id
    user.role = Role.ORG_ADMIN
    await db.commit()

    await create_audit_log(
        db,
        user_id=user.id,
        action="ORG_CREATED",
        resource_type="organization",
        resource_id=organization.id,
        organization_id=organization.id,
        details={"by": user.email},
        request=request,
    )

    return RegistrationResponse(
        organization_id=organization.id,
        slug=organization.slug,
        access_status=AccessStatus.TRIAL,
        trial_end=trial_end,
    )


@router.get("/me", response_model=MyOrganizationResponse)
async def get_my_organization(
    org_context: Annotated[OrgContext, Depends(get_org_context)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Current organization, or null when the caller has none."""
    if org_context.organization_id is None:
        return MyOrganizationResponse(organization=None)

    organization = await db.get(Organization, org_context.organization_id)
    return MyOrganizationResponse(
        organization=OrganizationPublic.model_validate(organization) if organization else None,
        impersonating=org_context.impersonating,
    )


@router.patch("/me", response_model=OrganizationResponse)
async def update_my_organization(
    update_data: OrganizationUpdate,
    ctx: Annotated[AuthContext, Depends(authorize(Permission.ORG_EDIT))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update the current organization (requires ORG_EDIT)."""
    organization = await get_organization_by_id(ctx.organization_id, db)

    update_dict = update_data.model_dump(exclude_unset=True)
    for field, value in update_dict.items():
        setattr(organization, field, value)

    await db.commit()
    await db.refresh(organization)
    return to_response(organization)


@router.get("/", response_model=list[OrganizationResponse])
async def list_organizations(
    admin: Annotated[Identity, Depends(get_current_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50
):
    """List all organizations (super admin only)."""
    result = await db.execute(
        select(Organization).order_by(Organization.created_at.desc()).offset(skip).limit(limit)
    )
    return [to_response(org) for org in result.scalars().all()]


@router.post("/impersonation/exit", response_model=ImpersonationResponse)
async def exit_impersonation(
    request: Request,
    response: Response,
    identity: Annotated[Identity, Depends(get_current_identity)],
    impersonation: Annotated[Optional[ImpersonationContext], Depends(get_impersonation)],
    provider: Annotated[ImpersonationContextProvider, Depends(get_impersonation_provider)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Stop impersonating. Always clears the cookie."""
    provider.clear(response)

    if impersonation is None:
        return ImpersonationResponse(message="No active impersonation")

    await create_audit_log(
        db,
        user_id=identity.user_id,
        action="IMPERSONATE_END",
        resource_type="organization",
        resource_id=impersonation.organization_id,
        organization_id=impersonation.organization_id,
        details={"actor_email": identity.email},
        request=request,
    )
    log.info(f"User {identity.user_id} stopped impersonating org {impersonation.organization_id}")
    return ImpersonationResponse(message="Impersonation ended", organization_id=impersonation.organization_id)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    ctx: Annotated[AuthContext, Depends(authorize(Permission.ORG_VIEW))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get organization by ID. Members only see their own organization."""
    organization = await get_organization_by_id(ctx.organization_id, db)
    return to_response(organization)


@router.post("/{organization_id}/impersonate", response_model=ImpersonationResponse)
async def start_impersonation(
    organization_id: str,
    request: Request,
    response: Response,
    admin: Annotated[Identity, Depends(get_current_super_admin)],
    provider: Annotated[ImpersonationContextProvider, Depends(get_impersonation_provider)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Act inside another organization (super admin only)."""
    organization = await get_organization_by_id(organization_id, db)
    if not organization.is_active:
        raise ForbiddenError("Cannot impersonate an inactive organization")

    provider.issue(response, ImpersonationContext(organization_id=organization.id, issued_by=admin.user_id))

    await create_audit_log(
        db,
        user_id=admin.user_id,
        action="IMPERSONATE_START",
        resource_type="organization",
        resource_id=organization.id,
        organization_id=organization.id,
        details={"actor_email": admin.email},
        request=request,
    )
    log.info(f"User {admin.user_id} started impersonating org {organization.id}")
    return ImpersonationResponse(message="Impersonation started", organization_id=organization.id)


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization_status(
    organization_id: str,
    update_data: OrganizationAdminUpdate,
    request: Request,
    admin: Annotated[Identity, Depends(get_current_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Suspend or reactivate an organization (super admin only)."""
    organization = await get_organization_by_id(organization_id, db)
    if organization.is_active != update_data.is_active:
        organization.is_active = update_data.is_active
        await db.commit()
        await db.refresh(organization)

        await create_audit_log(
            db,
            user_id=admin.user_id,
            action="ORG_REACTIVATED" if organization.is_active else "ORG_SUSPENDED",
            resource_type="organization",
            resource_id=organization.id,
            organization_id=organization.id,
            details={"actor_email": admin.email},
            request=request,
        )
        log.info(f"User {admin.user_id} set org {organization.id} active={organization.is_active}")
    return to_response(organization)
