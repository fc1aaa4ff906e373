"""
User feature routes.

Member management is scoped to the acting organization: a target user outside
that organization is rejected with 403.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.features.users.auth import Identity
from app.features.users.models import User
from app.features.users.schemas import (
    PermissionsUpdate,
    RoleUpdate,
    UserCreate,
    UserPermissionsResponse,
    UserPublic,
    UserResponse,
    UserUpdate,
)
from app.features.users.dependencies import get_current_user, get_current_super_admin
from app.features.organizations.impersonation import ImpersonationContext
from app.features.organizations.dependencies import get_impersonation, tenant_filter
from app.features.permissions.catalog import GRANTABLE_PERMISSIONS, Permission, Role, check_org_admin
from app.features.permissions.dependencies import (
    AuthContext,
    authorize,
    create_audit_log,
    require_paid_features,
)


router = APIRouter(tags=["users"])

PROTECTED_ROLES = (Role.ORG_ADMIN, Role.SUPER_ADMIN)


def require_org_admin(ctx: AuthContext) -> None:
    if not ctx.identity.is_super_admin:
        check_org_admin(ctx.identity.role)


async def get_tenant_user(db: AsyncSession, user_id: str, ctx: AuthContext) -> User:
    """Load a user of the acting organization."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    if user.organization_id != ctx.organization_id:
        raise ForbiddenError("Cannot access users from other organizations")
    return user


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile."""
    if update_data.name is not None:
        user.name = update_data.name

    await db.commit()
    await db.refresh(user)
    return user


@router.get("/", response_model=list[UserPublic])
async def list_users(
    ctx: Annotated[AuthContext, Depends(authorize(Permission.ORG_VIEW, require_org=False))],
    impersonation: Annotated[Optional[ImpersonationContext], Depends(get_impersonation)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50
):
    """List active users of the acting organization. Empty without an organization."""
    if ctx.organization_id is None and not ctx.identity.is_super_admin:
        return []

    query = select(User).where(User.is_active == True)  # noqa: E712
    clause = tenant_filter(ctx.identity, impersonation, User.organization_id)
    if clause is not None:
        query = query.where(clause)

    result = await db.execute(query.order_by(User.created_at).offset(skip).limit(limit))
    return result.scalars().all()


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_member(
    user_data: UserCreate,
    request: Request,
    ctx: Annotated[AuthContext, Depends(authorize(Permission.ORG_USERS_MANAGE, require_billing=True))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add a member to the acting organization. Needs an active plan or trial."""
    require_paid_features(ctx)

    if user_data.role is Role.SUPER_ADMIN:
        raise ForbiddenError("Cannot assign the super admin role")

    result = await db.execute(
        select(User).where(
            (User.email == user_data.email) | (User.external_id == user_data.external_id)
        )
    )
    if result.scalars().first() is not None:
        raise ConflictError("User with this email or identity already exists")

    member = User(
        **user_data.model_dump(),
        organization_id=ctx.organization_id,
        permissions=[],
    )
    db.add(member)
    await db.commit()
    await db.refresh(member)

    await create_audit_log(
        db,
        user_id=ctx.identity.user_id,
        action="USER_CREATED",
        resource_type="user",
        resource_id=member.id,
        organization_id=ctx.organization_id,
        details={"email": member.email, "role": member.role.value},
        request=request,
    )
    return member


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: str,
    ctx: Annotated[AuthContext, Depends(authorize(Permission.ORG_VIEW))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a user of the acting organization."""
    return await get_tenant_user(db, user_id, ctx)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    role_data: RoleUpdate,
    request: Request,
    ctx: Annotated[AuthContext, Depends(authorize())],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Change a member's role (organization admin only)."""
    require_org_admin(ctx)

    if role_data.role is Role.SUPER_ADMIN:
        raise ForbiddenError("Cannot assign the super admin role")
    if user_id == ctx.identity.user_id:
        raise ForbiddenError("Cannot change your own role")

    user = await get_tenant_user(db, user_id, ctx)
    previous_role = user.role
    user.role = role_data.role
    await db.commit()
    await db.refresh(user)

    await create_audit_log(
        db,
        user_id=ctx.identity.user_id,
        action="ROLE_CHANGED",
        resource_type="user",
        resource_id=user.id,
        organization_id=ctx.organization_id,
        details={"from": previous_role.value, "to": user.role.value},
        request=request,
    )
    return user


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: str,
    ctx: Annotated[AuthContext, Depends(authorize())],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """A member's explicit permission grants (organization admin only)."""
    require_org_admin(ctx)
    user = await get_tenant_user(db, user_id, ctx)
    return UserPermissionsResponse(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        permissions=[Permission(p) for p in user.permissions or []],
    )


@router.put("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def replace_user_permissions(
    user_id: str,
    permissions_data: PermissionsUpdate,
    request: Request,
    ctx: Annotated[AuthContext, Depends(authorize(Permission.ORG_USERS_MANAGE))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace a member's explicit grants. Admin grants cannot be edited here."""
    require_org_admin(ctx)

    not_grantable = [p.value for p in permissions_data.permissions if p not in GRANTABLE_PERMISSIONS]
    if not_grantable:
        raise ForbiddenError(
            f"Permissions cannot be granted: {', '.join(not_grantable)}",
            details={"permissions": not_grantable},
        )

    user = await get_tenant_user(db, user_id, ctx)
    if user.role in PROTECTED_ROLES or user.is_super_admin:
        raise ForbiddenError("Cannot modify admin permissions through this endpoint")

    user.permissions = sorted({p.value for p in permissions_data.permissions})
    await db.commit()
    await db.refresh(user)

    await create_audit_log(
        db,
        user_id=ctx.identity.user_id,
        action="PERMISSIONS_UPDATED",
        resource_type="user",
        resource_id=user.id,
        organization_id=ctx.organization_id,
        details={"permissions": user.permissions},
        request=request,
    )
    return UserPermissionsResponse(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        permissions=[Permission(p) for p in user.permissions],
    )


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    request: Request,
    ctx: Annotated[AuthContext, Depends(authorize(Permission.ORG_USERS_MANAGE))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Deactivate a member of the acting organization."""
    if user_id == ctx.identity.user_id:
        raise ForbiddenError("Cannot deactivate your own account")

    user = await get_tenant_user(db, user_id, ctx)
    user.is_active = False
    await db.commit()

    await create_audit_log(
        db,
        user_id=ctx.identity.user_id,
        action="USER_DEACTIVATED",
        resource_type="user",
        resource_id=user.id,
        organization_id=ctx.organization_id,
        request=request,
    )
    return {"message": "User deactivated successfully"}


@router.patch("/{user_id}/super-admin", response_model=UserResponse)
async def toggle_super_admin(
    user_id: str,
    request: Request,
    admin: Annotated[Identity, Depends(get_current_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Toggle the super admin flag (super admin only)."""
    if user_id == admin.user_id:
        raise ForbiddenError("Cannot modify your own super admin status")

    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)

    user.is_super_admin = not user.is_super_admin
    await db.commit()
    await db.refresh(user)

    await create_audit_log(
        db,
        user_id=admin.user_id,
        action="SUPER_ADMIN_TOGGLED",
        resource_type="user",
        resource_id=user.id,
        organization_id=user.organization_id,
        details={"is_super_admin": user.is_super_admin},
        request=request,
    )
    return user
