"""
Permission routes: role catalog, permission checks and audit logs.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.auth import Identity
from app.features.users.dependencies import get_current_super_admin
from app.features.permissions.catalog import (
    GRANTABLE_PERMISSIONS,
    ROLE_PERMISSIONS,
    Permission,
    Role,
    effective_permissions,
    has_permission,
    parse_permission,
    parse_role,
)
from app.features.permissions.dependencies import AuthContext, authorize
from app.features.permissions.models import AuditLog
from app.features.permissions.schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    MyPermissionsResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
    RoleCatalogResponse,
)


router = APIRouter(tags=["permissions"])


def _sorted(permissions) -> list[Permission]:
    return sorted(permissions, key=lambda p: list(Permission).index(p))


@router.get("/catalog", response_model=RoleCatalogResponse)
async def get_role_catalog():
    """Role → permission matrix."""
    return RoleCatalogResponse(
        roles={role: _sorted(perms) for role, perms in ROLE_PERMISSIONS.items()},
        permissions=list(Permission),
        grantable_permissions=_sorted(GRANTABLE_PERMISSIONS),
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(check_request: PermissionCheckRequest):
    """Evaluate whether a role holds a permission. Unknown roles are rejected with 400."""
    role = parse_role(check_request.role)
    permission = parse_permission(check_request.permission)
    return PermissionCheckResponse(
        role=role,
        permission=permission,
        has_permission=has_permission(role, permission),
    )


@router.get("/me", response_model=MyPermissionsResponse)
async def get_my_permissions(
    ctx: Annotated[AuthContext, Depends(authorize(require_org=False))]
):
    """Effective permissions of the current user, including explicit grants."""
    identity = ctx.identity
    role = Role.SUPER_ADMIN if identity.is_super_admin else identity.role
    return MyPermissionsResponse(
        user_id=identity.user_id,
        role=identity.role,
        is_super_admin=identity.is_super_admin,
        organization_id=ctx.organization_id,
        impersonating=ctx.impersonating,
        permissions=_sorted(effective_permissions(role, identity.permissions)),
    )


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    admin: Annotated[Identity, Depends(get_current_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50,
    organization_id: Optional[str] = None,
    user_id: Optional[str] = None,
    action: Optional[str] = None
):
    """List audit logs with optional filtering (super admin only)."""
    stmt = select(AuditLog)

    if organization_id:
        stmt = stmt.where(AuditLog.organization_id == organization_id)
    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)

    # Get total count
    count_stmt = select(func.count()).select_from(stmt.subquery())
    total_result = await db.execute(count_stmt)
    total = total_result.scalar() or 0

    # Get paginated results
    stmt = stmt.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    logs = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )
