"""
Pydantic schemas for the permission endpoints.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.features.permissions.catalog import Permission, Role


class RoleCatalogResponse(BaseModel):
    """Role → permissions matrix."""
    roles: Dict[Role, List[Permission]]
    permissions: List[Permission]
    grantable_permissions: List[Permission]


class PermissionCheckRequest(BaseModel):
    """Evaluate a role/permission pair. Values are matched exactly."""
    role: str = Field(..., min_length=1, max_length=50)
    permission: str = Field(..., min_length=1, max_length=50)


class PermissionCheckResponse(BaseModel):
    role: Role
    permission: Permission
    has_permission: bool


class MyPermissionsResponse(BaseModel):
    """Effective permissions of the current user."""
    user_id: str
    role: Role
    is_super_admin: bool
    organization_id: Optional[str] = None
    impersonating: bool = False
    permissions: List[Permission]


class AuditLogResponse(BaseModel):
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    organization_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
