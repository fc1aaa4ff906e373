"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.permissions.catalog import Permission, Role


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class UserCreate(UserBase):
    """Schema for adding a member to the current organization."""
    external_id: str = Field(..., min_length=1, max_length=255, description="Subject of the member's identity token")
    role: Role = Role.EMPLOYEE


class UserUpdate(BaseModel):
    """Schema for updating user information."""
    name: str | None = Field(None, min_length=1, max_length=255)


class RoleUpdate(BaseModel):
    role: Role


class PermissionsUpdate(BaseModel):
    """Explicit grants replacing the member's current grants."""
    permissions: list[Permission]


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    role: Role
    is_active: bool
    is_super_admin: bool
    organization_id: str | None = None
    permissions: list[str] = []
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str
    email: str
    role: Role

    model_config = {"from_attributes": True}


class UserPermissionsResponse(BaseModel):
    user_id: str
    email: str
    name: str
    role: Role
    permissions: list[Permission]
