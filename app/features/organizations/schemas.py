"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr

from app.features.subscriptions.access import AccessStatus


class OrganizationRegister(BaseModel):
    """Schema for registering a new organization."""
    name: str = Field(..., min_length=1, max_length=255)
    primary_email: EmailStr
    phone: str | None = Field(None, max_length=20)
    industry: str | None = Field(None, max_length=100)


class OrganizationUpdate(BaseModel):
    """Schema for updating organization information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=20)
    industry: str | None = Field(None, max_length=100)
    logo_url: str | None = Field(None, max_length=500)
    theme_color: str | None = Field(None, max_length=20, pattern="^#[0-9a-fA-F]{3,8}$")


class OrganizationPublic(BaseModel):
    """Public organization information (limited fields)."""
    id: str
    name: str
    slug: str | None = None
    logo_url: str | None = None
    theme_color: str | None = None

    model_config = {"from_attributes": True}


class OrganizationResponse(OrganizationPublic):
    """Schema for organization responses."""
    primary_email: str
    phone: str | None = None
    industry: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    member_count: int = 0
    access_status: AccessStatus = AccessStatus.NO_SUBSCRIPTION


class OrganizationAdminUpdate(BaseModel):
    """Super-admin changes to an organization."""
    is_active: bool


class MyOrganizationResponse(BaseModel):
    """Current tenant; null when the caller has none."""
    organization: OrganizationPublic | None = None
    impersonating: bool = False


class RegistrationResponse(BaseModel):
    organization_id: str
    slug: str | None
    access_status: AccessStatus
    trial_end: datetime | None = None


class ImpersonationResponse(BaseModel):
    message: str
    organization_id: str | None = None
