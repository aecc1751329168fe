from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class OrganizationRead(BaseModel):
    """Read model for an organization (tenant)."""
    id: UUID = Field(..., description="Organization ID, used as X-Tenant-ID")
    name: str = Field(..., description="Display name")
    slug: str = Field(..., description="Unique slug")
    external_id: Optional[str] = Field(None, description="Identity provider organization id")
    image_url: Optional[str] = Field(None)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None)
    image_url: Optional[str] = Field(None)


class OrganizationCreate(BaseModel):
    """Create an organization at the identity provider and mirror it locally."""
    name: str = Field(..., min_length=1, description="Organization name")
    slug: Optional[str] = Field(None, description="Slug; derived from the name when absent")


class OrganizationCreated(BaseModel):
    organization_id: UUID
    external_id: str
    slug: str


class UserOrganization(BaseModel):
    """An organization the current user belongs to."""
    organization_id: UUID
    name: str
    slug: str
    image_url: Optional[str] = None
    role: str
    status: str


class ActiveOrganizationRequest(BaseModel):
    session_id: str = Field(..., description="Identity provider session id")
    organization_id: str = Field(..., description="Identity provider organization id")


class SyncResult(BaseModel):
    synced: int = Field(..., description="Number of provider memberships upserted")


class OrgSettingsRead(BaseModel):
    base_currency: str
    auto_print: bool
    receipt_header: Optional[str] = None
    receipt_footer: Optional[str] = None
    receipt_width_mm: int
    show_logo: bool

    class Config:
        from_attributes = True


class OrgSettingsUpdate(BaseModel):
    base_currency: Optional[str] = Field(None, min_length=3, max_length=10)
    auto_print: Optional[bool] = None
    receipt_header: Optional[str] = None
    receipt_footer: Optional[str] = None
    receipt_width_mm: Optional[int] = Field(None, ge=40, le=120)
    show_logo: Optional[bool] = None


class WebhookAck(BaseModel):
    ok: bool = True
