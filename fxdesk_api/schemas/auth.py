from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

Role = Literal["owner", "admin", "member"]


class TokenPair(BaseModel):
    """Access and refresh tokens."""
    token_type: str = Field("bearer", description="Token type, typically 'bearer'")
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")


class RefreshRequest(BaseModel):
    """Request to refresh an access token."""
    refresh_token: str = Field(..., description="Refresh token")


class RegisterRequest(BaseModel):
    """Registration details for joining the X-Tenant-ID organization."""
    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., min_length=6, description="User password")
    first_name: Optional[str] = Field(None, description="First name")
    last_name: Optional[str] = Field(None, description="Last name")
    full_name: Optional[str] = Field(None, description="Full name")


class UserRead(BaseModel):
    """Global user account."""
    id: UUID = Field(..., description="User ID")
    email: EmailStr = Field(..., description="User email")
    first_name: Optional[str] = Field(None)
    last_name: Optional[str] = Field(None)
    full_name: Optional[str] = Field(None)
    image_url: Optional[str] = Field(None)
    is_active: bool = Field(..., description="Active flag")
    last_seen_at: Optional[datetime] = Field(None, description="Last activity timestamp")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    class Config:
        from_attributes = True


class MeResponse(BaseModel):
    """The caller and their role in the current organization."""
    user: UserRead
    role: Role = Field(..., description="Membership role")
    tenant_id: UUID = Field(..., description="Current organization")


class PreferencesRead(BaseModel):
    theme: str
    language: str
    timezone: str
    notifications_enabled: bool

    class Config:
        from_attributes = True


class PreferencesUpdate(BaseModel):
    theme: Optional[Literal["light", "dark", "system"]] = None
    language: Optional[str] = None
    timezone: Optional[str] = None
    notifications_enabled: Optional[bool] = None


class MembershipRead(BaseModel):
    """A user's membership in the current organization."""
    id: UUID = Field(..., description="Membership ID")
    user_id: UUID = Field(..., description="User ID")
    role: Role = Field(..., description="Membership role")
    status: str = Field(..., description="active, invited, suspended or removed")
    first_name: Optional[str] = Field(None)
    last_name: Optional[str] = Field(None)
    joined_at: Optional[datetime] = Field(None)
    user: UserRead

    class Config:
        from_attributes = True


class MemberCreate(BaseModel):
    """Admin create user payload. The user joins the current organization."""
    email: EmailStr = Field(..., description="Email")
    password: Optional[str] = Field(None, min_length=6, description="Password; omit for identity provider users")
    role: Role = Field("member", description="Membership role")
    first_name: Optional[str] = Field(None)
    last_name: Optional[str] = Field(None)


class RoleUpdate(BaseModel):
    role: Role = Field(..., description="New membership role")


class MemberDetails(BaseModel):
    membership: MembershipRead
    repository_ids: List[UUID] = Field(default_factory=list, description="Repositories the member may operate")


class InvitationCreate(BaseModel):
    email: EmailStr = Field(..., description="Invitee email")
    role: Role = Field("member", description="Role granted on acceptance")


class InvitationRead(BaseModel):
    id: UUID
    email: str
    role: Role
    status: str = Field(..., description="pending, accepted, cancelled or expired")
    token: str
    expires_at: datetime
    invited_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvitationAccept(BaseModel):
    token: str = Field(..., description="Invitation token")
