from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fxdesk_api.db.base import Base, UUIDPkMixin, TimestampMixin, TenantMixin


class User(UUIDPkMixin, TimestampMixin, Base):
    """
    Global user account.

    Users are not tenant scoped; they act inside an organization through an
    OrgMembership. Users provisioned by the identity provider may have no password.
    """
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    username: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    hashed_password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    preferences: Mapped[Optional["UserPreference"]] = relationship(
        "UserPreference", uselist=False, back_populates="user", lazy="selectin"
    )


class UserPreference(UUIDPkMixin, TimestampMixin, Base):
    """UI preferences of a user, shared across organizations."""
    __tablename__ = "user_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    theme: Mapped[str] = mapped_column(Text, nullable=False, default="system", server_default="system")
    language: Mapped[str] = mapped_column(Text, nullable=False, default="en", server_default="en")
    timezone: Mapped[str] = mapped_column(Text, nullable=False, default="UTC", server_default="UTC")
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    user: Mapped["User"] = relationship("User", back_populates="preferences")


class OrgMembership(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """A user's role and status inside one organization."""
    __tablename__ = "org_memberships"
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_org_memberships_tenant_user"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(Text, nullable=False, default="member", server_default="member")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active", server_default="active")
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    joined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    invited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    invited_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    user: Mapped["User"] = relationship("User", lazy="selectin")


class OrgInvitation(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Pending invitation of an email address into an organization."""
    __tablename__ = "org_invitations"

    email: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="member", server_default="member")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", server_default="pending")
    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    invited_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
