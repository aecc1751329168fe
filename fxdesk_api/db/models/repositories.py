from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fxdesk_api.db.base import AMOUNT, Base, UUIDPkMixin, TimestampMixin, TenantMixin


class OrgRepository(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """A named cash/crypto holding location (till, vault, wallet)."""
    __tablename__ = "org_repositories"
    __table_args__ = (
        UniqueConstraint("tenant_id", "key", name="uq_org_repositories_tenant_key"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    type_of: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    currency_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    form: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    currency_tickers: Mapped[List[str]] = mapped_column(
        ARRAY(Text), nullable=False, default=list, server_default=text("'{}'::text[]")
    )
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    float_threshold_bottom: Mapped[Optional[float]] = mapped_column(AMOUNT, nullable=True)
    float_threshold_top: Mapped[Optional[float]] = mapped_column(AMOUNT, nullable=True)
    float_count_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class RepositoryAccessGrant(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """User authorized to operate a repository."""
    __tablename__ = "org_repository_access"
    __table_args__ = (
        UniqueConstraint("tenant_id", "repository_id", "user_id", name="uq_org_repository_access_tenant_repo_user"),
    )

    repository_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_repositories.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )


class RepositoryAccessLog(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Open/close timeline of a repository within a cx session."""
    __tablename__ = "org_repository_access_logs"

    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_cx_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    repository_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_repositories.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    open_start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    open_confirm_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    close_start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    close_confirm_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    release_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
