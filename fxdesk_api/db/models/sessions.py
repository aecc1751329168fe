from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fxdesk_api.db.base import AMOUNT, Base, UUIDPkMixin, TimestampMixin, TenantMixin


class CxSession(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """A teller work session moving through the float open/close workflow."""
    __tablename__ = "org_cx_sessions"

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="DORMANT", server_default="DORMANT", index=True)

    open_start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    open_start_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    open_confirm_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    open_confirm_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    close_start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    close_start_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    close_confirm_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    close_confirm_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    verified_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    active_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    authorized_users: Mapped[List["CxSessionUser"]] = relationship(
        back_populates="session", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def authorized_user_ids(self) -> List[uuid.UUID]:
        return [link.user_id for link in self.authorized_users]


class CxSessionUser(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Users authorized to work a session."""
    __tablename__ = "org_cx_session_users"
    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_org_cx_session_users_session_user"),
    )

    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_cx_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    session: Mapped[CxSession] = relationship(back_populates="authorized_users")


class CxSessionAccessLog(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    __tablename__ = "org_cx_session_access_logs"

    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_cx_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    start_owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    user_join_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    user_join_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    authorized_user_ids: Mapped[list] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=list, server_default=text("'{}'::uuid[]")
    )


class FloatStack(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Count of one denomination held in one repository during one session."""
    __tablename__ = "org_float_stacks"

    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_cx_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    repository_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_repositories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    denomination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_denominations.id", ondelete="CASCADE"), nullable=False
    )
    ticker: Mapped[str] = mapped_column(Text, nullable=False)

    open_count: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    close_count: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    midday_count: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    last_session_count: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    open_confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    close_confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    spent_during_session: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    transferred_during_session: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    denominated_value: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    average_spot: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    open_spot: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    close_spot: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    previous_session_float_stack_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
