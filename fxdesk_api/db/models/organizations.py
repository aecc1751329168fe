from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, Integer, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fxdesk_api.db.base import Base, UUIDPkMixin, TimestampMixin, TenantMixin


class Organization(UUIDPkMixin, TimestampMixin, Base):
    """Tenant boundary. Mirrors an organization held by the identity provider."""
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    external_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OrgSettings(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Per-organization preferences (receipt printing, base currency)."""
    __tablename__ = "org_settings"

    base_currency: Mapped[str] = mapped_column(Text, nullable=False, server_default="CAD")
    auto_print: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    receipt_header: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt_footer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt_width_mm: Mapped[int] = mapped_column(Integer, nullable=False, server_default="80")
    show_logo: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")


class OrgActivity(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Append-only audit trail of workflow events (TRANSFER_CREATED, SESSION_CLOSED, ...)."""
    __tablename__ = "org_activities"

    event: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
