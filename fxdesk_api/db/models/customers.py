from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from fxdesk_api.db.base import Base, UUIDPkMixin, TimestampMixin, TenantMixin


class Customer(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Customer KYC record."""
    __tablename__ = "org_customers"

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    middle_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    dob: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    occupation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    employer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    telephone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    blacklisted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    blacklist_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    risk_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    merged_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    primary_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    primary_identification_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    last_order_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Identification(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Identity document presented by a customer."""
    __tablename__ = "org_identifications"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_addresses.id", ondelete="SET NULL"), nullable=True
    )
    type_of: Mapped[str] = mapped_column(Text, nullable=False)
    reference_number: Mapped[str] = mapped_column(Text, nullable=False)
    issuing_country_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    issuing_country_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    issuing_state_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    issuing_state_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    issue_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    origin_of_funds: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    purpose_of_funds: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")


class Address(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Postal address attached to a customer, organization or identification."""
    __tablename__ = "org_addresses"

    parent_type: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    address_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    line1: Mapped[str] = mapped_column(Text, nullable=False)
    line2: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    line3: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    state_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    state_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    country_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    country_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    confidential: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
