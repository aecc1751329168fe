from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from fxdesk_api.db.base import AMOUNT, Base, UUIDPkMixin, TimestampMixin, TenantMixin


class Order(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """An exchange of inbound currency for outbound currency."""
    __tablename__ = "org_orders"

    inbound_sum: Mapped[float] = mapped_column(AMOUNT, nullable=False)
    inbound_ticker: Mapped[str] = mapped_column(Text, nullable=False)
    inbound_type: Mapped[str] = mapped_column(Text, nullable=False)
    outbound_sum: Mapped[float] = mapped_column(AMOUNT, nullable=False)
    outbound_ticker: Mapped[str] = mapped_column(Text, nullable=False)
    outbound_type: Mapped[str] = mapped_column(Text, nullable=False)

    fx_rate: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    rate_wo_fees: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    final_rate: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    final_rate_without_fees: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    margin: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    fee: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    network_fee: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")

    status: Mapped[str] = mapped_column(Text, nullable=False, default="QUOTE", server_default="QUOTE", index=True)
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_cx_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_customers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    inbound_repository_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_repositories.id", ondelete="SET NULL"), nullable=True
    )
    outbound_repository_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_repositories.id", ondelete="SET NULL"), nullable=True
    )
    open_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    close_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    quote_source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    batched_status: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class Breakdown(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Denomination count attached to an order, transfer or swap."""
    __tablename__ = "org_breakdowns"

    breakable_type: Mapped[str] = mapped_column(Text, nullable=False)
    breakable_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    denomination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_denominations.id", ondelete="CASCADE"), nullable=False
    )
    float_stack_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_float_stacks.id", ondelete="SET NULL"), nullable=True
    )
    count: Mapped[float] = mapped_column(AMOUNT, nullable=False)
    direction: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="CREATED", server_default="CREATED")


class _MovementColumns:
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_cx_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    inbound_repository_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_repositories.id", ondelete="CASCADE"), nullable=False
    )
    outbound_repository_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_repositories.id", ondelete="CASCADE"), nullable=False
    )
    inbound_ticker: Mapped[str] = mapped_column(Text, nullable=False)
    outbound_ticker: Mapped[str] = mapped_column(Text, nullable=False)
    inbound_sum: Mapped[float] = mapped_column(AMOUNT, nullable=False)
    outbound_sum: Mapped[float] = mapped_column(AMOUNT, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="COMPLETED", server_default="COMPLETED")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class FloatTransfer(UUIDPkMixin, TenantMixin, TimestampMixin, _MovementColumns, Base):
    """Float moved between two repositories in a session."""
    __tablename__ = "org_float_transfers"


class CurrencySwap(UUIDPkMixin, TenantMixin, TimestampMixin, _MovementColumns, Base):
    """Same-currency denomination swap between repositories."""
    __tablename__ = "org_currency_swaps"

    currency_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_currencies.id", ondelete="CASCADE"), nullable=False
    )
    swap_value: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
