from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from fxdesk_api.db.base import AMOUNT, Base, UUIDPkMixin, TimestampMixin, TenantMixin


class AppCurrency(UUIDPkMixin, TimestampMixin, Base):
    """Global currency catalogue refreshed from the FX rate provider."""
    __tablename__ = "app_currencies"

    ticker: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    base_rate_ticker: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    rate: Mapped[float] = mapped_column(AMOUNT, nullable=False)
    rate_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    network: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contract: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chain_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rate_api: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rate_api_identifier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OrgCurrency(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """A currency traded by an organization, with its margins and display settings."""
    __tablename__ = "org_currencies"
    __table_args__ = (
        UniqueConstraint("tenant_id", "ticker", name="uq_org_currencies_tenant_ticker"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    ticker: Mapped[str] = mapped_column(Text, nullable=False)
    type_of: Mapped[str] = mapped_column(Text, nullable=False, default="FIAT", server_default="FIAT")
    rate: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    sign: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hex_color: Mapped[str] = mapped_column(Text, nullable=False, default="#D3D3D3", server_default="#D3D3D3")
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    buy_margin_min: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    buy_margin_max: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    buy_margin_target: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    sell_margin_min: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    sell_margin_max: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")
    sell_margin_target: Mapped[float] = mapped_column(AMOUNT, nullable=False, default=0, server_default="0")

    tradeable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_base_currency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    we_buy: Mapped[Optional[float]] = mapped_column(AMOUNT, nullable=True)
    we_sell: Mapped[Optional[float]] = mapped_column(AMOUNT, nullable=True)
    spread: Mapped[Optional[float]] = mapped_column(AMOUNT, nullable=True)
    offset: Mapped[Optional[float]] = mapped_column(AMOUNT, nullable=True)

    rate_decimal_places: Mapped[int] = mapped_column(Integer, nullable=False, default=8, server_default="8")
    amount_decimal_places: Mapped[int] = mapped_column(Integer, nullable=False, default=2, server_default="2")
    rate_api: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rate_api_identifier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rate_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    network: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chain_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contract: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    advertisable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")


class Denomination(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """A note/coin/unit value of an org currency."""
    __tablename__ = "org_denominations"

    org_currency_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("org_currencies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value: Mapped[float] = mapped_column(AMOUNT, nullable=False)
    accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
