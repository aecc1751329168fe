from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AppCurrencyRead(BaseModel):
    """Global catalogue entry."""
    id: UUID
    ticker: str
    name: str
    base_rate_ticker: str
    type: str = Field(..., description="FIAT, CRYPTOCURRENCY or METAL")
    rate: float
    rate_updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RefreshResult(BaseModel):
    success: bool
    total_currencies: int
    timestamp: int = Field(..., description="Provider timestamp (epoch seconds)")
    base_currency: str


class ApplyRatesResult(BaseModel):
    updated: int = Field(..., description="Org currencies whose rate was refreshed")


class OrgCurrencyBase(BaseModel):
    name: Optional[str] = None
    type_of: Optional[str] = Field(None, description="FIAT, CRYPTOCURRENCY or METAL")
    rate: Optional[float] = Field(None, ge=0)
    sign: Optional[str] = None
    hex_color: Optional[str] = None
    display_order: Optional[int] = None
    buy_margin_min: Optional[float] = None
    buy_margin_max: Optional[float] = None
    buy_margin_target: Optional[float] = None
    sell_margin_min: Optional[float] = None
    sell_margin_max: Optional[float] = None
    sell_margin_target: Optional[float] = None
    tradeable: Optional[bool] = None
    is_base_currency: Optional[bool] = None
    we_buy: Optional[float] = None
    we_sell: Optional[float] = None
    spread: Optional[float] = None
    offset: Optional[float] = None
    rate_decimal_places: Optional[int] = Field(None, ge=0, le=18)
    amount_decimal_places: Optional[int] = Field(None, ge=0, le=18)
    rate_api: Optional[str] = None
    rate_api_identifier: Optional[str] = None
    network: Optional[str] = None
    chain_id: Optional[str] = None
    contract: Optional[str] = None
    advertisable: Optional[bool] = None


class OrgCurrencyCreate(OrgCurrencyBase):
    name: str = Field(..., min_length=1)
    ticker: str = Field(..., min_length=2, max_length=10)


class OrgCurrencyUpdate(OrgCurrencyBase):
    ticker: Optional[str] = Field(None, min_length=2, max_length=10)


class OrgCurrencyRead(BaseModel):
    """Read model for an organization currency."""
    id: UUID
    name: str
    ticker: str
    type_of: str
    rate: float
    sign: Optional[str] = None
    hex_color: str
    display_order: int
    buy_margin_min: float
    buy_margin_max: float
    buy_margin_target: float
    sell_margin_min: float
    sell_margin_max: float
    sell_margin_target: float
    tradeable: bool
    is_base_currency: bool
    we_buy: Optional[float] = None
    we_sell: Optional[float] = None
    rate_decimal_places: int
    amount_decimal_places: int
    rate_updated_at: Optional[datetime] = None
    advertisable: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DenominationRead(BaseModel):
    id: UUID
    org_currency_id: UUID
    name: Optional[str] = None
    value: float
    accepted: bool

    class Config:
        from_attributes = True


class DenominationCreate(BaseModel):
    name: Optional[str] = None
    value: float = Field(..., gt=0, description="Face value")
    accepted: bool = True


class DenominationUpdate(BaseModel):
    name: Optional[str] = None
    value: Optional[float] = Field(None, gt=0)
    accepted: Optional[bool] = None
