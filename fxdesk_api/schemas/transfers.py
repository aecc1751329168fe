from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MovementBreakdown(BaseModel):
    """Denomination count moved out of or into a float stack."""
    float_stack_id: UUID
    denomination_id: UUID
    count: float = Field(..., gt=0)
    direction: Literal["INBOUND", "OUTBOUND"]


class _MovementCreate(BaseModel):
    session_id: UUID
    inbound_repository_id: UUID
    outbound_repository_id: UUID
    inbound_sum: float
    outbound_sum: float
    breakdowns: List[MovementBreakdown] = Field(default_factory=list)
    notes: Optional[str] = None


class FloatTransferCreate(_MovementCreate):
    inbound_ticker: str
    outbound_ticker: str


class CurrencySwapCreate(_MovementCreate):
    ticker: str = Field(..., description="Currency swapped between the two repositories")


class FloatTransferRead(BaseModel):
    id: UUID
    session_id: UUID
    user_id: Optional[UUID] = None
    inbound_repository_id: UUID
    outbound_repository_id: UUID
    inbound_ticker: str
    outbound_ticker: str
    inbound_sum: float
    outbound_sum: float
    status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CurrencySwapRead(FloatTransferRead):
    currency_id: UUID
    swap_value: float
