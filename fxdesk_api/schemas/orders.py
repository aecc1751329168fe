from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

OrderStatus = Literal["QUOTE", "ACCEPTED", "CONFIRMED", "COMPLETED", "CANCELLED", "SCHEDULED", "BLOCKED"]
Direction = Literal["INBOUND", "OUTBOUND"]
BreakableType = Literal["ORDER", "FLOAT_TRANSFER", "CURRENCY_SWAP"]


class QuoteRequest(BaseModel):
    inbound_ticker: str = Field(..., description="Currency received from the customer")
    outbound_ticker: str = Field(..., description="Currency given to the customer")
    inbound_sum: float = Field(..., description="Amount received")
    outbound_sum: Optional[float] = Field(None, description="Amount given; computed from the rates when absent")


class QuoteResponse(BaseModel):
    inbound_ticker: str
    outbound_ticker: str
    inbound_sum: float
    outbound_sum: float
    inbound_type: str
    outbound_type: str
    fx_rate: float
    rate_wo_fees: float
    final_rate: float
    final_rate_without_fees: float
    margin: float
    fee: float
    network_fee: float


class OrderCreate(BaseModel):
    """New order; quote fields left out are computed from the org currency rates."""
    session_id: UUID
    inbound_ticker: str
    outbound_ticker: str
    inbound_sum: float = Field(..., gt=0)
    outbound_sum: Optional[float] = None
    inbound_type: Optional[str] = None
    outbound_type: Optional[str] = None
    fx_rate: Optional[float] = None
    rate_wo_fees: Optional[float] = None
    final_rate: Optional[float] = None
    final_rate_without_fees: Optional[float] = None
    margin: Optional[float] = None
    fee: Optional[float] = None
    network_fee: Optional[float] = None
    status: Optional[OrderStatus] = None
    customer_id: Optional[UUID] = None
    inbound_repository_id: Optional[UUID] = None
    outbound_repository_id: Optional[UUID] = None
    quote_source: Optional[str] = None


class OrderUpdate(BaseModel):
    inbound_sum: Optional[float] = Field(None, gt=0)
    outbound_sum: Optional[float] = None
    fx_rate: Optional[float] = None
    final_rate: Optional[float] = None
    final_rate_without_fees: Optional[float] = None
    margin: Optional[float] = None
    fee: Optional[float] = None
    network_fee: Optional[float] = None
    status: Optional[str] = None
    customer_id: Optional[UUID] = None
    inbound_repository_id: Optional[UUID] = None
    outbound_repository_id: Optional[UUID] = None
    close_at: Optional[datetime] = None
    batched_status: Optional[int] = None


class OrderRead(BaseModel):
    """Read model for an order."""
    id: UUID
    session_id: UUID
    user_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    inbound_ticker: str
    inbound_type: str
    inbound_sum: float
    outbound_ticker: str
    outbound_type: str
    outbound_sum: float
    fx_rate: float
    rate_wo_fees: float
    final_rate: float
    final_rate_without_fees: float
    margin: float
    fee: float
    network_fee: float
    status: str
    inbound_repository_id: Optional[UUID] = None
    outbound_repository_id: Optional[UUID] = None
    open_at: Optional[datetime] = None
    close_at: Optional[datetime] = None
    quote_source: Optional[str] = None
    batched_status: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BreakdownEntry(BaseModel):
    denomination_id: UUID
    float_stack_id: Optional[UUID] = None
    count: float = Field(..., ge=0)
    direction: Direction
    status: Optional[Literal["CREATED", "COMMITTED"]] = None


class BreakdownSetRequest(BaseModel):
    entries: List[BreakdownEntry]


class BreakdownCommitRequest(BaseModel):
    committed: bool = True


class BreakdownRead(BaseModel):
    id: UUID
    breakable_type: str
    breakable_id: UUID
    denomination_id: UUID
    float_stack_id: Optional[UUID] = None
    count: float
    direction: str
    status: str

    class Config:
        from_attributes = True


class BreakdownWithValue(BaseModel):
    breakdown: BreakdownRead
    denominated_value: float
