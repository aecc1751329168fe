from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class RepositoryRead(BaseModel):
    """Read model for a cash/crypto repository."""
    id: UUID = Field(..., description="Repository ID")
    name: str = Field(..., description="Display name")
    key: str = Field(..., description="Key, unique per organization")
    type_of: Optional[str] = Field(None, description="Till, vault, wallet, ...")
    currency_type: Optional[str] = Field(None, description="Kind of currencies held")
    form: Optional[str] = Field(None, description="Physical or digital")
    currency_tickers: List[str] = Field(default_factory=list, description="Tickers held")
    display_order: int = Field(..., description="Sort position")
    float_threshold_bottom: Optional[float] = None
    float_threshold_top: Optional[float] = None
    float_count_required: bool = Field(..., description="Close must be confirmed before the session closes")
    active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RepositoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    type_of: Optional[str] = None
    currency_type: Optional[str] = None
    form: Optional[str] = None
    currency_tickers: List[str] = Field(default_factory=list)
    display_order: int = 0
    float_threshold_bottom: Optional[float] = None
    float_threshold_top: Optional[float] = None
    float_count_required: bool = False
    active: bool = True


class RepositoryUpdate(BaseModel):
    name: Optional[str] = None
    key: Optional[str] = None
    type_of: Optional[str] = None
    currency_type: Optional[str] = None
    form: Optional[str] = None
    currency_tickers: Optional[List[str]] = None
    display_order: Optional[int] = None
    float_threshold_bottom: Optional[float] = None
    float_threshold_top: Optional[float] = None
    float_count_required: Optional[bool] = None
    active: Optional[bool] = None


class ReorderRequest(BaseModel):
    """Ids in their new display order."""
    ids: List[UUID] = Field(..., min_length=1)


class AccessGrantRequest(BaseModel):
    user_id: UUID = Field(..., description="User to grant or revoke")
