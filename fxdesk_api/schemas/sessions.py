from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CxSessionRead(BaseModel):
    """Read model for a cx session."""
    id: UUID = Field(..., description="Session ID")
    user_id: Optional[UUID] = Field(None, description="Creator")
    status: str = Field(..., description="Float workflow state")
    open_start_at: Optional[datetime] = None
    open_start_user_id: Optional[UUID] = None
    open_confirm_at: Optional[datetime] = None
    open_confirm_user_id: Optional[UUID] = None
    close_start_at: Optional[datetime] = None
    close_start_user_id: Optional[UUID] = None
    close_confirm_at: Optional[datetime] = None
    close_confirm_user_id: Optional[UUID] = None
    verified_by_user_id: Optional[UUID] = None
    active_user_id: Optional[UUID] = None
    authorized_user_ids: List[UUID] = Field(default_factory=list, description="Users allowed to work the session")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CxSessionPage(BaseModel):
    items: List[CxSessionRead]
    total: int
    limit: int
    offset: int


class CloseValidation(BaseModel):
    can_close: bool
    error: Optional[str] = None
    blocking_items: List[dict] = Field(default_factory=list)


class SessionAccessLogRead(BaseModel):
    id: UUID
    session_id: UUID
    start_at: Optional[datetime] = None
    start_owner_id: Optional[UUID] = None
    user_join_at: Optional[datetime] = None
    user_join_id: Optional[UUID] = None
    authorized_user_ids: List[UUID] = Field(default_factory=list)

    class Config:
        from_attributes = True


class RepositoryAccessLogRead(BaseModel):
    id: UUID
    session_id: UUID
    repository_id: UUID
    user_id: Optional[UUID] = None
    open_start_at: Optional[datetime] = None
    open_confirm_at: Optional[datetime] = None
    close_start_at: Optional[datetime] = None
    close_confirm_at: Optional[datetime] = None
    release_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccessLogs(BaseModel):
    session_logs: List[SessionAccessLogRead]
    repository_logs: List[RepositoryAccessLogRead]


class FloatStackRead(BaseModel):
    """Count of one denomination in one repository."""
    id: UUID
    session_id: UUID
    repository_id: UUID
    denomination_id: UUID
    ticker: str
    open_count: float
    close_count: float
    midday_count: float
    last_session_count: float
    denominated_value: float
    open_confirmed_at: Optional[datetime] = None
    close_confirmed_at: Optional[datetime] = None
    previous_session_float_stack_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class StackCountsUpdate(BaseModel):
    open_count: Optional[float] = Field(None, ge=0)
    close_count: Optional[float] = Field(None, ge=0)
    midday_count: Optional[float] = Field(None, ge=0)


class DenominationInfo(BaseModel):
    id: Optional[UUID] = None
    value: float
    name: str


class FloatStackEntry(BaseModel):
    stack: FloatStackRead
    denomination: DenominationInfo


class TickerFloat(BaseModel):
    id: str
    ticker: str
    name: str
    type_of: str
    float_stacks: List[FloatStackEntry]


class RepositoryFloat(BaseModel):
    id: UUID
    name: str
    type_of_currencies: str
    float_count_required: bool
    active: bool
    state: str = Field(..., description="DORMANT, OPEN_START, OPEN_CONFIRMED or CLOSE_START")
    access_logs: List[RepositoryAccessLogRead]
    float: List[TickerFloat]


class SessionFloatView(BaseModel):
    session: dict[str, Any]
    repositories: List[RepositoryFloat]
