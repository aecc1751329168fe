from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

NoteType = Literal["ORDER", "CUSTOMER", "SESSION", "EXPENSE", "TRANSFER", "SWAP"]


class NoteCreate(BaseModel):
    note_type: NoteType = Field(..., description="Kind of entity the note is attached to")
    entity_id: UUID = Field(..., description="Id of the order, customer, session, ... the note belongs to")
    message: str = Field(..., min_length=1)
    title: Optional[str] = None
    resolvable: bool = False


class NoteUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = Field(None, min_length=1)
    resolvable: Optional[bool] = None


class NoteResolve(BaseModel):
    resolved: bool = True


class NoteRead(BaseModel):
    id: UUID
    note_type: str
    order_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    reference_id: Optional[UUID] = None
    title: Optional[str] = None
    message: str
    resolvable: bool
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
