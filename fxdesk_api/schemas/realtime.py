from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class WsEnvelope(BaseModel):
    """Envelope for WebSocket messages."""
    type: str = Field(..., description="Message type (e.g., 'session.status', 'pong').")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Message payload.")
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp (UTC).")
    user_id: Optional[UUID] = Field(default=None, description="Initiating user id, if applicable.")
    channel: Optional[str] = Field(default=None, description="Optional sub-channel (session id).")


class SessionStatusEvent(BaseModel):
    """A cx session changed state or membership."""
    session_id: UUID = Field(..., description="Cx session id.")
    status: str = Field(..., description="Session status after the change.")
    action: str = Field(..., description="What happened (e.g., 'start float open', 'join').")
    active_user_id: Optional[UUID] = Field(default=None, description="User currently working the session.")
    user_id: Optional[UUID] = Field(default=None, description="Initiating user id.")
