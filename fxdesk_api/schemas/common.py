from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Plain acknowledgement for deletes and state changes without a body of their own."""
    message: str = Field(..., description="What was done, e.g. 'Order deleted'")
    details: Optional[dict] = Field(default=None, description="Counts or status of the operation")


class TenantEcho(BaseModel):
    tenant_id: UUID = Field(..., description="Organization id read from X-Tenant-ID")


class ErrorInfo(BaseModel):
    type: str = Field(..., description="Error code: not_found, forbidden, conflict, invalid_state, business_rule, ...")
    message: str = Field(..., description="Message suitable for showing to the operator")
    details: Optional[Any] = Field(default=None, description="Validation issues or blocking items")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    status: int = Field(..., description="HTTP status code")
    error: ErrorInfo
    correlation_id: Optional[str] = Field(default=None, description="X-Correlation-ID of the request")
    tenant_id: Optional[str] = Field(default=None, description="X-Tenant-ID of the request, as sent")
    path: Optional[str] = None
    method: Optional[str] = None
    timestamp: datetime = Field(..., description="When the error was produced (UTC)")
