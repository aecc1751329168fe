from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import ADMIN_ROLES, get_current_membership, get_tenant_id, get_tenant_session, require_roles
from fxdesk_api.db.models.users import OrgMembership
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.schemas.sessions import (
    AccessLogs,
    CloseValidation,
    CxSessionPage,
    CxSessionRead,
    FloatStackRead,
    SessionFloatView,
    StackCountsUpdate,
)
from fxdesk_api.services.sessions import CxSessionService

router = APIRouter(prefix="/sessions", tags=["Sessions"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=CxSessionPage,
    summary="List sessions",
    description="Newest first, optionally filtered by status.",
    dependencies=[Depends(get_current_membership)],
)
async def list_sessions(
    status: Optional[str] = Query(None, description="Session status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionPage:
    items, total = await CxSessionService(session).list(status=status, limit=limit, offset=offset)
    return CxSessionPage(
        items=[CxSessionRead.model_validate(s) for s in items], total=total, limit=limit, offset=offset
    )


# PUBLIC_INTERFACE
@router.get(
    "/active",
    response_model=List[CxSessionRead],
    summary="Active sessions",
    description="Sessions not yet closing or closed; the ones the caller is working come first.",
)
async def active_sessions(
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[CxSessionRead]:
    items = await CxSessionService(session).active_sessions(membership.user_id)
    return [CxSessionRead.model_validate(s) for s in items]


# PUBLIC_INTERFACE
@router.post("", response_model=CxSessionRead, status_code=201, summary="Create session")
async def create_session(
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).create(membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.patch(
    "/stacks/{stack_id}",
    response_model=FloatStackRead,
    summary="Update float stack counts",
    description=(
        "Open counts are editable in FLOAT_OPEN_START, close counts in FLOAT_CLOSE_START and "
        "midday counts in FLOAT_OPEN_COMPLETE."
    ),
    dependencies=[Depends(get_current_membership)],
)
async def update_stack_counts(
    payload: StackCountsUpdate,
    stack_id: UUID = Path(..., description="Float stack ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> FloatStackRead:
    stack = await CxSessionService(session).update_stack_counts(
        stack_id,
        {"open": payload.open_count, "close": payload.close_count, "midday": payload.midday_count},
    )
    return FloatStackRead.model_validate(stack)


# PUBLIC_INTERFACE
@router.get(
    "/{session_id}",
    response_model=CxSessionRead,
    summary="Get session",
    dependencies=[Depends(get_current_membership)],
)
async def get_session(
    session_id: UUID = Path(..., description="Session ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    return CxSessionRead.model_validate(await CxSessionService(session).get(session_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{session_id}",
    response_model=MessageResponse,
    summary="Delete session",
    description="Removes the session with its stacks, logs and authorized users.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def delete_session(
    session_id: UUID = Path(..., description="Session ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await CxSessionService(session).delete(session_id)
    return MessageResponse(message="Session deleted")


# PUBLIC_INTERFACE
@router.post("/{session_id}/join", response_model=CxSessionRead, summary="Join session")
async def join_session(
    session_id: UUID = Path(..., description="Session ID"),
    tenant_id: UUID = Depends(get_tenant_id),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).join(session_id, membership.user_id, tenant_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.post("/{session_id}/leave", response_model=CxSessionRead, summary="Leave session")
async def leave_session(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).leave(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.post(
    "/{session_id}/float-open/start",
    response_model=CxSessionRead,
    summary="Start float open",
    description="DORMANT → FLOAT_OPEN_START. Seeds float stacks on first open.",
)
async def start_float_open(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).start_float_open(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.post(
    "/{session_id}/float-open/confirm",
    response_model=CxSessionRead,
    summary="Confirm float open",
    description="FLOAT_OPEN_START → FLOAT_OPEN_COMPLETE.",
)
async def confirm_float_open(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).confirm_float_open(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.post(
    "/{session_id}/float-close/start",
    response_model=CxSessionRead,
    summary="Start float close",
    description="FLOAT_OPEN_COMPLETE → FLOAT_CLOSE_START.",
)
async def start_float_close(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).start_float_close(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.post(
    "/{session_id}/float-close/confirm",
    response_model=CxSessionRead,
    summary="Confirm float close",
    description="FLOAT_CLOSE_START → FLOAT_CLOSE_COMPLETE.",
)
async def confirm_float_close(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).confirm_float_close(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.post(
    "/{session_id}/float-close/cancel",
    response_model=CxSessionRead,
    summary="Cancel float close",
    description="FLOAT_CLOSE_START → FLOAT_OPEN_COMPLETE.",
)
async def cancel_float_close(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).cancel_float_close(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.get(
    "/{session_id}/can-close",
    response_model=CloseValidation,
    summary="Validate session close",
    description="Reports whether the session can close and what blocks it.",
    dependencies=[Depends(get_current_membership)],
)
async def validate_can_close(
    session_id: UUID = Path(..., description="Session ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CloseValidation:
    return CloseValidation(**await CxSessionService(session).validate_can_close(session_id))


# PUBLIC_INTERFACE
@router.post("/{session_id}/close", response_model=CxSessionRead, summary="Close session")
async def close_session(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).close(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.post("/{session_id}/cancel", response_model=CxSessionRead, summary="Cancel session")
async def cancel_session(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> CxSessionRead:
    cx = await CxSessionService(session).cancel(session_id, membership.user_id)
    return CxSessionRead.model_validate(cx)


# PUBLIC_INTERFACE
@router.get(
    "/{session_id}/access-logs",
    response_model=AccessLogs,
    summary="Session access logs",
    dependencies=[Depends(get_current_membership)],
)
async def session_access_logs(
    session_id: UUID = Path(..., description="Session ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> AccessLogs:
    return AccessLogs.model_validate(await CxSessionService(session).access_logs(session_id))


# PUBLIC_INTERFACE
@router.get(
    "/{session_id}/float",
    response_model=SessionFloatView,
    summary="Session float",
    description="Float grouped per active repository and ticker, with each repository's derived state.",
)
async def session_float(
    session_id: UUID = Path(..., description="Session ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> SessionFloatView:
    view = await CxSessionService(session).float_view(session_id, membership.user_id)
    return SessionFloatView.model_validate(view)
