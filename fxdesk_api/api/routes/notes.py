from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import get_current_membership, get_tenant_session
from fxdesk_api.db.models.users import OrgMembership
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.schemas.notes import NoteCreate, NoteRead, NoteResolve, NoteType, NoteUpdate
from fxdesk_api.services.notes import NoteService

router = APIRouter(prefix="/notes", tags=["Notes"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[NoteRead],
    summary="List notes",
    description="Pass note_type and entity_id together to get the notes of one order, customer, session, ...",
    dependencies=[Depends(get_current_membership)],
)
async def list_notes(
    note_type: Optional[NoteType] = Query(None),
    entity_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[NoteRead]:
    items = await NoteService(session).list(note_type=note_type, entity_id=entity_id, limit=limit, offset=offset)
    return [NoteRead.model_validate(n) for n in items]


# PUBLIC_INTERFACE
@router.post("", response_model=NoteRead, status_code=201, summary="Create note")
async def create_note(
    payload: NoteCreate,
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> NoteRead:
    note = await NoteService(session).create(user_id=membership.user_id, **payload.model_dump())
    return NoteRead.model_validate(note)


# PUBLIC_INTERFACE
@router.patch(
    "/{note_id}",
    response_model=NoteRead,
    summary="Update note",
    description="Only the author, an owner or an admin may edit a note.",
)
async def update_note(
    payload: NoteUpdate,
    note_id: UUID = Path(..., description="Note ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> NoteRead:
    note = await NoteService(session).update(note_id, payload.model_dump(exclude_unset=True), membership)
    return NoteRead.model_validate(note)


# PUBLIC_INTERFACE
@router.post("/{note_id}/resolve", response_model=NoteRead, summary="Resolve or reopen note")
async def resolve_note(
    payload: NoteResolve,
    note_id: UUID = Path(..., description="Note ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> NoteRead:
    note = await NoteService(session).resolve(note_id, payload.resolved, membership.user_id)
    return NoteRead.model_validate(note)


# PUBLIC_INTERFACE
@router.delete("/{note_id}", response_model=MessageResponse, summary="Delete note")
async def delete_note(
    note_id: UUID = Path(..., description="Note ID"),
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await NoteService(session).delete(note_id, membership)
    return MessageResponse(message="Note deleted")
