from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import BusinessRuleError, NotFoundError, PermissionDeniedError
from fxdesk_api.db.models.notes import Note
from fxdesk_api.db.models.users import OrgMembership
from fxdesk_api.repositories.customers import CustomerRepository
from fxdesk_api.repositories.notes import NoteRepository
from fxdesk_api.repositories.orders import OrderRepository
from fxdesk_api.repositories.sessions import CxSessionRepository
from fxdesk_api.services.base import BaseService

NOTE_TYPES = ("ORDER", "CUSTOMER", "SESSION", "EXPENSE", "TRANSFER", "SWAP")

# note_type -> column holding the entity id
ENTITY_COLUMNS = {
    "ORDER": "order_id",
    "CUSTOMER": "customer_id",
    "SESSION": "session_id",
    "EXPENSE": "reference_id",
    "TRANSFER": "reference_id",
    "SWAP": "reference_id",
}

# Note types whose entity column is a foreign key
_ENTITY_LOOKUPS = {
    "ORDER": (OrderRepository, "Org order not found"),
    "CUSTOMER": (CustomerRepository, "Customer not found"),
    "SESSION": (CxSessionRepository, "Session not found"),
}


# PUBLIC_INTERFACE
def entity_column(note_type: str) -> str:
    """Column that links a note of `note_type` to its entity."""
    try:
        return ENTITY_COLUMNS[note_type]
    except KeyError:
        raise BusinessRuleError(f"Invalid note type: {note_type}")


class NoteService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.notes = NoteRepository(session)

    async def get(self, note_id: UUID) -> Note:
        note = await self.notes.get(note_id)
        if note is None:
            raise NotFoundError("Note not found")
        return note

    @staticmethod
    def _ensure_can_edit(note: Note, membership: OrgMembership) -> None:
        if note.user_id != membership.user_id and membership.role not in ("owner", "admin"):
            raise PermissionDeniedError("Only the author or an administrator can change this note")

    # PUBLIC_INTERFACE
    async def list(
        self,
        *,
        note_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ):
        """Notes of one entity when both `note_type` and `entity_id` are given, otherwise all notes."""
        filters: Dict[str, Any] = {"note_type": note_type}
        if note_type and entity_id:
            filters[entity_column(note_type)] = entity_id
        return await self.notes.list(limit=limit, offset=offset, **filters)

    # PUBLIC_INTERFACE
    async def create(
        self,
        *,
        note_type: str,
        entity_id: UUID,
        message: str,
        user_id: UUID,
        title: Optional[str] = None,
        resolvable: bool = False,
    ) -> Note:
        column = entity_column(note_type)
        lookup = _ENTITY_LOOKUPS.get(note_type)
        if lookup is not None:
            repository, missing = lookup
            if await repository(self.session).get(entity_id) is None:
                raise NotFoundError(missing)
        note = await self.notes.create(
            note_type=note_type,
            message=message,
            title=title,
            resolvable=resolvable,
            resolved=False,
            user_id=user_id,
            **{column: entity_id},
        )
        await self.notes.commit()
        return note

    # PUBLIC_INTERFACE
    async def update(self, note_id: UUID, values: Dict[str, Any], membership: OrgMembership) -> Note:
        note = await self.get(note_id)
        self._ensure_can_edit(note, membership)
        self.notes.apply(note, values)
        await self.notes.commit()
        return note

    # PUBLIC_INTERFACE
    async def resolve(self, note_id: UUID, resolved: bool, user_id: UUID) -> Note:
        note = await self.get(note_id)
        if not note.resolvable:
            raise BusinessRuleError("This note is not resolvable")
        note.resolved = resolved
        note.resolved_at = datetime.now(tz=timezone.utc) if resolved else None
        note.resolved_by_id = user_id if resolved else None
        await self.notes.commit()
        return note

    # PUBLIC_INTERFACE
    async def delete(self, note_id: UUID, membership: OrgMembership) -> None:
        note = await self.get(note_id)
        self._ensure_can_edit(note, membership)
        await self.notes.remove(note)
        await self.notes.commit()
