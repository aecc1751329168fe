from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from fxdesk_api.db.models.notes import Note
from .base import BaseRepository


class NoteRepository(BaseRepository):
    async def list(
        self,
        *,
        order_id: Optional[UUID] = None,
        customer_id: Optional[UUID] = None,
        session_id: Optional[UUID] = None,
        reference_id: Optional[UUID] = None,
        note_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Note]:
        stmt = select(Note)
        if order_id:
            stmt = stmt.where(Note.order_id == order_id)
        if customer_id:
            stmt = stmt.where(Note.customer_id == customer_id)
        if session_id:
            stmt = stmt.where(Note.session_id == session_id)
        if reference_id:
            stmt = stmt.where(Note.reference_id == reference_id)
        if note_type:
            stmt = stmt.where(Note.note_type == note_type)
        stmt = stmt.order_by(Note.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def get(self, note_id: UUID) -> Optional[Note]:
        stmt = select(Note).where(Note.id == note_id)
        return await self.scalar_one_or_none(stmt)

    async def create(self, **values) -> Note:
        note = Note(**values)
        await self.add(note)
        await self.flush()
        return note
