from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import case, delete, func, select

from fxdesk_api.db.models.repositories import RepositoryAccessLog
from fxdesk_api.db.models.sessions import CxSession, CxSessionAccessLog, CxSessionUser, FloatStack
from .base import BaseRepository


class CxSessionRepository(BaseRepository):
    """Cx sessions and their authorized users."""

    async def get(self, session_id: UUID) -> Optional[CxSession]:
        stmt = select(CxSession).where(CxSession.id == session_id)
        return await self.scalar_one_or_none(stmt)

    async def list(
        self, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> List[CxSession]:
        stmt = select(CxSession)
        if status:
            stmt = stmt.where(CxSession.status == status)
        stmt = stmt.order_by(CxSession.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def count(self, *, status: Optional[str] = None) -> int:
        stmt = select(func.count(CxSession.id))
        if status:
            stmt = stmt.where(CxSession.status == status)
        res = await self.execute(stmt)
        return int(res.scalar_one())

    async def list_active(self, statuses: Sequence[str], user_id: UUID) -> List[CxSession]:
        """Sessions in `statuses`; the ones the user is working come first."""
        own_first = case((CxSession.active_user_id == user_id, 0), else_=1)
        stmt = (
            select(CxSession)
            .where(CxSession.status.in_(list(statuses)))
            .order_by(own_first, CxSession.open_start_at.desc().nullslast())
        )
        return list(await self.scalars(stmt))

    async def create(self, **values) -> CxSession:
        cx_session = CxSession(**values)
        await self.add(cx_session)
        await self.flush()
        return cx_session

    async def authorize(self, cx_session: CxSession, user_id: UUID) -> None:
        if user_id not in cx_session.authorized_user_ids:
            cx_session.authorized_users.append(CxSessionUser(user_id=user_id))
            await self.flush()

    async def deauthorize(self, cx_session: CxSession, user_id: UUID) -> None:
        for link in list(cx_session.authorized_users):
            if link.user_id == user_id:
                cx_session.authorized_users.remove(link)
        await self.flush()


class SessionAccessLogRepository(BaseRepository):
    async def get_for_session(self, session_id: UUID) -> Optional[CxSessionAccessLog]:
        stmt = (
            select(CxSessionAccessLog)
            .where(CxSessionAccessLog.session_id == session_id)
            .order_by(CxSessionAccessLog.created_at.desc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def list_for_session(self, session_id: UUID) -> List[CxSessionAccessLog]:
        stmt = (
            select(CxSessionAccessLog)
            .where(CxSessionAccessLog.session_id == session_id)
            .order_by(CxSessionAccessLog.created_at.asc())
        )
        return list(await self.scalars(stmt))

    async def create(self, **values) -> CxSessionAccessLog:
        log = CxSessionAccessLog(**values)
        await self.add(log)
        await self.flush()
        return log


class RepositoryAccessLogRepository(BaseRepository):
    async def list_for_session(self, session_id: UUID) -> List[RepositoryAccessLog]:
        stmt = (
            select(RepositoryAccessLog)
            .where(RepositoryAccessLog.session_id == session_id)
            .order_by(RepositoryAccessLog.created_at.asc())
        )
        return list(await self.scalars(stmt))

    async def create(self, **values) -> RepositoryAccessLog:
        log = RepositoryAccessLog(**values)
        await self.add(log)
        await self.flush()
        return log


class FloatStackRepository(BaseRepository):
    async def get(self, stack_id: UUID) -> Optional[FloatStack]:
        stmt = select(FloatStack).where(FloatStack.id == stack_id)
        return await self.scalar_one_or_none(stmt)

    async def list_for_session(self, session_id: UUID) -> List[FloatStack]:
        stmt = (
            select(FloatStack)
            .where(FloatStack.session_id == session_id)
            .order_by(FloatStack.ticker.asc(), FloatStack.denominated_value.asc())
        )
        return list(await self.scalars(stmt))

    async def count_for_session(self, session_id: UUID) -> int:
        res = await self.execute(select(func.count(FloatStack.id)).where(FloatStack.session_id == session_id))
        return int(res.scalar_one())

    async def latest_closed(self, repository_id: UUID, denomination_id: UUID) -> Optional[FloatStack]:
        """Most recent stack for the repository/denomination whose close was confirmed."""
        stmt = (
            select(FloatStack)
            .where(
                FloatStack.repository_id == repository_id,
                FloatStack.denomination_id == denomination_id,
                FloatStack.close_confirmed_at.is_not(None),
            )
            .order_by(FloatStack.close_confirmed_at.desc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def delete_for_session(self, session_id: UUID) -> None:
        await self.execute(delete(FloatStack).where(FloatStack.session_id == session_id))
