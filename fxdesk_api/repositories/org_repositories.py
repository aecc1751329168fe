from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select

from fxdesk_api.db.models.repositories import OrgRepository, RepositoryAccessGrant
from fxdesk_api.db.models.users import User
from .base import BaseRepository


class OrgRepositoryRepository(BaseRepository):
    """Data access for cash/crypto repositories and their user grants."""

    async def list(self, *, active: Optional[bool] = None) -> List[OrgRepository]:
        stmt = select(OrgRepository)
        if active is not None:
            stmt = stmt.where(OrgRepository.active.is_(active))
        stmt = stmt.order_by(OrgRepository.display_order.asc(), OrgRepository.name.asc())
        return list(await self.scalars(stmt))

    async def get(self, repository_id: UUID) -> Optional[OrgRepository]:
        stmt = select(OrgRepository).where(OrgRepository.id == repository_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_key(self, key: str) -> Optional[OrgRepository]:
        stmt = select(OrgRepository).where(OrgRepository.key == key)
        return await self.scalar_one_or_none(stmt)

    async def get_many(self, ids: Sequence[UUID]) -> List[OrgRepository]:
        if not ids:
            return []
        stmt = select(OrgRepository).where(OrgRepository.id.in_(list(ids)))
        return list(await self.scalars(stmt))

    async def create(self, **values) -> OrgRepository:
        repository = OrgRepository(**values)
        await self.add(repository)
        await self.flush()
        return repository

    # Grants
    async def get_grant(self, repository_id: UUID, user_id: UUID) -> Optional[RepositoryAccessGrant]:
        stmt = select(RepositoryAccessGrant).where(
            RepositoryAccessGrant.repository_id == repository_id,
            RepositoryAccessGrant.user_id == user_id,
        )
        return await self.scalar_one_or_none(stmt)

    async def grant(self, repository_id: UUID, user_id: UUID) -> RepositoryAccessGrant:
        existing = await self.get_grant(repository_id, user_id)
        if existing:
            return existing
        grant = RepositoryAccessGrant(repository_id=repository_id, user_id=user_id)
        await self.add(grant)
        await self.flush()
        return grant

    async def revoke(self, repository_id: UUID, user_id: UUID) -> None:
        stmt = delete(RepositoryAccessGrant).where(
            RepositoryAccessGrant.repository_id == repository_id,
            RepositoryAccessGrant.user_id == user_id,
        )
        await self.execute(stmt)

    async def list_authorized_users(self, repository_id: UUID) -> List[User]:
        stmt = (
            select(User)
            .join(RepositoryAccessGrant, RepositoryAccessGrant.user_id == User.id)
            .where(RepositoryAccessGrant.repository_id == repository_id)
            .order_by(User.email)
        )
        return list(await self.scalars(stmt))

    async def list_granted_to(self, user_id: UUID, *, active_only: bool = True) -> List[OrgRepository]:
        stmt = (
            select(OrgRepository)
            .join(RepositoryAccessGrant, RepositoryAccessGrant.repository_id == OrgRepository.id)
            .where(RepositoryAccessGrant.user_id == user_id)
        )
        if active_only:
            stmt = stmt.where(OrgRepository.active.is_(True))
        stmt = stmt.order_by(OrgRepository.display_order.asc(), OrgRepository.name.asc())
        return list(await self.scalars(stmt))
