from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import ConflictError, NotFoundError
from fxdesk_api.db.models.repositories import OrgRepository
from fxdesk_api.db.models.users import OrgMembership
from fxdesk_api.repositories.org_repositories import OrgRepositoryRepository
from fxdesk_api.repositories.users import UserRepository
from fxdesk_api.services.base import BaseService

logger = logging.getLogger(__name__)


class RepositoryService(BaseService):
    """Cash and crypto repositories (tills, vaults, wallets) and who may operate them."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repositories = OrgRepositoryRepository(session)

    # PUBLIC_INTERFACE
    async def get(self, repository_id: UUID) -> OrgRepository:
        repository = await self.repositories.get(repository_id)
        if repository is None:
            raise NotFoundError("Repository not found")
        return repository

    async def _ensure_key_free(self, key: str, repository_id: UUID | None = None) -> None:
        existing = await self.repositories.get_by_key(key)
        if existing is not None and existing.id != repository_id:
            raise ConflictError("Repository key already exists in this organization")

    # PUBLIC_INTERFACE
    async def create(self, values: Dict[str, Any]) -> OrgRepository:
        await self._ensure_key_free(values["key"])
        repository = await self.repositories.create(**values)
        await self.repositories.commit()
        logger.info("Created repository %s (%s)", repository.id, repository.key)
        return repository

    # PUBLIC_INTERFACE
    async def update(self, repository_id: UUID, values: Dict[str, Any]) -> OrgRepository:
        repository = await self.get(repository_id)
        if values.get("key"):
            await self._ensure_key_free(values["key"], repository.id)
        self.repositories.apply(repository, values)
        await self.repositories.commit()
        return repository

    # PUBLIC_INTERFACE
    async def delete(self, repository_id: UUID) -> None:
        repository = await self.get(repository_id)
        await self.repositories.remove(repository)
        await self.repositories.commit()

    # PUBLIC_INTERFACE
    async def reorder(self, repository_ids: Sequence[UUID]) -> List[OrgRepository]:
        """Set display_order to each id's position in `repository_ids`."""
        repositories = {r.id: r for r in await self.repositories.get_many(repository_ids)}
        for position, repository_id in enumerate(repository_ids):
            repository = repositories.get(repository_id)
            if repository is None:
                raise NotFoundError(f"Repository not found: {repository_id}")
            repository.display_order = position
        await self.repositories.commit()
        return await self.repositories.list()

    # Access grants

    # PUBLIC_INTERFACE
    async def grant(self, repository_id: UUID, user_id: UUID) -> None:
        await self.get(repository_id)
        if await UserRepository(self.session).get_by_id(user_id) is None:
            raise NotFoundError("User not found")
        await self.repositories.grant(repository_id, user_id)
        await self.repositories.commit()

    # PUBLIC_INTERFACE
    async def revoke(self, repository_id: UUID, user_id: UUID) -> None:
        await self.get(repository_id)
        await self.repositories.revoke(repository_id, user_id)
        await self.repositories.commit()

    # PUBLIC_INTERFACE
    async def authorized_users(self, repository_id: UUID):
        await self.get(repository_id)
        return await self.repositories.list_authorized_users(repository_id)

    # PUBLIC_INTERFACE
    async def accessible(self, membership: OrgMembership) -> List[OrgRepository]:
        """Owners and admins see every active repository; members only the ones granted to them."""
        if membership.role in ("owner", "admin"):
            return await self.repositories.list(active=True)
        return await self.repositories.list_granted_to(membership.user_id)
