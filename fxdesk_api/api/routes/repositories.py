from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import ADMIN_ROLES, get_current_membership, get_tenant_session, require_roles
from fxdesk_api.db.models.users import OrgMembership
from fxdesk_api.repositories.org_repositories import OrgRepositoryRepository
from fxdesk_api.schemas.auth import UserRead
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.schemas.repositories import (
    AccessGrantRequest,
    RepositoryCreate,
    RepositoryRead,
    RepositoryUpdate,
    ReorderRequest,
)
from fxdesk_api.services.vaults import RepositoryService

router = APIRouter(prefix="/repositories", tags=["Repositories"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[RepositoryRead],
    summary="List repositories",
    description="Repositories ordered by display_order then name.",
    dependencies=[Depends(get_current_membership)],
)
async def list_repositories(
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[RepositoryRead]:
    items = await OrgRepositoryRepository(session).list(active=active)
    return [RepositoryRead.model_validate(r) for r in items]


# PUBLIC_INTERFACE
@router.get(
    "/accessible",
    response_model=List[RepositoryRead],
    summary="Repositories I can operate",
    description="Owners and admins get every active repository; members get the ones granted to them.",
)
async def list_accessible_repositories(
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[RepositoryRead]:
    items = await RepositoryService(session).accessible(membership)
    return [RepositoryRead.model_validate(r) for r in items]


# PUBLIC_INTERFACE
@router.get(
    "/by-key/{key}",
    response_model=RepositoryRead,
    summary="Get repository by key",
    dependencies=[Depends(get_current_membership)],
)
async def get_repository_by_key(
    key: str = Path(..., description="Repository key"),
    session: AsyncSession = Depends(get_tenant_session),
) -> RepositoryRead:
    repository = await OrgRepositoryRepository(session).get_by_key(key)
    if not repository:
        raise HTTPException(status_code=404, detail="Repository not found")
    return RepositoryRead.model_validate(repository)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=RepositoryRead,
    status_code=201,
    summary="Create repository",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def create_repository(
    payload: RepositoryCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> RepositoryRead:
    repository = await RepositoryService(session).create(payload.model_dump())
    return RepositoryRead.model_validate(repository)


# PUBLIC_INTERFACE
@router.post(
    "/reorder",
    response_model=List[RepositoryRead],
    summary="Reorder repositories",
    description="Set display_order to each id's position in the list.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def reorder_repositories(
    payload: ReorderRequest,
    session: AsyncSession = Depends(get_tenant_session),
) -> List[RepositoryRead]:
    items = await RepositoryService(session).reorder(payload.ids)
    return [RepositoryRead.model_validate(r) for r in items]


# PUBLIC_INTERFACE
@router.get(
    "/{repository_id}",
    response_model=RepositoryRead,
    summary="Get repository",
    dependencies=[Depends(get_current_membership)],
)
async def get_repository(
    repository_id: UUID = Path(..., description="Repository ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> RepositoryRead:
    return RepositoryRead.model_validate(await RepositoryService(session).get(repository_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{repository_id}",
    response_model=RepositoryRead,
    summary="Update repository",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def update_repository(
    payload: RepositoryUpdate,
    repository_id: UUID = Path(..., description="Repository ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> RepositoryRead:
    repository = await RepositoryService(session).update(repository_id, payload.model_dump(exclude_unset=True))
    return RepositoryRead.model_validate(repository)


# PUBLIC_INTERFACE
@router.delete(
    "/{repository_id}",
    response_model=MessageResponse,
    summary="Delete repository",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def delete_repository(
    repository_id: UUID = Path(..., description="Repository ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await RepositoryService(session).delete(repository_id)
    return MessageResponse(message="Repository deleted")


# PUBLIC_INTERFACE
@router.get(
    "/{repository_id}/users",
    response_model=List[UserRead],
    summary="Authorized users",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def list_repository_users(
    repository_id: UUID = Path(..., description="Repository ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[UserRead]:
    users = await RepositoryService(session).authorized_users(repository_id)
    return [UserRead.model_validate(u) for u in users]


# PUBLIC_INTERFACE
@router.post(
    "/{repository_id}/grant",
    response_model=MessageResponse,
    summary="Grant repository access",
    description="Idempotent.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def grant_repository_access(
    payload: AccessGrantRequest,
    repository_id: UUID = Path(..., description="Repository ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await RepositoryService(session).grant(repository_id, payload.user_id)
    return MessageResponse(message="Access granted")


# PUBLIC_INTERFACE
@router.post(
    "/{repository_id}/revoke",
    response_model=MessageResponse,
    summary="Revoke repository access",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def revoke_repository_access(
    payload: AccessGrantRequest,
    repository_id: UUID = Path(..., description="Repository ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await RepositoryService(session).revoke(repository_id, payload.user_id)
    return MessageResponse(message="Access revoked")
