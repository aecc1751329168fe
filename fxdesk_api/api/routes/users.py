from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import ADMIN_ROLES, get_current_active_user, get_tenant_session, require_roles
from fxdesk_api.db.models.users import OrgMembership, User
from fxdesk_api.repositories.users import UserRepository
from fxdesk_api.schemas.auth import MemberCreate, MembershipRead, PreferencesRead, PreferencesUpdate, UserRead
from fxdesk_api.services.memberships import MembershipService

router = APIRouter(prefix="/users", tags=["Users"])


# PUBLIC_INTERFACE
@router.get(
    "/me/preferences",
    response_model=PreferencesRead,
    summary="Read my preferences",
    description="UI preferences of the current user; defaults are created on first read.",
)
async def read_preferences(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> PreferencesRead:
    repo = UserRepository(session)
    prefs = await repo.get_preferences(user.id)
    await repo.commit()
    return PreferencesRead.model_validate(prefs)


# PUBLIC_INTERFACE
@router.patch(
    "/me/preferences",
    response_model=PreferencesRead,
    summary="Update my preferences",
)
async def update_preferences(
    payload: PreferencesUpdate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> PreferencesRead:
    repo = UserRepository(session)
    prefs = await repo.get_preferences(user.id)
    repo.apply(prefs, payload.model_dump(exclude_unset=True))
    await repo.commit()
    return PreferencesRead.model_validate(prefs)


# PUBLIC_INTERFACE
@router.post(
    "/me/activity",
    response_model=UserRead,
    summary="Record activity",
    description="Touch the current user's last_seen_at.",
)
async def record_activity(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    repo = UserRepository(session)
    await repo.touch(user)
    await repo.commit()
    return UserRead.model_validate(user)


# PUBLIC_INTERFACE
@router.get(
    "/search",
    response_model=List[UserRead],
    summary="Search users by email",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def search_users(
    q: str = Query(..., min_length=1, description="Part of an email address"),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[UserRead]:
    users = await UserRepository(session).search_by_email(q, limit=limit)
    return [UserRead.model_validate(u) for u in users]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=MembershipRead,
    status_code=201,
    summary="Create user",
    description="Create a user account and add it to the current organization. Requires owner or admin.",
)
async def create_user(
    payload: MemberCreate,
    actor: OrgMembership = Depends(require_roles(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_tenant_session),
) -> MembershipRead:
    membership = await MembershipService(session).admin_create_user(
        actor=actor,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return MembershipRead.model_validate(membership)


# PUBLIC_INTERFACE
@router.post(
    "/{user_id}/deactivate",
    response_model=UserRead,
    summary="Deactivate user",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def deactivate_user(
    user_id: UUID = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    repo = UserRepository(session)
    user = await repo.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    user.is_active = False
    await repo.commit()
    return UserRead.model_validate(user)


# PUBLIC_INTERFACE
@router.post(
    "/{user_id}/archive",
    response_model=MembershipRead,
    summary="Archive member",
    description="Remove the member from the organization and deactivate the account.",
)
async def archive_user(
    user_id: UUID = Path(..., description="User ID"),
    actor: OrgMembership = Depends(require_roles(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_tenant_session),
) -> MembershipRead:
    membership = await MembershipService(session).archive_member(actor=actor, user_id=user_id)
    return MembershipRead.model_validate(membership)
