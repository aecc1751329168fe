from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import (
    ADMIN_ROLES,
    get_current_membership,
    get_tenant_session,
    get_token_user,
    require_roles,
)
from fxdesk_api.db.models.users import OrgMembership, User
from fxdesk_api.repositories.users import InvitationRepository, MembershipRepository
from fxdesk_api.schemas.auth import (
    InvitationAccept,
    InvitationCreate,
    InvitationRead,
    MemberDetails,
    MembershipRead,
    RoleUpdate,
)
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.services.memberships import MembershipService

router = APIRouter(tags=["Memberships"])


# PUBLIC_INTERFACE
@router.get(
    "/memberships",
    response_model=List[MembershipRead],
    summary="List members",
    dependencies=[Depends(get_current_membership)],
)
async def list_members(
    status: Optional[str] = Query(None, description="Filter by membership status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[MembershipRead]:
    items = await MembershipRepository(session).list(status=status, limit=limit, offset=offset)
    return [MembershipRead.model_validate(m) for m in items]


# PUBLIC_INTERFACE
@router.get(
    "/memberships/me",
    response_model=MembershipRead,
    summary="Current user role",
    description="The caller's membership (and therefore role) in the current organization.",
)
async def my_membership(membership: OrgMembership = Depends(get_current_membership)) -> MembershipRead:
    return MembershipRead.model_validate(membership)


# PUBLIC_INTERFACE
@router.get(
    "/memberships/{user_id}",
    response_model=MemberDetails,
    summary="Member details",
    description="Membership of a user together with the repositories they may operate.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def member_details(
    user_id: UUID = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MemberDetails:
    details = await MembershipService(session).member_details(user_id)
    return MemberDetails(
        membership=MembershipRead.model_validate(details["membership"]),
        repository_ids=[r.id for r in details["repositories"]],
    )


# PUBLIC_INTERFACE
@router.patch(
    "/memberships/{user_id}/role",
    response_model=MembershipRead,
    summary="Update member role",
)
async def update_member_role(
    payload: RoleUpdate,
    user_id: UUID = Path(..., description="User ID"),
    actor: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> MembershipRead:
    membership = await MembershipService(session).update_role(actor=actor, user_id=user_id, role=payload.role)
    return MembershipRead.model_validate(membership)


# PUBLIC_INTERFACE
@router.delete(
    "/memberships/{user_id}",
    response_model=MessageResponse,
    summary="Remove member",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def remove_member(
    user_id: UUID = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await MembershipService(session).remove_member(user_id=user_id)
    return MessageResponse(message="Member removed")


# Invitations


# PUBLIC_INTERFACE
@router.get(
    "/invitations",
    response_model=List[InvitationRead],
    summary="List invitations",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def list_invitations(
    status: Optional[str] = Query(None, description="pending, accepted, cancelled or expired"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[InvitationRead]:
    items = await InvitationRepository(session).list(status=status)
    return [InvitationRead.model_validate(i) for i in items]


# PUBLIC_INTERFACE
@router.post(
    "/invitations",
    response_model=InvitationRead,
    status_code=201,
    summary="Invite by email",
    description="Create a pending invitation valid for 7 days.",
)
async def create_invitation(
    payload: InvitationCreate,
    actor: OrgMembership = Depends(require_roles(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_tenant_session),
) -> InvitationRead:
    invitation = await MembershipService(session).invite(actor=actor, email=payload.email, role=payload.role)
    return InvitationRead.model_validate(invitation)


# PUBLIC_INTERFACE
@router.post(
    "/invitations/{invitation_id}/cancel",
    response_model=InvitationRead,
    summary="Cancel invitation",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def cancel_invitation(
    invitation_id: UUID = Path(..., description="Invitation ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> InvitationRead:
    invitation = await MembershipService(session).cancel_invitation(invitation_id)
    return InvitationRead.model_validate(invitation)


# PUBLIC_INTERFACE
@router.post(
    "/invitations/accept",
    response_model=MembershipRead,
    summary="Accept invitation",
    description=(
        "Accept an invitation of the X-Tenant-ID organization. The bearer token may have been "
        "issued for another organization; the invitation email must match the user's."
    ),
)
async def accept_invitation(
    payload: InvitationAccept,
    user: User = Depends(get_token_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> MembershipRead:
    membership = await MembershipService(session).accept_invitation(token=payload.token, user=user)
    return MembershipRead.model_validate(membership)
