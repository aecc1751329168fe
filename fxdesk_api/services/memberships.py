from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from fxdesk_api.core.security import generate_invitation_token, get_password_hash
from fxdesk_api.db.models.users import OrgInvitation, OrgMembership, User
from fxdesk_api.repositories.org_repositories import OrgRepositoryRepository
from fxdesk_api.repositories.users import InvitationRepository, MembershipRepository, UserRepository
from fxdesk_api.services.base import BaseService

logger = logging.getLogger(__name__)

ROLES = ("owner", "admin", "member")
MEMBERSHIP_STATUSES = ("active", "invited", "suspended", "removed")
INVITATION_TTL = timedelta(days=7)


class MembershipService(BaseService):
    """Users, memberships and invitations of the current organization."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.users = UserRepository(session)
        self.memberships = MembershipRepository(session)
        self.invitations = InvitationRepository(session)

    async def _get_or_create_user(
        self,
        *,
        email: str,
        password: Optional[str],
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> User:
        user = await self.users.get_by_email(email)
        if user is None:
            user = await self.users.create(
                email=email,
                hashed_password=get_password_hash(password) if password else None,
                first_name=first_name,
                last_name=last_name,
                full_name=full_name,
            )
        elif password and not user.hashed_password:
            user.hashed_password = get_password_hash(password)
        return user

    # PUBLIC_INTERFACE
    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> OrgMembership:
        """
        Register a user into the current organization.

        The global user is reused when the email is known. The first member of
        an organization becomes its owner.
        """
        user = await self._get_or_create_user(
            email=email, password=password, first_name=first_name, last_name=last_name, full_name=full_name
        )
        if await self.memberships.get_for_user(user.id):
            raise ConflictError("User is already a member of this organization")
        role = "owner" if await self.memberships.count() == 0 else "member"
        membership = await self.memberships.create(user=user, role=role)
        await self.memberships.commit()
        logger.info("Registered user %s as %s", user.id, role)
        return membership

    # PUBLIC_INTERFACE
    async def admin_create_user(
        self,
        *,
        actor: OrgMembership,
        email: str,
        password: Optional[str],
        role: str = "member",
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> OrgMembership:
        user = await self.users.get_by_email(email)
        if user is not None and await self.memberships.get_for_user(user.id):
            raise ConflictError("User with this email already exists")
        self._check_can_grant(actor, role)
        user = await self._get_or_create_user(
            email=email, password=password, first_name=first_name, last_name=last_name
        )
        membership = await self.memberships.create(user=user, role=role, invited_by=actor.user_id)
        await self.memberships.commit()
        return membership

    # PUBLIC_INTERFACE
    async def archive_member(self, *, actor: OrgMembership, user_id: UUID) -> OrgMembership:
        """Remove the member from the organization and deactivate the user account."""
        if actor.user_id == user_id:
            raise PermissionDeniedError("Cannot archive your own account")
        membership = await self._get_member(user_id)
        membership.status = "removed"
        membership.user.is_active = False
        await self.memberships.commit()
        return membership

    # PUBLIC_INTERFACE
    async def update_role(self, *, actor: OrgMembership, user_id: UUID, role: str) -> OrgMembership:
        if actor.role not in ("owner", "admin"):
            raise PermissionDeniedError("Insufficient permissions to update member roles")
        self._check_can_grant(actor, role)
        membership = await self._get_member(user_id)
        if membership.role == "owner" and actor.role != "owner":
            raise PermissionDeniedError("Insufficient permissions to update member roles")
        membership.role = role
        await self.memberships.commit()
        return membership

    # PUBLIC_INTERFACE
    async def remove_member(self, *, user_id: UUID) -> None:
        membership = await self._get_member(user_id)
        if membership.role == "owner":
            raise PermissionDeniedError("Cannot remove organization owner")
        await self.memberships.remove(membership)
        await self.memberships.commit()

    # PUBLIC_INTERFACE
    async def member_details(self, user_id: UUID) -> Dict[str, Any]:
        """Membership plus the repositories granted to the member."""
        membership = await self._get_member(user_id)
        repositories = await OrgRepositoryRepository(self.session).list_granted_to(user_id, active_only=False)
        return {"membership": membership, "repositories": repositories}

    # Invitations

    # PUBLIC_INTERFACE
    async def invite(self, *, actor: OrgMembership, email: str, role: str = "member") -> OrgInvitation:
        self._check_can_grant(actor, role)
        user = await self.users.get_by_email(email)
        if user is not None:
            membership = await self.memberships.get_for_user(user.id)
            if membership is not None and membership.status == "active":
                raise ConflictError("User is already a member of this organization")
        if await self.invitations.get_pending_for_email(email):
            raise ConflictError("User already has a pending invitation")

        invitation = await self.invitations.create(
            email=email.lower(),
            role=role,
            token=generate_invitation_token(),
            expires_at=datetime.now(tz=timezone.utc) + INVITATION_TTL,
            invited_by=actor.user_id,
        )
        await self.invitations.commit()
        return invitation

    # PUBLIC_INTERFACE
    async def cancel_invitation(self, invitation_id: UUID) -> OrgInvitation:
        invitation = await self.invitations.get(invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        if invitation.status != "pending":
            raise ConflictError("Invitation already processed")
        invitation.status = "cancelled"
        await self.invitations.commit()
        return invitation

    # PUBLIC_INTERFACE
    async def accept_invitation(self, *, token: str, user: User) -> OrgMembership:
        """
        Accept a pending invitation addressed to the user's email.

        Raises:
            NotFoundError: unknown token.
            PermissionDeniedError: the invitation is for another email.
            ConflictError: already processed or expired.
        """
        invitation = await self.invitations.get_by_token(token)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        if invitation.email.lower() != user.email.lower():
            raise PermissionDeniedError("Invitation was sent to a different email")
        if invitation.status != "pending":
            raise ConflictError("Invitation already processed")
        if invitation.expires_at < datetime.now(tz=timezone.utc):
            invitation.status = "expired"
            await self.invitations.commit()
            raise ConflictError("Invitation has expired")

        membership = await self.memberships.get_for_user(user.id)
        if membership is None:
            membership = await self.memberships.create(
                user=user, role=invitation.role, invited_by=invitation.invited_by
            )
        else:
            membership.role = invitation.role
            membership.status = "active"
            membership.joined_at = datetime.now(tz=timezone.utc)
        invitation.status = "accepted"
        await self.memberships.commit()
        return membership

    async def _get_member(self, user_id: UUID) -> OrgMembership:
        membership = await self.memberships.get_for_user(user_id)
        if membership is None:
            raise NotFoundError("Member not found")
        return membership

    @staticmethod
    def _check_can_grant(actor: OrgMembership, role: str) -> None:
        if role == "owner" and actor.role != "owner":
            raise PermissionDeniedError("Only an owner can grant the owner role")
