from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select

from fxdesk_api.db.models.users import OrgInvitation, OrgMembership, User, UserPreference
from .base import BaseRepository


class UserRepository(BaseRepository):
    """Global user accounts and their preferences (not tenant scoped)."""

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.lower())
        return await self.scalar_one_or_none(stmt)

    async def get_by_external_id(self, external_id: str) -> Optional[User]:
        stmt = select(User).where(User.external_id == external_id)
        return await self.scalar_one_or_none(stmt)

    async def search_by_email(self, query: str, limit: int = 20) -> List[User]:
        stmt = (
            select(User)
            .where(User.email.ilike(f"%{query}%"))
            .order_by(User.email)
            .limit(limit)
        )
        return list(await self.scalars(stmt))

    async def create(
        self,
        *,
        email: str,
        hashed_password: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        full_name: Optional[str] = None,
        external_id: Optional[str] = None,
        image_url: Optional[str] = None,
        username: Optional[str] = None,
    ) -> User:
        if not full_name:
            full_name = " ".join(p for p in (first_name, last_name) if p) or None
        user = User(
            email=email,
            hashed_password=hashed_password,
            first_name=first_name,
            last_name=last_name,
            full_name=full_name,
            external_id=external_id,
            image_url=image_url,
            username=username,
        )
        await self.add(user)
        await self.flush()
        return user

    async def touch(self, user: User) -> User:
        user.last_seen_at = datetime.now(tz=timezone.utc)
        await self.flush()
        return user

    async def get_preferences(self, user_id: UUID) -> UserPreference:
        """Return the user's preferences, creating the defaults on first read."""
        stmt = select(UserPreference).where(UserPreference.user_id == user_id)
        prefs = await self.scalar_one_or_none(stmt)
        if prefs is None:
            prefs = UserPreference(user_id=user_id)
            await self.add(prefs)
            await self.flush()
        return prefs


class MembershipRepository(BaseRepository):
    """Organization memberships of the current tenant."""

    async def get(self, membership_id: UUID) -> Optional[OrgMembership]:
        stmt = select(OrgMembership).where(OrgMembership.id == membership_id)
        return await self.scalar_one_or_none(stmt)

    async def get_for_user(self, user_id: UUID) -> Optional[OrgMembership]:
        stmt = select(OrgMembership).where(OrgMembership.user_id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def count(self) -> int:
        res = await self.execute(select(func.count(OrgMembership.id)))
        return int(res.scalar_one())

    async def list(
        self, *, status: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[OrgMembership]:
        stmt = select(OrgMembership)
        if status:
            stmt = stmt.where(OrgMembership.status == status)
        stmt = stmt.order_by(OrgMembership.created_at.asc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def create(
        self,
        *,
        user: User,
        role: str,
        status: str = "active",
        invited_by: Optional[UUID] = None,
    ) -> OrgMembership:
        now = datetime.now(tz=timezone.utc)
        membership = OrgMembership(
            user_id=user.id,
            role=role,
            status=status,
            first_name=user.first_name,
            last_name=user.last_name,
            joined_at=now if status == "active" else None,
            invited_by=invited_by,
            invited_at=now if invited_by else None,
        )
        membership.user = user
        await self.add(membership)
        await self.flush()
        return membership


class InvitationRepository(BaseRepository):
    async def get(self, invitation_id: UUID) -> Optional[OrgInvitation]:
        stmt = select(OrgInvitation).where(OrgInvitation.id == invitation_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_token(self, token: str) -> Optional[OrgInvitation]:
        stmt = select(OrgInvitation).where(OrgInvitation.token == token)
        return await self.scalar_one_or_none(stmt)

    async def get_pending_for_email(self, email: str) -> Optional[OrgInvitation]:
        stmt = select(OrgInvitation).where(
            func.lower(OrgInvitation.email) == email.lower(),
            OrgInvitation.status == "pending",
        )
        return await self.scalar_one_or_none(stmt)

    async def list(self, *, status: Optional[str] = None) -> List[OrgInvitation]:
        stmt = select(OrgInvitation)
        if status:
            stmt = stmt.where(OrgInvitation.status == status)
        stmt = stmt.order_by(OrgInvitation.created_at.desc())
        return list(await self.scalars(stmt))

    async def create(
        self, *, email: str, role: str, token: str, expires_at: datetime, invited_by: UUID
    ) -> OrgInvitation:
        invitation = OrgInvitation(
            email=email, role=role, token=token, expires_at=expires_at, invited_by=invited_by
        )
        await self.add(invitation)
        await self.flush()
        return invitation
