from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, text

from fxdesk_api.db.models.organizations import OrgActivity, OrgSettings, Organization
from .base import BaseRepository


class OrganizationRepository(BaseRepository):
    """
    Organization rows.

    Inside tenant_context only the current organization is visible. Lookups that
    must cross organizations go through SECURITY DEFINER SQL functions.
    """

    async def get(self, org_id: UUID) -> Optional[Organization]:
        stmt = select(Organization).where(Organization.id == org_id)
        return await self.scalar_one_or_none(stmt)

    async def find_id(
        self, *, slug: Optional[str] = None, external_id: Optional[str] = None
    ) -> Optional[UUID]:
        res = await self.execute(
            text("SELECT find_organization_id(:slug, :external_id)"),
            {"slug": slug, "external_id": external_id},
        )
        return res.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> List[Dict[str, Any]]:
        res = await self.execute(
            text("SELECT * FROM list_user_organizations(:user_id)"),
            {"user_id": user_id},
        )
        return [dict(row) for row in res.mappings().all()]

    async def insert(
        self,
        *,
        name: str,
        slug: str,
        external_id: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> UUID:
        """
        Insert an organization and leave the session's GUC pointing at it.

        RLS on organizations requires app.tenant_id to equal the id being inserted.
        """
        org_id = uuid4()
        await self.execute(
            text("SELECT set_config('app.tenant_id', :tid, false)"), {"tid": str(org_id)}
        )
        await self.execute(
            text(
                """
                INSERT INTO organizations (id, name, slug, external_id, image_url)
                VALUES (:id, :name, :slug, :external_id, :image_url)
                """
            ),
            {
                "id": org_id,
                "name": name,
                "slug": slug,
                "external_id": external_id,
                "image_url": image_url,
            },
        )
        return org_id


class OrgSettingsRepository(BaseRepository):
    async def get_or_create(self) -> OrgSettings:
        """Return the organization's settings row, creating defaults on first read."""
        settings = await self.scalar_one_or_none(select(OrgSettings))
        if settings is None:
            settings = OrgSettings()
            await self.add(settings)
            await self.flush()
        return settings


class ActivityRepository(BaseRepository):
    """Append-only org_activities writer."""

    async def record(
        self,
        event: str,
        *,
        user_id: Optional[UUID] = None,
        session_id: Optional[UUID] = None,
        reference_id: Optional[str] = None,
        comment: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> OrgActivity:
        activity = OrgActivity(
            event=event,
            user_id=user_id,
            session_id=session_id,
            reference_id=reference_id,
            comment=comment,
            meta=meta or {},
        )
        await self.add(activity)
        await self.flush()
        return activity

    async def list(
        self, *, session_id: Optional[UUID] = None, limit: int = 100, offset: int = 0
    ) -> List[OrgActivity]:
        stmt = select(OrgActivity)
        if session_id:
            stmt = stmt.where(OrgActivity.session_id == session_id)
        stmt = stmt.order_by(OrgActivity.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))
