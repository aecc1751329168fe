from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import BusinessRuleError, NotFoundError
from fxdesk_api.db.models.organizations import OrgSettings, Organization
from fxdesk_api.db.models.users import User
from fxdesk_api.db.session import reset_current_tenant, tenant_context
from fxdesk_api.repositories.organizations import OrgSettingsRepository, OrganizationRepository
from fxdesk_api.repositories.users import MembershipRepository, UserRepository
from fxdesk_api.services.base import BaseService
from fxdesk_api.services.identity_provider import IdentityProviderClient, normalize_provider_role

logger = logging.getLogger(__name__)

ORGANIZATION_EVENTS = ("organization.created", "organization.updated")


# PUBLIC_INTERFACE
def slugify(name: str) -> str:
    """Lowercase, drop anything outside [a-z0-9 -], whitespace to dashes, collapse dashes."""
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip().strip("-")


def _display_name(first: str, last: str, username: str, email: str) -> str:
    return f"{first} {last}".strip() or username or email or "Unknown"


class OrganizationService(BaseService):
    """
    Organization lifecycle across the local database and the identity provider.

    Methods that work across organizations (webhook upserts, creation) expect a
    session without tenant context and set it themselves.
    """

    def __init__(self, session: AsyncSession, provider: Optional[IdentityProviderClient] = None) -> None:
        super().__init__(session)
        self.provider = provider or IdentityProviderClient()
        self.orgs = OrganizationRepository(session)
        self.users = UserRepository(session)

    # PUBLIC_INTERFACE
    async def upsert_from_provider(
        self, *, external_id: str, slug: str, name: str, image_url: Optional[str] = None
    ) -> UUID:
        """Create or update the local organization mirroring a provider organization."""
        org_id = await self.orgs.find_id(external_id=external_id)
        if org_id is None:
            org_id = await self.orgs.insert(
                name=name, slug=slug, external_id=external_id, image_url=image_url
            )
            await reset_current_tenant(self.session)
            logger.info("Created organization %s for provider org %s", org_id, external_id)
        else:
            async with tenant_context(self.session, org_id):
                org = await self.orgs.get(org_id)
                if org is not None:
                    org.name = name
                    org.slug = slug
                    org.image_url = image_url
                    await self.orgs.flush()
        await self.orgs.commit()
        return org_id

    # PUBLIC_INTERFACE
    async def handle_webhook_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a verified provider event. Non-organization events are acknowledged only."""
        event_type = event.get("type")
        if event_type not in ORGANIZATION_EVENTS:
            logger.info("Ignoring identity provider event %s", event_type)
            return {"ok": True}

        data = event.get("data") or {}
        if not isinstance(data, dict) or not all(data.get(key) for key in ("id", "slug", "name")):
            raise BusinessRuleError("Missing organization fields")
        await self.upsert_from_provider(
            external_id=data["id"],
            slug=data["slug"],
            name=data["name"],
            image_url=data.get("image_url"),
        )
        return {"ok": True}

    # PUBLIC_INTERFACE
    async def create_organization(self, *, name: str, creator: User, slug: Optional[str] = None) -> Dict[str, Any]:
        """
        Create the organization on the provider, mirror it locally and make the
        creator its owner.
        """
        created_by = creator.external_id or str(creator.id)
        remote = await self.provider.create_organization(name=name, created_by=created_by, slug=slug)
        local_slug = remote.get("slug") or slug or slugify(name)
        org_id = await self.upsert_from_provider(
            external_id=remote["id"],
            slug=local_slug,
            name=remote.get("name") or name,
            image_url=remote.get("image_url"),
        )

        async with tenant_context(self.session, org_id):
            memberships = MembershipRepository(self.session)
            membership = await memberships.get_for_user(creator.id)
            if membership is None:
                await memberships.create(user=creator, role="owner")
            else:
                membership.role = "owner"
                membership.status = "active"
            await OrgSettingsRepository(self.session).get_or_create()
            await memberships.commit()
        return {"id": org_id, "external_id": remote["id"], "slug": local_slug, "name": remote.get("name") or name}

    # PUBLIC_INTERFACE
    async def sync_members(self, org_id: UUID) -> Dict[str, int]:
        """
        Pull provider memberships of the organization into local users and memberships.

        Must be called inside the organization's tenant context.
        """
        org = await self.orgs.get(org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        if not org.external_id:
            raise BusinessRuleError("Organization is not linked to the identity provider")

        remote_members = await self.provider.list_organization_memberships(org.external_id)
        memberships = MembershipRepository(self.session)
        for item in remote_members:
            data = item.get("public_user_data") or {}
            external_user_id = data.get("user_id") or item.get("user_id")
            if not external_user_id:
                continue
            email = data.get("identifier") or ""
            user = await self.users.get_by_external_id(external_user_id)
            if user is None and email:
                user = await self.users.get_by_email(email)
            if user is None:
                user = await self.users.create(
                    email=email or f"{external_user_id}@users.invalid",
                    first_name=data.get("first_name") or None,
                    last_name=data.get("last_name") or None,
                    full_name=_display_name(
                        data.get("first_name") or "",
                        data.get("last_name") or "",
                        data.get("username") or "",
                        email,
                    ),
                    external_id=external_user_id,
                    image_url=data.get("image_url"),
                    username=data.get("username"),
                )
            elif not user.external_id:
                user.external_id = external_user_id

            role = normalize_provider_role(item.get("role"))
            membership = await memberships.get_for_user(user.id)
            if membership is None:
                await memberships.create(user=user, role=role)
            else:
                if membership.role != "owner":
                    membership.role = role
                membership.status = "active"
        await memberships.commit()
        logger.info("Synced %d provider memberships into organization %s", len(remote_members), org_id)
        return {"synced": len(remote_members)}

    # PUBLIC_INTERFACE
    async def list_user_organizations(self, user_id: UUID) -> List[Dict[str, Any]]:
        return await self.orgs.list_for_user(user_id)

    # PUBLIC_INTERFACE
    async def get_current(self, org_id: UUID) -> Organization:
        org = await self.orgs.get(org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        return org

    # PUBLIC_INTERFACE
    async def update_current(self, org_id: UUID, values: Dict[str, Any]) -> Organization:
        org = await self.get_current(org_id)
        self.orgs.apply(org, values)
        await self.orgs.commit()
        return org

    # PUBLIC_INTERFACE
    async def get_settings(self) -> OrgSettings:
        repo = OrgSettingsRepository(self.session)
        settings = await repo.get_or_create()
        await repo.commit()
        return settings

    # PUBLIC_INTERFACE
    async def update_settings(self, values: Dict[str, Any]) -> OrgSettings:
        repo = OrgSettingsRepository(self.session)
        settings = await repo.get_or_create()
        repo.apply(settings, values)
        await repo.commit()
        return settings
