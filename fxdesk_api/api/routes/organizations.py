from __future__ import annotations

import logging
from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import (
    ADMIN_ROLES,
    get_current_active_user,
    get_current_membership,
    get_session_no_tenant,
    get_tenant_id,
    get_tenant_session,
    get_token_claims,
    require_roles,
)
from fxdesk_api.core.settings import get_app_settings
from fxdesk_api.db.models.users import User
from fxdesk_api.repositories.users import UserRepository
from fxdesk_api.schemas.organizations import (
    ActiveOrganizationRequest,
    OrganizationCreate,
    OrganizationCreated,
    OrganizationRead,
    OrganizationUpdate,
    OrgSettingsRead,
    OrgSettingsUpdate,
    SyncResult,
    UserOrganization,
    WebhookAck,
)
from fxdesk_api.services.identity_provider import IdentityProviderClient
from fxdesk_api.services.organizations import OrganizationService
from fxdesk_api.services.webhooks import verify_webhook

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Organizations"])


# PUBLIC_INTERFACE
@router.get(
    "/organizations/current",
    response_model=OrganizationRead,
    summary="Current organization",
    dependencies=[Depends(get_current_membership)],
)
async def read_current_organization(
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrganizationRead:
    org = await OrganizationService(session).get_current(tenant_id)
    return OrganizationRead.model_validate(org)


# PUBLIC_INTERFACE
@router.patch(
    "/organizations/current",
    response_model=OrganizationRead,
    summary="Update current organization",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def update_current_organization(
    payload: OrganizationUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrganizationRead:
    org = await OrganizationService(session).update_current(tenant_id, payload.model_dump(exclude_unset=True))
    return OrganizationRead.model_validate(org)


# PUBLIC_INTERFACE
@router.get(
    "/organizations/current/settings",
    response_model=OrgSettingsRead,
    summary="Organization settings",
    description="Settings of the current organization; defaults are created on first read.",
    dependencies=[Depends(get_current_membership)],
)
async def read_settings(session: AsyncSession = Depends(get_tenant_session)) -> OrgSettingsRead:
    return OrgSettingsRead.model_validate(await OrganizationService(session).get_settings())


# PUBLIC_INTERFACE
@router.patch(
    "/organizations/current/settings",
    response_model=OrgSettingsRead,
    summary="Update organization settings",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def update_settings(
    payload: OrgSettingsUpdate,
    session: AsyncSession = Depends(get_tenant_session),
) -> OrgSettingsRead:
    values = payload.model_dump(exclude_unset=True)
    if values.get("base_currency"):
        values["base_currency"] = values["base_currency"].upper()
    return OrgSettingsRead.model_validate(await OrganizationService(session).update_settings(values))


# PUBLIC_INTERFACE
@router.post(
    "/organizations/current/sync-members",
    response_model=SyncResult,
    summary="Sync members from identity provider",
    description="Upsert local users and memberships from the provider's organization memberships.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def sync_members(
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> SyncResult:
    return SyncResult(**await OrganizationService(session).sync_members(tenant_id))


# PUBLIC_INTERFACE
@router.get(
    "/organizations/mine",
    response_model=List[UserOrganization],
    summary="My organizations",
    description="Organizations the current user is a member of.",
)
async def my_organizations(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[UserOrganization]:
    rows = await OrganizationService(session).list_user_organizations(user.id)
    return [UserOrganization(**row) for row in rows]


# PUBLIC_INTERFACE
@router.post(
    "/organizations",
    response_model=OrganizationCreated,
    status_code=201,
    summary="Create organization",
    description=(
        "Create an organization at the identity provider, mirror it locally and make the caller its owner. "
        "Returns the new organization id to use as X-Tenant-ID."
    ),
)
async def create_organization(
    payload: OrganizationCreate,
    claims: Dict[str, Any] = Depends(get_token_claims),
    session: AsyncSession = Depends(get_session_no_tenant),
) -> OrganizationCreated:
    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    creator = await UserRepository(session).get_by_id(user_id)
    if not creator or not creator.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    created = await OrganizationService(session).create_organization(
        name=payload.name, creator=creator, slug=payload.slug
    )
    return OrganizationCreated(
        organization_id=created["id"], external_id=created["external_id"], slug=created["slug"]
    )


# PUBLIC_INTERFACE
@router.post(
    "/organizations/active",
    response_model=Dict[str, Any],
    summary="Set active organization",
    description="Switch the identity provider session's active organization.",
    dependencies=[Depends(get_current_active_user)],
)
async def set_active_organization(payload: ActiveOrganizationRequest) -> Dict[str, Any]:
    return await IdentityProviderClient().set_active_organization(payload.session_id, payload.organization_id)


# PUBLIC_INTERFACE
@router.post(
    "/webhooks/identity-provider",
    response_model=WebhookAck,
    summary="Identity provider webhook",
    description=(
        "Receives Svix-signed events. organization.created and organization.updated upsert the local "
        "organization; other events are acknowledged."
    ),
    tags=["Webhooks"],
)
async def identity_provider_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session_no_tenant),
) -> WebhookAck:
    settings = get_app_settings()
    body = await request.body()
    event = verify_webhook(
        settings.IDENTITY_PROVIDER_WEBHOOK_SECRET,
        request.headers,
        body,
        tolerance_seconds=settings.WEBHOOK_TOLERANCE_SECONDS,
    )
    logger.info("Identity provider event %s", event.get("type"))
    result = await OrganizationService(session).handle_webhook_event(event)
    return WebhookAck(**result)
