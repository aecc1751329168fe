from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.security import ACCESS_TOKEN_TYPE, decode_token
from fxdesk_api.db.models.users import OrgMembership, User
from fxdesk_api.db.session import get_async_session, tenant_context
from fxdesk_api.repositories.users import MembershipRepository, UserRepository

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Membership roles allowed on a route
ADMIN_ROLES = ("owner", "admin")
ANY_MEMBER = ("owner", "admin", "member")


# PUBLIC_INTERFACE
async def get_tenant_id(x_tenant_id: str | None = Header(default=None, alias="X-Tenant-ID")) -> UUID:
    """
    Extract and validate the organization id from the X-Tenant-ID header.

    Raises:
        HTTPException: 400 Bad Request if header missing or invalid UUID.
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required.",
        )
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header must be a valid UUID string.",
        )


# PUBLIC_INTERFACE
async def get_tenant_session(
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession with Row-Level Security configured for the organization.

    The Postgres GUC `app.tenant_id` is set for the lifetime of the request and
    reset afterwards.
    """
    async with tenant_context(session, tenant_id):
        yield session


# PUBLIC_INTERFACE
async def get_session_no_tenant(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncSession:
    """
    Return an AsyncSession without tenant context.

    Used by the identity provider webhook, which resolves the organization itself.
    """
    return session


# PUBLIC_INTERFACE
async def get_token_claims(
    tenant_id: UUID = Depends(get_tenant_id),
    token: str = Depends(oauth2_scheme),
) -> Dict[str, Any]:
    """Decode the bearer access token and check its tenant claim against X-Tenant-ID."""
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    tok_tenant = payload.get("tenant_id")
    if not tok_tenant or str(tok_tenant) != str(tenant_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tenant mismatch")
    return payload


# PUBLIC_INTERFACE
async def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    session: AsyncSession = Depends(get_tenant_session),
) -> User:
    """Load the user named by the token subject."""
    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await UserRepository(session).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


# PUBLIC_INTERFACE
async def get_token_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_tenant_session),
) -> User:
    """
    Load the active user behind any valid access token, whatever organization it was issued for.

    Used where the caller has no membership in the X-Tenant-ID organization yet
    (accepting an invitation).
    """
    try:
        payload = decode_token(token)
        user_id = UUID(str(payload.get("sub")))
    except (JWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await UserRepository(session).get_by_id(user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


# PUBLIC_INTERFACE
async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """Ensure user is active."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
async def get_current_membership(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrgMembership:
    """Return the caller's active membership in the X-Tenant-ID organization."""
    membership = await MembershipRepository(session).get_for_user(user.id)
    if not membership or membership.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No active membership in this organization",
        )
    return membership


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the caller's membership role to be one of `required`.

    Example:
        dependencies=[Depends(require_roles(*ADMIN_ROLES))]
    """

    async def _dep(membership: OrgMembership = Depends(get_current_membership)) -> OrgMembership:
        if membership.role not in required:
            logger.info("Role %s rejected; required one of %s", membership.role, required)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return membership

    return _dep
