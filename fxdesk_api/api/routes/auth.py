from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import get_current_membership, get_tenant_id, get_tenant_session
from fxdesk_api.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from fxdesk_api.db.models.users import OrgMembership, User
from fxdesk_api.repositories.users import MembershipRepository, UserRepository
from fxdesk_api.schemas.auth import MembershipRead, MeResponse, RefreshRequest, RegisterRequest, TokenPair, UserRead
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.services.memberships import MembershipService

router = APIRouter(prefix="/auth", tags=["Auth"])


def _issue_tokens(user: User, membership: OrgMembership, tenant_id: UUID) -> TokenPair:
    access = create_access_token(subject=str(user.id), tenant_id=str(tenant_id), roles=[membership.role])
    refresh = create_refresh_token(subject=str(user.id), tenant_id=str(tenant_id))
    return TokenPair(access_token=access, refresh_token=refresh)


async def _active_membership(session: AsyncSession, user: User) -> OrgMembership:
    membership = await MembershipRepository(session).get_for_user(user.id)
    if membership is None or membership.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No active membership in this organization",
        )
    return membership


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=MembershipRead,
    summary="Register user",
    description=(
        "Create (or reuse) a user account and a membership in the X-Tenant-ID organization. "
        "The first member of an organization becomes its owner."
    ),
)
async def register_user(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_tenant_session),
) -> MembershipRead:
    membership = await MembershipService(session).register(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        full_name=payload.full_name,
    )
    return MembershipRead.model_validate(membership)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=TokenPair,
    summary="Login",
    description="Authenticate using OAuth2 password form and receive access/refresh tokens for the X-Tenant-ID organization.",
)
async def login_for_tokens(
    form_data: OAuth2PasswordRequestForm = Depends(),
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> TokenPair:
    """Authenticate user and issue tokens."""
    user = await UserRepository(session).get_by_email(form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=400, detail="User is inactive")

    membership = await _active_membership(session, user)
    return _issue_tokens(user, membership, tenant_id)


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Refresh access token",
    description="Issue a new token pair from a valid refresh token.",
)
async def refresh_token(
    payload: RefreshRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> TokenPair:
    try:
        claims: Dict[str, Any] = decode_token(payload.refresh_token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    if claims.get("type") != REFRESH_TOKEN_TYPE:
        raise HTTPException(status_code=401, detail="Invalid token type")
    if str(tenant_id) != str(claims.get("tenant_id")):
        raise HTTPException(status_code=403, detail="Tenant mismatch")

    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    user = await UserRepository(session).get_by_id(user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    membership = await _active_membership(session, user)
    return _issue_tokens(user, membership, tenant_id)


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout",
    description="Stateless logout. Clients should discard tokens.",
)
async def logout() -> MessageResponse:
    return MessageResponse(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=MeResponse,
    summary="Read current user",
    description="Return the current user and their role in the X-Tenant-ID organization.",
)
async def read_current_user(
    membership: OrgMembership = Depends(get_current_membership),
) -> MeResponse:
    return MeResponse(
        user=UserRead.model_validate(membership.user),
        role=membership.role,
        tenant_id=membership.tenant_id,
    )
