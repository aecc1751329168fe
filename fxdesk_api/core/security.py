from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from fxdesk_api.core.settings import get_app_settings

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


# PUBLIC_INTERFACE
def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a plain password against a bcrypt hash. Users without a password never match."""
    if not hashed_password:
        return False
    return _pwd_context.verify(plain_password, hashed_password)


# PUBLIC_INTERFACE
def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def generate_invitation_token() -> str:
    """Return an opaque URL-safe token for organization invitations."""
    return secrets.token_urlsafe(32)


def _create_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta],
    token_type: str,
) -> str:
    settings = get_app_settings()
    to_encode = data.copy()
    now = datetime.now(tz=timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire, "iat": now, "type": token_type})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# PUBLIC_INTERFACE
def create_access_token(
    subject: str,
    tenant_id: str,
    roles: list[str] | None = None,
    expires_minutes: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a signed access token.

    Claims:
      sub: user id
      tenant_id: organization id the token is valid for
      roles: membership role(s) in that organization
    """
    settings = get_app_settings()
    exp = timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload: Dict[str, Any] = {"sub": subject, "tenant_id": tenant_id, "roles": roles or []}
    if extra:
        payload.update(extra)
    return _create_token(payload, exp, token_type=ACCESS_TOKEN_TYPE)


# PUBLIC_INTERFACE
def create_refresh_token(
    subject: str, tenant_id: str, expires_minutes: Optional[int] = None
) -> str:
    """Create a signed refresh token with subject and tenant claim."""
    settings = get_app_settings()
    exp = timedelta(minutes=expires_minutes or settings.REFRESH_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": subject, "tenant_id": tenant_id}
    return _create_token(payload, exp, token_type=REFRESH_TOKEN_TYPE)


# PUBLIC_INTERFACE
def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT; raises JWTError if invalid/expired."""
    settings = get_app_settings()
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


# PUBLIC_INTERFACE
def get_token_subject(token: str, tenant_id: Optional[str] = None) -> Optional[str]:
    """
    Return 'sub' from a valid access token, or None.

    When `tenant_id` is given the token must also have been issued for that organization.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None
    if tenant_id is not None and str(payload.get("tenant_id")) != str(tenant_id):
        return None
    return payload.get("sub")
