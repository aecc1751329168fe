"""
REST client for the identity/organization provider (Clerk backend API).

Only the handful of calls the back-office needs: organization lookup and
creation, membership listing and switching the active organization of a
provider session.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from fxdesk_api.core.errors import ConfigurationError, NotFoundError, UpstreamServiceError
from fxdesk_api.core.settings import AppSettings, get_app_settings

logger = logging.getLogger(__name__)


class IdentityProviderClient:
    """aiohttp client authenticated with the provider's backend secret key."""

    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or get_app_settings()

    def _headers(self) -> Dict[str, str]:
        if not self.settings.IDENTITY_PROVIDER_SECRET_KEY:
            raise ConfigurationError("Identity provider secret key not configured")
        return {
            "Authorization": f"Bearer {self.settings.IDENTITY_PROVIDER_SECRET_KEY}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = self._headers()
        url = f"{self.settings.IDENTITY_PROVIDER_API_URL.rstrip('/')}/{path.lstrip('/')}"
        timeout = aiohttp.ClientTimeout(total=self.settings.HTTP_TIMEOUT_SECONDS)
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.request(method, url, params=params, json=json) as response:
                    if response.status >= 400:
                        body = await response.text()
                        logger.warning("Identity provider %s %s failed: %s", method, path, response.status)
                        raise UpstreamServiceError(
                            f"Identity provider request failed: {response.status} {body[:200]}",
                            details={"status": response.status},
                        )
                    return await response.json(content_type=None)
        except aiohttp.ClientError as exc:
            raise UpstreamServiceError(f"Identity provider request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise UpstreamServiceError("Identity provider request timed out") from exc

    # PUBLIC_INTERFACE
    async def get_organization_by_slug(self, slug: str) -> Dict[str, Any]:
        """Return the provider organization whose slug matches, or raise NotFoundError."""
        data = await self._request("GET", "organizations", params={"slug": slug})
        items = (data or {}).get("data") or []
        if not items:
            raise NotFoundError("Organization not found")
        return items[0]

    # PUBLIC_INTERFACE
    async def list_organization_memberships(self, organization_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"organizations/{organization_id}/memberships")
        return list((data or {}).get("data") or [])

    # PUBLIC_INTERFACE
    async def create_organization(
        self, *, name: str, created_by: str, slug: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create an organization on the provider; `created_by` is the provider user id."""
        body: Dict[str, Any] = {"name": name, "created_by": created_by}
        if slug:
            body["slug"] = slug
        return await self._request("POST", "organizations", json=body)

    # PUBLIC_INTERFACE
    async def set_active_organization(self, session_id: str, organization_id: str) -> Dict[str, Any]:
        await self._request(
            "PATCH", f"sessions/{session_id}", json={"active_organization_id": organization_id}
        )
        return {"success": True}


# PUBLIC_INTERFACE
def normalize_provider_role(raw_role: Optional[str]) -> str:
    """Map provider roles such as "org:admin" onto local membership roles."""
    role = (raw_role or "").lower()
    if role == "owner" or role.endswith(":owner"):
        return "owner"
    if role == "admin" or role.endswith(":admin"):
        return "admin"
    return "member"
