"""
Database seeding utilities for a demo organization.

Seeds:
- Demo organization (slug from DEFAULT_TENANT_SLUG) and its settings
- Owner user with a password login and an active owner membership
- Currencies CAD (base), USD, EUR and BTC with denominations
- Two repositories: a till and a vault

Every step is idempotent so the seed can run on each startup.

Usage:
  python -m fxdesk_api.db.run_migrations upgrade head
  python -m fxdesk_api.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.security import get_password_hash
from fxdesk_api.core.settings import get_app_settings
from fxdesk_api.db.models.users import User
from fxdesk_api.db.session import session_scope, tenant_context
from fxdesk_api.repositories.currencies import DenominationRepository, OrgCurrencyRepository
from fxdesk_api.repositories.org_repositories import OrgRepositoryRepository
from fxdesk_api.repositories.organizations import OrganizationRepository, OrgSettingsRepository
from fxdesk_api.repositories.users import MembershipRepository, UserRepository

logger = logging.getLogger(__name__)

# ticker -> (name, sign, type, rate vs CAD, hex color, denominations)
DEMO_CURRENCIES: Dict[str, Tuple[str, str, str, float, str, List[float]]] = {
    "CAD": ("Canadian Dollar", "$", "FIAT", 1.0, "#D52B1E", [100, 50, 20, 10, 5, 2, 1, 0.25, 0.1, 0.05]),
    "USD": ("US Dollar", "$", "FIAT", 0.73, "#3C3B6E", [100, 50, 20, 10, 5, 1]),
    "EUR": ("Euro", "€", "FIAT", 0.67, "#003399", [500, 200, 100, 50, 20, 10, 5]),
    "BTC": ("Bitcoin", "₿", "CRYPTOCURRENCY", 0.0000108, "#F7931A", [1]),
}

DEMO_REPOSITORIES = [
    {"name": "Till 1", "key": "TILL-1", "type_of": "TILL", "currency_type": "FIAT", "form": "PHYSICAL",
     "currency_tickers": ["CAD", "USD", "EUR"], "display_order": 0},
    {"name": "Main Vault", "key": "VAULT", "type_of": "VAULT", "currency_type": "FIAT", "form": "PHYSICAL",
     "currency_tickers": ["CAD", "USD", "EUR"], "display_order": 1, "float_count_required": True},
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """Seed the demo organization, its owner and reference data."""
    settings = get_app_settings()
    async with session_scope() as session:
        owner = await _ensure_owner(session, settings.SEED_OWNER_EMAIL, settings.SEED_OWNER_PASSWORD)
        org_id = await _ensure_organization(session, name="Demo Exchange", slug=settings.DEFAULT_TENANT_SLUG)
        async with tenant_context(session, org_id):
            await _ensure_membership(session, owner)
            await OrgSettingsRepository(session).get_or_create()
            await _seed_currencies(session)
            await _seed_repositories(session)
            await session.commit()
    logger.info("Seeded organization %s (owner %s)", org_id, settings.SEED_OWNER_EMAIL)


async def _ensure_owner(session: AsyncSession, email: str, password: str) -> User:
    users = UserRepository(session)
    user = await users.get_by_email(email)
    if user is None:
        user = await users.create(
            email=email,
            hashed_password=get_password_hash(password),
            first_name="Demo",
            last_name="Owner",
        )
    return user


async def _ensure_organization(session: AsyncSession, name: str, slug: str) -> UUID:
    orgs = OrganizationRepository(session)
    org_id = await orgs.find_id(slug=slug)
    if org_id is None:
        org_id = await orgs.insert(name=name, slug=slug)
    return org_id


async def _ensure_membership(session: AsyncSession, owner: User) -> None:
    memberships = MembershipRepository(session)
    if await memberships.get_for_user(owner.id) is None:
        await memberships.create(user=owner, role="owner")


async def _seed_currencies(session: AsyncSession) -> None:
    currencies = OrgCurrencyRepository(session)
    denominations = DenominationRepository(session)
    existing = await currencies.by_ticker()
    for position, (ticker, (name, sign, type_of, rate, color, values)) in enumerate(DEMO_CURRENCIES.items()):
        if ticker in existing:
            continue
        currency = await currencies.create(
            name=name,
            ticker=ticker,
            sign=sign,
            type_of=type_of,
            rate=rate,
            hex_color=color,
            display_order=position,
            is_base_currency=ticker == "CAD",
            buy_margin_target=2 if ticker != "CAD" else 0,
            sell_margin_target=2 if ticker != "CAD" else 0,
            amount_decimal_places=8 if type_of == "CRYPTOCURRENCY" else 2,
        )
        for value in values:
            await denominations.create(org_currency_id=currency.id, value=value, name=f"{sign}{value:g}")


async def _seed_repositories(session: AsyncSession) -> None:
    repositories = OrgRepositoryRepository(session)
    for data in DEMO_REPOSITORIES:
        if await repositories.get_by_key(data["key"]) is None:
            await repositories.create(**data)


if __name__ == "__main__":
    asyncio.run(seed_all())
