from __future__ import annotations

from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert

from fxdesk_api.db.models.currencies import AppCurrency, Denomination, OrgCurrency
from .base import BaseRepository


class AppCurrencyRepository(BaseRepository):
    """Global currency catalogue."""

    async def list(self, *, type_: Optional[str] = None) -> List[AppCurrency]:
        stmt = select(AppCurrency)
        if type_:
            stmt = stmt.where(AppCurrency.type == type_)
        stmt = stmt.order_by(AppCurrency.ticker)
        return list(await self.scalars(stmt))

    async def rates_by_ticker(self, tickers: Sequence[str]) -> Dict[str, AppCurrency]:
        if not tickers:
            return {}
        stmt = select(AppCurrency).where(AppCurrency.ticker.in_(list(tickers)))
        return {c.ticker: c for c in await self.scalars(stmt)}

    async def upsert_many(self, rows: List[dict]) -> int:
        """Insert or update catalogue rows keyed by ticker. Names are only set on insert."""
        if not rows:
            return 0
        stmt = insert(AppCurrency).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AppCurrency.ticker],
            set_={
                "rate": stmt.excluded.rate,
                "base_rate_ticker": stmt.excluded.base_rate_ticker,
                "type": stmt.excluded.type,
                "rate_updated_at": stmt.excluded.rate_updated_at,
                "updated_at": stmt.excluded.rate_updated_at,
            },
        )
        await self.execute(stmt)
        return len(rows)


class OrgCurrencyRepository(BaseRepository):
    async def list(self, *, tradeable: Optional[bool] = None) -> List[OrgCurrency]:
        stmt = select(OrgCurrency)
        if tradeable is not None:
            stmt = stmt.where(OrgCurrency.tradeable.is_(tradeable))
        stmt = stmt.order_by(OrgCurrency.display_order.asc(), OrgCurrency.ticker.asc())
        return list(await self.scalars(stmt))

    async def get(self, currency_id: UUID) -> Optional[OrgCurrency]:
        stmt = select(OrgCurrency).where(OrgCurrency.id == currency_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_ticker(self, ticker: str) -> Optional[OrgCurrency]:
        stmt = select(OrgCurrency).where(OrgCurrency.ticker == ticker)
        return await self.scalar_one_or_none(stmt)

    async def by_ticker(self) -> Dict[str, OrgCurrency]:
        return {c.ticker: c for c in await self.list()}

    async def create(self, **values) -> OrgCurrency:
        currency = OrgCurrency(**values)
        await self.add(currency)
        await self.flush()
        return currency

    async def clear_base_currency(self, except_id: Optional[UUID] = None) -> None:
        stmt = update(OrgCurrency).where(OrgCurrency.is_base_currency.is_(True))
        if except_id:
            stmt = stmt.where(OrgCurrency.id != except_id)
        await self.execute(stmt.values(is_base_currency=False).execution_options(synchronize_session="fetch"))


class DenominationRepository(BaseRepository):
    async def list_for_currency(
        self, currency_id: UUID, *, accepted_only: bool = False
    ) -> List[Denomination]:
        stmt = select(Denomination).where(Denomination.org_currency_id == currency_id)
        if accepted_only:
            stmt = stmt.where(Denomination.accepted.is_(True))
        stmt = stmt.order_by(Denomination.value.asc())
        return list(await self.scalars(stmt))

    async def get(self, denomination_id: UUID) -> Optional[Denomination]:
        stmt = select(Denomination).where(Denomination.id == denomination_id)
        return await self.scalar_one_or_none(stmt)

    async def get_many(self, ids: Sequence[UUID]) -> Dict[UUID, Denomination]:
        if not ids:
            return {}
        stmt = select(Denomination).where(Denomination.id.in_(list(ids)))
        return {d.id: d for d in await self.scalars(stmt)}

    async def create(self, **values) -> Denomination:
        denomination = Denomination(**values)
        await self.add(denomination)
        await self.flush()
        return denomination
