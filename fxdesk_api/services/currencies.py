from __future__ import annotations

from typing import Any, Dict, List, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import ConflictError, NotFoundError
from fxdesk_api.db.models.currencies import Denomination, OrgCurrency
from fxdesk_api.repositories.currencies import DenominationRepository, OrgCurrencyRepository
from fxdesk_api.services.base import BaseService


class CurrencyService(BaseService):
    """Currencies traded by the current organization and their denominations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.currencies = OrgCurrencyRepository(session)
        self.denominations = DenominationRepository(session)

    # PUBLIC_INTERFACE
    async def get(self, currency_id: UUID) -> OrgCurrency:
        currency = await self.currencies.get(currency_id)
        if currency is None:
            raise NotFoundError("Currency not found")
        return currency

    async def _ensure_ticker_free(self, ticker: str, currency_id: UUID | None = None) -> None:
        existing = await self.currencies.get_by_ticker(ticker)
        if existing is not None and existing.id != currency_id:
            raise ConflictError("Currency with this ticker already exists")

    # PUBLIC_INTERFACE
    async def create(self, values: Dict[str, Any]) -> OrgCurrency:
        values = dict(values)
        values["ticker"] = values["ticker"].upper()
        await self._ensure_ticker_free(values["ticker"])
        if values.get("is_base_currency"):
            await self.currencies.clear_base_currency()
        currency = await self.currencies.create(**values)
        await self.currencies.commit()
        return currency

    # PUBLIC_INTERFACE
    async def update(self, currency_id: UUID, values: Dict[str, Any]) -> OrgCurrency:
        currency = await self.get(currency_id)
        values = dict(values)
        if values.get("ticker"):
            values["ticker"] = values["ticker"].upper()
            await self._ensure_ticker_free(values["ticker"], currency.id)
        if values.get("is_base_currency"):
            await self.currencies.clear_base_currency(except_id=currency.id)
        self.currencies.apply(currency, values)
        await self.currencies.commit()
        return currency

    # PUBLIC_INTERFACE
    async def delete(self, currency_id: UUID) -> None:
        currency = await self.get(currency_id)
        await self.currencies.remove(currency)
        await self.currencies.commit()

    # PUBLIC_INTERFACE
    async def set_base_currency(self, currency_id: UUID) -> OrgCurrency:
        """Make `currency_id` the only base currency of the organization."""
        currency = await self.get(currency_id)
        await self.currencies.clear_base_currency(except_id=currency.id)
        currency.is_base_currency = True
        await self.currencies.commit()
        return currency

    # PUBLIC_INTERFACE
    async def reorder(self, currency_ids: Sequence[UUID]) -> List[OrgCurrency]:
        currencies = {c.id: c for c in await self.currencies.list()}
        for position, currency_id in enumerate(currency_ids):
            currency = currencies.get(currency_id)
            if currency is None:
                raise NotFoundError(f"Currency not found: {currency_id}")
            currency.display_order = position
        await self.currencies.commit()
        return await self.currencies.list()

    # Denominations

    # PUBLIC_INTERFACE
    async def list_denominations(self, currency_id: UUID, accepted_only: bool = False) -> List[Denomination]:
        await self.get(currency_id)
        return await self.denominations.list_for_currency(currency_id, accepted_only=accepted_only)

    async def get_denomination(self, currency_id: UUID, denomination_id: UUID) -> Denomination:
        denomination = await self.denominations.get(denomination_id)
        if denomination is None or denomination.org_currency_id != currency_id:
            raise NotFoundError("Denomination not found")
        return denomination

    # PUBLIC_INTERFACE
    async def create_denomination(self, currency_id: UUID, values: Dict[str, Any]) -> Denomination:
        await self.get(currency_id)
        denomination = await self.denominations.create(org_currency_id=currency_id, **values)
        await self.denominations.commit()
        return denomination

    # PUBLIC_INTERFACE
    async def update_denomination(
        self, currency_id: UUID, denomination_id: UUID, values: Dict[str, Any]
    ) -> Denomination:
        denomination = await self.get_denomination(currency_id, denomination_id)
        self.denominations.apply(denomination, values)
        await self.denominations.commit()
        return denomination

    # PUBLIC_INTERFACE
    async def delete_denomination(self, currency_id: UUID, denomination_id: UUID) -> None:
        denomination = await self.get_denomination(currency_id, denomination_id)
        await self.denominations.remove(denomination)
        await self.denominations.commit()
