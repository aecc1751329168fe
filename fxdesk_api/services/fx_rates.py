"""
FX rate provider client and the app currency catalogue refresh.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import ConfigurationError, UpstreamServiceError
from fxdesk_api.core.settings import AppSettings, get_app_settings
from fxdesk_api.repositories.currencies import AppCurrencyRepository, OrgCurrencyRepository
from fxdesk_api.services.base import BaseService
from fxdesk_api.services.quotes import CRYPTOCURRENCY, FIAT, METAL

logger = logging.getLogger(__name__)

METAL_TICKERS = frozenset({"XAU", "XAG", "XPT", "XPD"})

# Active ISO-4217 codes; anything else the provider returns is treated as crypto.
ISO_4217_FIAT = frozenset(
    """
    AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
    BRL BSD BTN BWP BYN BZD CAD CDF CHF CLF CLP CNH CNY COP CRC CUC CUP CVE CZK
    DJF DKK DOP DZD EGP ERN ETB EUR FJD FKP GBP GEL GGP GHS GIP GMD GNF GTQ GYD
    HKD HNL HRK HTG HUF IDR ILS IMP INR IQD IRR ISK JEP JMD JOD JPY KES KGS KHR
    KMF KPW KRW KWD KYD KZT LAK LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP
    MRU MUR MVR MWK MXN MYR MZN NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR
    PLN PYG QAR RON RSD RUB RWF SAR SBD SCR SDG SEK SGD SHP SLE SLL SOS SRD SSP
    STD STN SVC SYP SZL THB TJS TMT TND TOP TRY TTD TWD TZS UAH UGX USD UYU UZS
    VES VND VUV WST XAF XCD XDR XOF XPF YER ZAR ZMW ZWL
    """.split()
)


# PUBLIC_INTERFACE
def classify_ticker(ticker: str) -> str:
    """METAL for precious metals, FIAT for ISO-4217 codes, CRYPTOCURRENCY otherwise."""
    t = ticker.upper()
    if t in METAL_TICKERS:
        return METAL
    if t in ISO_4217_FIAT:
        return FIAT
    return CRYPTOCURRENCY


# PUBLIC_INTERFACE
def normalize_rates(payload: Dict[str, Any], desired_base: str) -> Dict[str, float]:
    """
    Re-base provider rates onto `desired_base`.

    The provider quotes every ticker against its own base (typically USD):
    rate_in_desired = rate / rate[desired_base]. The desired base maps to 1.

    Raises:
        UpstreamServiceError: malformed payload or desired base missing.
    """
    if not isinstance(payload, dict) or not all(k in payload for k in ("rates", "base", "timestamp")):
        raise UpstreamServiceError("Invalid API response format")
    rates = payload["rates"]
    if not isinstance(rates, dict):
        raise UpstreamServiceError("Invalid API response format")

    base_rate = rates.get(desired_base)
    if payload["base"] == desired_base:
        base_rate = 1.0
    if not base_rate:
        raise UpstreamServiceError(f"Desired base {desired_base} not present in API response")

    normalized: Dict[str, float] = {}
    for ticker, rate in rates.items():
        try:
            normalized[ticker] = float(rate) / float(base_rate)
        except (TypeError, ValueError):
            logger.warning("Skipping non-numeric rate for %s: %r", ticker, rate)
    normalized[desired_base] = 1.0
    return normalized


class FxRatesClient:
    """Thin aiohttp client for an openexchangerates-compatible endpoint."""

    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or get_app_settings()

    # PUBLIC_INTERFACE
    async def fetch_latest(self) -> Dict[str, Any]:
        """GET the latest rates payload."""
        if not self.settings.FX_RATES_APP_ID:
            raise ConfigurationError("FX rates API key not configured")

        params = {"app_id": self.settings.FX_RATES_APP_ID, "show_alternative": "true"}
        timeout = aiohttp.ClientTimeout(total=self.settings.HTTP_TIMEOUT_SECONDS)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.settings.FX_RATES_API_URL, params=params) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise UpstreamServiceError(
                            f"Failed to refresh currencies: HTTP {response.status}",
                            details={"status": response.status, "body": body[:500]},
                        )
                    return await response.json(content_type=None)
        except aiohttp.ClientError as exc:
            raise UpstreamServiceError(f"Failed to refresh currencies: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise UpstreamServiceError("Failed to refresh currencies: timed out") from exc


class FxRateService(BaseService):
    """Refreshes the global catalogue and pushes catalogue rates into org currencies."""

    def __init__(self, session: AsyncSession, client: Optional[FxRatesClient] = None) -> None:
        super().__init__(session)
        self.client = client or FxRatesClient()
        self.app_repo = AppCurrencyRepository(session)

    # PUBLIC_INTERFACE
    async def refresh_app_currencies(self) -> Dict[str, Any]:
        """
        Fetch provider rates, normalize them to the configured base and upsert the catalogue.

        Returns:
            {"success", "total_currencies", "timestamp", "base_currency"}
        """
        base = self.client.settings.FX_BASE_CURRENCY
        payload = await self.client.fetch_latest()
        rates = normalize_rates(payload, base)
        now = datetime.now(tz=timezone.utc)

        rows: List[dict] = [
            {
                "ticker": ticker,
                "name": ticker,
                "base_rate_ticker": base,
                "type": classify_ticker(ticker),
                "rate": rate,
                "rate_updated_at": now,
            }
            for ticker, rate in sorted(rates.items())
        ]
        total = await self.app_repo.upsert_many(rows)
        await self.app_repo.commit()
        logger.info("Refreshed %d app currencies against %s", total, base)
        return {
            "success": True,
            "total_currencies": total,
            "timestamp": payload["timestamp"],
            "base_currency": base,
        }

    # PUBLIC_INTERFACE
    async def apply_to_org_currencies(self) -> int:
        """Copy catalogue rates onto the current organization's currencies by ticker."""
        org_repo = OrgCurrencyRepository(self.session)
        currencies = await org_repo.list()
        catalogue = await self.app_repo.rates_by_ticker([c.ticker for c in currencies])
        updated = 0
        for currency in currencies:
            app_currency = catalogue.get(currency.ticker)
            if app_currency is None:
                continue
            currency.rate = app_currency.rate
            currency.rate_updated_at = app_currency.rate_updated_at
            updated += 1
        await org_repo.commit()
        return updated
