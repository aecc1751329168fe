"""
Order quotes and margin arithmetic.

Everything here is pure: no database access, so routes and services can reuse
it and tests can exercise it directly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fxdesk_api.core.errors import BusinessRuleError

BASE_CURRENCY_TICKER = "CAD"
RATE_AND_MARGIN_DECIMAL_PLACES = 8
SERVICE_FEE_RATE = 0.02

CRYPTOCURRENCY = "CRYPTOCURRENCY"
FIAT = "FIAT"
METAL = "METAL"

_CRYPTO_TICKERS = {"BTC", "ETH", "LTC", "BCH", "XRP", "ADA", "DOT"}
_FIAT_TICKERS = {"CAD", "USD", "EUR", "GBP", "JPY", "AUD"}
_METAL_TICKERS = {"XAU", "XAG", "XPT", "XPD"}

_NETWORK_FEES = {"BTC": 0.0001, "ETH": 0.002, "LTC": 0.001}


@dataclass
class QuoteCurrency:
    """The subset of an org currency a quote needs."""
    ticker: str
    rate: float
    type_of: Optional[str] = None

    @classmethod
    def from_model(cls, currency: Any) -> "QuoteCurrency":
        return cls(ticker=currency.ticker, rate=float(currency.rate or 0), type_of=currency.type_of)


# PUBLIC_INTERFACE
def determine_currency_type_from_ticker(ticker: str) -> str:
    """Best-effort currency type for tickers without a currency record. Unknown tickers are FIAT."""
    t = (ticker or "").upper()
    if t in _CRYPTO_TICKERS:
        return CRYPTOCURRENCY
    if t in _METAL_TICKERS:
        return METAL
    if t in _FIAT_TICKERS:
        return FIAT
    return FIAT


# PUBLIC_INTERFACE
def estimate_network_fee(ticker: str) -> float:
    return _NETWORK_FEES.get((ticker or "").upper(), 0.0)


def _currency_type(currency: QuoteCurrency) -> str:
    if currency.type_of:
        return currency.type_of.upper()
    return determine_currency_type_from_ticker(currency.ticker)


# PUBLIC_INTERFACE
def compute_order_quote(
    currencies: Mapping[str, QuoteCurrency],
    inbound_ticker: str,
    outbound_ticker: str,
    inbound_sum: float,
    outbound_sum: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Price an order from org currency rates.

    Rates are expressed against the organization base currency, so the
    inbound→outbound rate is inbound.rate / outbound.rate. The service fee and
    margin are both 2% of the inbound sum; a network fee is only charged when
    the outbound currency is a cryptocurrency.

    Raises:
        BusinessRuleError: non-positive inbound sum or unknown ticker.
    """
    if inbound_sum is None or inbound_sum <= 0:
        raise BusinessRuleError("Invalid inbound sum")
    inbound_ticker = (inbound_ticker or "").upper()
    outbound_ticker = (outbound_ticker or "").upper()
    inbound = currencies.get(inbound_ticker)
    if inbound is None:
        raise BusinessRuleError(f"Unknown inbound currency: {inbound_ticker}")
    outbound = currencies.get(outbound_ticker)
    if outbound is None:
        raise BusinessRuleError(f"Unknown outbound currency: {outbound_ticker}")

    base_rate = inbound.rate / outbound.rate if outbound.rate else 1.0
    if outbound_sum is None or outbound_sum <= 0:
        outbound_sum = inbound_sum * base_rate

    inbound_type = _currency_type(inbound)
    outbound_type = _currency_type(outbound)
    fee = inbound_sum * SERVICE_FEE_RATE
    network_fee = estimate_network_fee(outbound_ticker) if outbound_type == CRYPTOCURRENCY else 0.0

    return {
        "inbound_ticker": inbound_ticker,
        "outbound_ticker": outbound_ticker,
        "inbound_sum": inbound_sum,
        "outbound_sum": outbound_sum,
        "inbound_type": inbound_type,
        "outbound_type": outbound_type,
        "fx_rate": base_rate,
        "rate_wo_fees": base_rate,
        "final_rate": base_rate * (1 + SERVICE_FEE_RATE),
        "final_rate_without_fees": base_rate,
        "margin": fee,
        "fee": fee,
        "network_fee": network_fee,
    }


# Margin calculator


def round_places(value: float, places: int = RATE_AND_MARGIN_DECIMAL_PLACES) -> float:
    return round(float(value), places)


def amount_decimal_places(currency_type: Optional[str]) -> int:
    """Crypto amounts keep 8 places, everything else 2."""
    return 8 if (currency_type or "").upper() == CRYPTOCURRENCY else 2


# PUBLIC_INTERFACE
def adjusted_sell_rate(rate: float, sell_margin_max: float) -> float:
    """Rate the desk sells at: spot marked up by the max sell margin (percent)."""
    return round_places(rate / (1 - sell_margin_max / 100))


# PUBLIC_INTERFACE
def adjusted_buy_rate(rate: float, buy_margin_max: float) -> float:
    """Rate the desk buys at: spot reduced by the max buy margin (percent)."""
    return round_places(rate * (1 - buy_margin_max / 100))


# PUBLIC_INTERFACE
def margin_percent(inbound_ticker: str, spot: float, adjusted: float) -> float:
    """
    Effective margin in percent for a base-currency trade.

    When the customer pays in the base currency the desk sells at `adjusted`
    above spot; otherwise it buys below spot.
    """
    if not spot or not adjusted:
        return 0.0
    if inbound_ticker == BASE_CURRENCY_TICKER:
        return round_places(100 * (1 - spot / adjusted))
    return round_places(100 * (1 - adjusted / spot))


# PUBLIC_INTERFACE
def final_rate(inbound_ticker: str, inbound_sum: float, outbound_sum: float) -> float:
    """Base-currency amount per unit of the other currency, fees included."""
    if not inbound_sum or not outbound_sum or inbound_sum <= 0 or outbound_sum <= 0:
        return 0.0
    if inbound_ticker == BASE_CURRENCY_TICKER:
        return round_places(inbound_sum / outbound_sum)
    return round_places(outbound_sum / inbound_sum)


# PUBLIC_INTERFACE
def final_rate_without_fees(
    inbound_ticker: str,
    inbound_sum: float,
    outbound_sum: float,
    service_fee: float = 0.0,
    network_fee: float = 0.0,
) -> float:
    """Like final_rate, with the fees added back to the base-currency side."""
    if not inbound_sum or not outbound_sum or inbound_sum <= 0 or outbound_sum <= 0:
        return 0.0
    total_fees = float(service_fee or 0) + float(network_fee or 0)
    if inbound_ticker == BASE_CURRENCY_TICKER:
        return round_places((inbound_sum + total_fees) / outbound_sum)
    return round_places((outbound_sum + total_fees) / inbound_sum)
