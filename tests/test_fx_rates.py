import asyncio

import pytest

from fxdesk_api.core.errors import ConfigurationError, UpstreamServiceError
from fxdesk_api.core.settings import AppSettings
from fxdesk_api.services.fx_rates import FxRatesClient, FxRateService, classify_ticker, normalize_rates

PAYLOAD = {"base": "USD", "timestamp": 1700000000, "rates": {"USD": 1.0, "CAD": 1.25, "EUR": 0.9, "BTC": 0.00002}}


def test_normalize_to_desired_base():
    rates = normalize_rates(PAYLOAD, "CAD")
    assert rates["CAD"] == 1.0
    assert rates["USD"] == pytest.approx(0.8)
    assert rates["EUR"] == pytest.approx(0.72)


def test_normalize_when_provider_base_matches():
    rates = normalize_rates(PAYLOAD, "USD")
    assert rates["USD"] == 1.0
    assert rates["CAD"] == pytest.approx(1.25)


def test_normalize_rejects_bad_payloads():
    with pytest.raises(UpstreamServiceError, match="Invalid API response format"):
        normalize_rates({"rates": {}}, "CAD")
    with pytest.raises(UpstreamServiceError, match="Desired base GBP not present"):
        normalize_rates(PAYLOAD, "GBP")


def test_classify_ticker():
    assert classify_ticker("cad") == "FIAT"
    assert classify_ticker("XAG") == "METAL"
    assert classify_ticker("DOGE") == "CRYPTOCURRENCY"


def test_fetch_requires_api_key():
    client = FxRatesClient(AppSettings(FX_RATES_APP_ID=None))
    with pytest.raises(ConfigurationError):
        asyncio.run(client.fetch_latest())


class StubClient:
    def __init__(self):
        self.settings = AppSettings(FX_BASE_CURRENCY="cad")

    async def fetch_latest(self):
        return PAYLOAD


class StubCatalogue:
    def __init__(self):
        self.rows = []
        self.committed = False

    async def upsert_many(self, rows):
        self.rows = rows
        return len(rows)

    async def commit(self):
        self.committed = True


def test_refresh_upserts_normalized_catalogue(fake_session):
    service = FxRateService(fake_session, client=StubClient())
    service.app_repo = StubCatalogue()

    result = asyncio.run(service.refresh_app_currencies())

    assert result == {"success": True, "total_currencies": 4, "timestamp": 1700000000, "base_currency": "CAD"}
    by_ticker = {row["ticker"]: row for row in service.app_repo.rows}
    assert by_ticker["CAD"]["rate"] == 1.0
    assert by_ticker["BTC"]["type"] == "CRYPTOCURRENCY"
    assert all(row["base_rate_ticker"] == "CAD" for row in service.app_repo.rows)
    assert service.app_repo.committed
