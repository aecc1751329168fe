import pytest

from fxdesk_api.core.errors import BusinessRuleError
from fxdesk_api.services import quotes
from fxdesk_api.services.quotes import QuoteCurrency, compute_order_quote

CURRENCIES = {
    "CAD": QuoteCurrency(ticker="CAD", rate=1.0, type_of="FIAT"),
    "USD": QuoteCurrency(ticker="USD", rate=0.5, type_of="FIAT"),
    "BTC": QuoteCurrency(ticker="BTC", rate=0.00001, type_of=None),
}


def test_quote_from_rates():
    quote = compute_order_quote(CURRENCIES, "CAD", "USD", 100)
    assert quote["fx_rate"] == pytest.approx(2.0)
    assert quote["outbound_sum"] == pytest.approx(200)
    assert quote["fee"] == pytest.approx(2.0)
    assert quote["margin"] == quote["fee"]
    assert quote["final_rate"] == pytest.approx(2.04)
    assert quote["network_fee"] == 0
    assert quote["inbound_type"] == "FIAT"


def test_tickers_are_matched_case_insensitively():
    quote = compute_order_quote(CURRENCIES, "cad", "Usd", 100)
    assert quote["inbound_ticker"] == "CAD"
    assert quote["outbound_ticker"] == "USD"
    assert quote["fx_rate"] == pytest.approx(2.0)
    with pytest.raises(BusinessRuleError, match="Unknown inbound currency: EUR"):
        compute_order_quote(CURRENCIES, "eur", "usd", 10)


def test_given_outbound_sum_is_kept():
    quote = compute_order_quote(CURRENCIES, "CAD", "USD", 100, outbound_sum=150)
    assert quote["outbound_sum"] == 150


def test_network_fee_only_for_crypto_outbound():
    quote = compute_order_quote(CURRENCIES, "CAD", "BTC", 100)
    assert quote["outbound_type"] == "CRYPTOCURRENCY"
    assert quote["network_fee"] == pytest.approx(0.0001)


def test_rejects_bad_input():
    with pytest.raises(BusinessRuleError, match="Invalid inbound sum"):
        compute_order_quote(CURRENCIES, "CAD", "USD", 0)
    with pytest.raises(BusinessRuleError, match="Unknown outbound currency: GBP"):
        compute_order_quote(CURRENCIES, "CAD", "GBP", 10)


def test_currency_type_from_ticker():
    assert quotes.determine_currency_type_from_ticker("eth") == "CRYPTOCURRENCY"
    assert quotes.determine_currency_type_from_ticker("XAU") == "METAL"
    assert quotes.determine_currency_type_from_ticker("ZZZ") == "FIAT"


def test_adjusted_rates_and_margin():
    sell = quotes.adjusted_sell_rate(1.0, 2)
    buy = quotes.adjusted_buy_rate(1.0, 2)
    assert sell == pytest.approx(1.02040816)
    assert buy == pytest.approx(0.98)
    assert quotes.margin_percent("CAD", 1.0, sell) == pytest.approx(2.0, abs=1e-6)
    assert quotes.margin_percent("USD", 1.0, buy) == pytest.approx(2.0, abs=1e-6)
    assert quotes.margin_percent("CAD", 0, sell) == 0.0


def test_final_rates():
    assert quotes.final_rate("CAD", 140, 100) == pytest.approx(1.4)
    assert quotes.final_rate("USD", 100, 140) == pytest.approx(1.4)
    assert quotes.final_rate("CAD", 0, 100) == 0.0
    assert quotes.final_rate_without_fees("CAD", 140, 100, service_fee=2, network_fee=1) == pytest.approx(1.43)


def test_amount_decimal_places():
    assert quotes.amount_decimal_places("cryptocurrency") == 8
    assert quotes.amount_decimal_places("FIAT") == 2
    assert quotes.amount_decimal_places(None) == 2
