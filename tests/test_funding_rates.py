import requests

import funding_rates
from funding_rates import (
    BinanceFundingProvider,
    BybitFundingProvider,
    FundingRateProvider,
    FundingRateResolver,
    HyperliquidFundingProvider,
    get_funding_rate,
)
from scalp_types import FundingRateData

SYMBOLS = ["BTC/USD", "ETH/USD", "SOL/USD"]


class _Response:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class _FailingProvider(FundingRateProvider):
    name = "provider-a"

    def __init__(self):
        super().__init__(timeout=1)
        self.calls = 0

    def fetch(self, symbols):
        self.calls += 1
        raise requests.exceptions.ConnectionError("network unreachable")


class _StaticProvider(FundingRateProvider):
    name = "provider-b"

    def __init__(self, rates):
        super().__init__(timeout=1)
        self.rates = rates
        self.calls = 0

    def fetch(self, symbols):
        self.calls += 1
        return list(self.rates)


def _rates(venue):
    return [
        FundingRateData(symbol=s, funding_rate=0.0001 * (i + 1), mark_price=1.0, next_funding_time="", venue=venue)
        for i, s in enumerate(SYMBOLS)
    ]


def test_waterfall_caches_result_of_first_successful_provider():
    failing = _FailingProvider()
    fallback = _StaticProvider(_rates("provider-b"))
    never = _StaticProvider(_rates("provider-c"))
    resolver = FundingRateResolver([failing, fallback, never])

    rates = resolver.fetch_funding_rates(SYMBOLS)

    assert [r.venue for r in rates] == ["provider-b"] * 3
    assert resolver.cache.get("funding") == rates
    assert never.calls == 0

    assert resolver.fetch_funding_rates(SYMBOLS) == rates
    assert failing.calls == 1
    assert fallback.calls == 1


def test_empty_result_falls_through_to_next_provider():
    resolver = FundingRateResolver([_StaticProvider([]), _StaticProvider(_rates("second"))])
    assert resolver.fetch_funding_rates(SYMBOLS)[0].venue == "second"


def test_all_providers_failing_returns_empty_list():
    resolver = FundingRateResolver([_FailingProvider(), _FailingProvider()])
    assert resolver.fetch_funding_rates(SYMBOLS) == []
    assert resolver.cache.size() == 0


def test_get_funding_rate_lookup():
    rates = _rates("x")
    assert get_funding_rate(rates, "ETH/USD") == 0.0002
    assert get_funding_rate(rates, "DOGE/USD") is None


def test_binance_provider_maps_symbols(monkeypatch):
    payload = [
        {"symbol": "BTCUSDT", "lastFundingRate": "0.00010000", "markPrice": "65000.1", "nextFundingTime": 1700000000000},
        {"symbol": "XRPUSDT", "lastFundingRate": "0.0003", "markPrice": "0.5", "nextFundingTime": 1700000000000},
    ]
    monkeypatch.setattr(funding_rates.requests, "get", lambda *a, **k: _Response(payload))

    rates = BinanceFundingProvider(timeout=1).fetch(SYMBOLS)

    assert len(rates) == 1
    assert rates[0].symbol == "BTC/USD"
    assert rates[0].funding_rate == 0.0001
    assert rates[0].mark_price == 65000.1
    assert rates[0].venue == "binance"


def test_bybit_provider_rejects_error_payload(monkeypatch):
    monkeypatch.setattr(
        funding_rates.requests,
        "get",
        lambda *a, **k: _Response({"retCode": 10001, "retMsg": "params error"}),
    )
    resolver = FundingRateResolver([BybitFundingProvider(timeout=1)])
    assert resolver.fetch_funding_rates(SYMBOLS) == []


def test_bybit_provider_maps_symbols(monkeypatch):
    payload = {
        "retCode": 0,
        "result": {
            "list": [
                {"symbol": "ETHUSDT", "fundingRate": "-0.0002", "markPrice": "3000", "nextFundingTime": "1700000000000"},
                {"symbol": "SOLUSDT", "fundingRate": "", "markPrice": "100"},
            ]
        },
    }
    monkeypatch.setattr(funding_rates.requests, "get", lambda *a, **k: _Response(payload))

    rates = BybitFundingProvider(timeout=1).fetch(SYMBOLS)

    assert [(r.symbol, r.funding_rate, r.venue) for r in rates] == [("ETH/USD", -0.0002, "bybit")]


def test_hyperliquid_provider_maps_universe(monkeypatch):
    payload = [
        {"universe": [{"name": "BTC"}, {"name": "SOL"}, {"name": "PEPE"}]},
        [{"funding": "0.0000125", "markPx": "65000"}, {"funding": "-0.00002", "markPx": "150"}, {"funding": "0.1"}],
    ]
    monkeypatch.setattr(funding_rates.requests, "post", lambda *a, **k: _Response(payload))

    rates = HyperliquidFundingProvider(timeout=1).fetch(SYMBOLS)

    assert {r.symbol: r.funding_rate for r in rates} == {"BTC/USD": 0.0000125, "SOL/USD": -0.00002}
    assert all(r.venue == "hyperliquid" for r in rates)
