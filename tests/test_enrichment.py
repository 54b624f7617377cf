import asyncio

import pytest

from config import ScalpSettings
from enrichment import EnrichmentGatherer, build_regime_input, modifier_input_for
from funding_rates import FundingRateProvider, FundingRateResolver
from scalp_types import (
    Bar,
    EnrichmentContext,
    FearGreedData,
    FundingRateData,
    MarketRegime,
    NewsItem,
    QuoteSnapshot,
    RegimeClassification,
    SentimentScore,
)

SETTINGS = ScalpSettings(symbols=("BTC/USD", "ETH/USD"))


def _bars(start, step, count=30):
    return [
        Bar(t=str(i), o=start + step * i, h=start + step * i, l=start + step * i, c=start + step * i, v=1.0)
        for i in range(count)
    ]


class _Provider(FundingRateProvider):
    name = "static"

    def fetch(self, symbols):
        return [FundingRateData("BTC/USD", -0.0003, 65000.0, "", self.name)]


class _BrokenProvider(FundingRateProvider):
    name = "broken"

    def fetch(self, symbols):
        raise ConnectionError("offline")


class _News:
    async def fetch_all_news(self, symbols):
        return {
            "BTC/USD": [NewsItem("ETF inflows hit record", "", "src", "t")],
            "ETH/USD": [],
        }


class _LLM:
    def __init__(self, fail_regime=False):
        self.fail_regime = fail_regime
        self.sentiment_symbols = []
        self.regime_inputs = []

    async def analyze_sentiment(self, symbol, headlines):
        self.sentiment_symbols.append(symbol)
        return SentimentScore(symbol, 0.6, "bullish", len(headlines))

    async def classify_regime(self, data):
        self.regime_inputs.append(data)
        if self.fail_regime:
            raise RuntimeError("bad json")
        return RegimeClassification(MarketRegime.TRENDING_UP, 0.8, "up")


def _quotes():
    return {
        "BTC/USD": QuoteSnapshot.from_bid_ask("BTC/USD", 129.0, 129.0, "t"),
        "ETH/USD": QuoteSnapshot.from_bid_ask("ETH/USD", 50.0, 50.0, "t"),
    }


def test_build_assembles_all_sources():
    llm = _LLM()
    gatherer = EnrichmentGatherer(
        SETTINGS,
        provider=llm,
        news_fetcher=_News(),
        funding_resolver=FundingRateResolver([_Provider()]),
        fear_greed_fetcher=lambda: FearGreedData(18, "Extreme Fear", "t"),
        timeout=1.0,
    )
    bars = {"BTC/USD": _bars(100.0, 1.0), "ETH/USD": _bars(50.0, 0.0)}

    context = asyncio.run(gatherer.build(bars, _quotes()))

    assert context.fear_greed.value == 18
    assert context.sentiments == {"BTC/USD": 0.6}
    assert llm.sentiment_symbols == ["BTC/USD"]
    assert context.regime is MarketRegime.TRENDING_UP
    assert context.regime_confidence == 0.8
    regime_input = llm.regime_inputs[0]
    assert regime_input.fear_greed == 18
    assert regime_input.funding_rates == {"BTC/USD": -0.0003}
    assert regime_input.prices["BTC/USD"].change_pct == pytest.approx(29.0)

    mods = modifier_input_for(context, "BTC/USD")
    assert mods.fear_greed == 18
    assert mods.funding_rate == -0.0003
    assert mods.sentiment == 0.6
    assert mods.regime is MarketRegime.TRENDING_UP
    assert modifier_input_for(context, "ETH/USD").funding_rate is None


def test_failing_sources_degrade_independently():
    def broken_fear_greed():
        raise RuntimeError("alternative.me down")

    gatherer = EnrichmentGatherer(
        SETTINGS,
        provider=_LLM(fail_regime=True),
        news_fetcher=_News(),
        funding_resolver=FundingRateResolver([_BrokenProvider()]),
        fear_greed_fetcher=broken_fear_greed,
        timeout=1.0,
    )

    context = asyncio.run(gatherer.build({"BTC/USD": _bars(100.0, 1.0)}, _quotes()))

    assert context.fear_greed is None
    assert context.funding_rates == []
    assert context.regime is None
    assert context.regime_confidence is None
    assert context.sentiments == {"BTC/USD": 0.6}


def test_no_provider_means_no_llm_enrichment():
    gatherer = EnrichmentGatherer(
        SETTINGS,
        provider=None,
        news_fetcher=None,
        funding_resolver=FundingRateResolver([]),
        fear_greed_fetcher=lambda: None,
    )
    context = asyncio.run(gatherer.build({}, {}))
    assert context == EnrichmentContext(timestamp=context.timestamp)


def test_build_regime_input_averages_indicators():
    flat = {"BTC/USD": _bars(100.0, 0.0, 20), "ETH/USD": _bars(10.0, 0.0, 20)}
    data = build_regime_input(flat, {}, SETTINGS)
    assert data.avg_rsi == 50.0
    assert data.avg_bandwidth == 0.0
    assert data.prices["ETH/USD"].change_pct == 0.0
    assert data.window_label == "100x1Min"
