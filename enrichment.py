"""Assemble the per-tick :class:`EnrichmentContext`.

Sources are fetched concurrently and each one is independently fault
tolerant: a timeout or error degrades that source to ``None``/empty and is
logged at WARNING.  The context is rebuilt from scratch every tick; caching
happens inside the individual fetchers.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

import numpy as np

from capabilities import EnrichmentProvider
from config import ScalpSettings
from fear_greed import get_fear_greed_index
from funding_rates import FundingRateResolver, get_funding_rate
from indicators import calculate_bollinger_bands, calculate_rsi
from llm_prompts import PriceChange, RegimePromptInput
from log_utils import setup_logger
from news_feed import NewsFetcher, get_headlines_for_symbol
from scalp_types import (
    Bar,
    EnrichmentContext,
    FearGreedData,
    FundingRateData,
    NewsItem,
    QuoteSnapshot,
    RegimeClassification,
    SentimentScore,
)
from signal_modifiers import ModifierInput

logger = setup_logger(__name__)

__all__ = ["EnrichmentGatherer", "build_regime_input", "modifier_input_for"]

T = TypeVar("T")


def build_regime_input(
    bars: Mapping[str, Sequence[Bar]],
    quotes: Mapping[str, QuoteSnapshot],
    settings: ScalpSettings,
    *,
    fear_greed: Optional[FearGreedData] = None,
    funding_rates: Sequence[FundingRateData] = (),
) -> RegimePromptInput:
    """Summarise the bar window across all symbols for the regime classifier."""

    prices: Dict[str, PriceChange] = {}
    rsis: List[float] = []
    bandwidths: List[float] = []
    for symbol in settings.symbols:
        symbol_bars = bars.get(symbol) or []
        if not symbol_bars:
            continue
        closes = [bar.c for bar in symbol_bars]
        quote = quotes.get(symbol)
        current = quote.mid_price if quote is not None else closes[-1]
        first = closes[0]
        change_pct = (current - first) / first * 100 if first > 0 else 0.0
        prices[symbol] = PriceChange(current=current, change_pct=change_pct)
        rsis.append(calculate_rsi(closes, settings.rsi_classify_period))
        bands = calculate_bollinger_bands(closes, settings.bb_period, settings.bb_multiplier)
        bandwidths.append(bands.bandwidth)

    return RegimePromptInput(
        prices=prices,
        fear_greed=fear_greed.value if fear_greed is not None else None,
        avg_rsi=float(np.mean(rsis)) if rsis else 50.0,
        avg_bandwidth=float(np.mean(bandwidths)) if bandwidths else 0.0,
        funding_rates={rate.symbol: rate.funding_rate for rate in funding_rates},
        window_label=f"{settings.bars_limit}x{settings.bars_timeframe}",
    )


def modifier_input_for(context: EnrichmentContext, symbol: str) -> ModifierInput:
    return ModifierInput(
        fear_greed=context.fear_greed.value if context.fear_greed is not None else None,
        funding_rate=get_funding_rate(context.funding_rates, symbol),
        sentiment=context.sentiments.get(symbol),
        regime=context.regime,
        regime_confidence=context.regime_confidence,
    )


class EnrichmentGatherer:
    """Collect fear & greed, funding, news sentiment and regime for one tick."""

    def __init__(
        self,
        settings: ScalpSettings,
        *,
        provider: Optional[EnrichmentProvider],
        news_fetcher: Optional[NewsFetcher],
        funding_resolver: FundingRateResolver,
        fear_greed_fetcher: Callable[[], Optional[FearGreedData]] = get_fear_greed_index,
        timeout: float = 20.0,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.news_fetcher = news_fetcher
        self.funding_resolver = funding_resolver
        self.fear_greed_fetcher = fear_greed_fetcher
        self.timeout = timeout

    async def _guard(self, name: str, awaitable: Awaitable[T], default: T) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Enrichment source %s timed out after %.1fs", name, self.timeout)
        except Exception as exc:
            logger.warning("Enrichment source %s failed: %s", name, exc)
        return default

    async def _fetch_news(self) -> Dict[str, List[NewsItem]]:
        if self.news_fetcher is None:
            return {}
        return await self.news_fetcher.fetch_all_news(self.settings.symbols)

    async def _sentiments(self, news: Mapping[str, Sequence[NewsItem]]) -> Dict[str, float]:
        if self.provider is None:
            return {}
        symbols = [s for s in self.settings.symbols if get_headlines_for_symbol(news, s)]
        results: List[Optional[SentimentScore]] = await asyncio.gather(
            *(
                self._guard(
                    f"sentiment[{symbol}]",
                    self.provider.analyze_sentiment(symbol, get_headlines_for_symbol(news, symbol)),
                    None,
                )
                for symbol in symbols
            )
        )
        return {result.symbol: result.score for result in results if result is not None}

    async def _regime(self, data: RegimePromptInput) -> Optional[RegimeClassification]:
        if self.provider is None or not data.prices:
            return None
        return await self.provider.classify_regime(data)

    async def build(
        self,
        bars: Mapping[str, Sequence[Bar]],
        quotes: Mapping[str, QuoteSnapshot],
    ) -> EnrichmentContext:
        fear_greed, funding_rates, news = await asyncio.gather(
            self._guard("fear-greed", asyncio.to_thread(self.fear_greed_fetcher), None),
            self._guard(
                "funding",
                asyncio.to_thread(self.funding_resolver.fetch_funding_rates, self.settings.symbols),
                [],
            ),
            self._guard("news", self._fetch_news(), {}),
        )

        regime_input = build_regime_input(
            bars, quotes, self.settings, fear_greed=fear_greed, funding_rates=funding_rates
        )
        sentiments, regime = await asyncio.gather(
            self._sentiments(news),
            self._guard("regime", self._regime(regime_input), None),
        )

        context = EnrichmentContext(
            fear_greed=fear_greed,
            funding_rates=list(funding_rates),
            sentiments=sentiments,
            regime=regime.regime if regime is not None else None,
            regime_confidence=regime.confidence if regime is not None else None,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        logger.debug(
            "Enrichment: F&G=%s funding=%d sentiments=%d regime=%s",
            fear_greed.value if fear_greed is not None else "N/A",
            len(context.funding_rates),
            len(sentiments),
            context.regime.value if context.regime is not None else "N/A",
        )
        return context
