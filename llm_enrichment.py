"""Groq-backed regime, sentiment and trade-journal enrichment.

Every method returns ``None`` instead of raising: a disabled LLM, a missing
API key, a timeout or an unparseable answer all mean "no enrichment" and the
engine carries on with its baseline parameters.
"""

from __future__ import annotations

import asyncio
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from llm_prompts import (
    JOURNAL_SYSTEM,
    REGIME_SYSTEM,
    SENTIMENT_SYSTEM,
    JournalPromptInput,
    RegimePromptInput,
    build_journal_prompt,
    build_regime_prompt,
    build_sentiment_prompt,
)
from llm_tasks import LLMTask, complete_json
from log_utils import setup_logger
from scalp_types import MarketRegime, RegimeClassification, SentimentScore, TradeJournalEntry
from ttl_cache import TtlCache

logger = setup_logger(__name__)

__all__ = ["LLMEnrichmentProvider"]

REGIME_CACHE_TTL_SECONDS = 30 * 60
SENTIMENT_CACHE_TTL_SECONDS = 15 * 60
_REGIME_CACHE_KEY = "regime"

JsonCompleter = Callable[[LLMTask, str, str], Optional[dict]]


def _bounded_float(value: Any, low: float, high: float) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return max(low, min(high, number))


class LLMEnrichmentProvider:
    """Optional LLM enrichment with per-result TTL caches."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        journal_enabled: bool = True,
        timeout: float = 20.0,
        completer: JsonCompleter = complete_json,
        regime_cache: Optional[TtlCache[RegimeClassification]] = None,
        sentiment_cache: Optional[TtlCache[SentimentScore]] = None,
    ) -> None:
        self.enabled = enabled
        self.journal_enabled = journal_enabled
        self.timeout = timeout
        self._completer = completer
        self.regime_cache: TtlCache[RegimeClassification] = regime_cache or TtlCache(REGIME_CACHE_TTL_SECONDS)
        self.sentiment_cache: TtlCache[SentimentScore] = sentiment_cache or TtlCache(SENTIMENT_CACHE_TTL_SECONDS)

    async def _complete(self, task: LLMTask, system: str, user: str) -> Optional[dict]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._completer, task, system, user),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("LLM %s request timed out after %.1fs", task.value, self.timeout)
        except Exception as exc:
            logger.warning("LLM %s request failed: %s", task.value, exc)
        return None

    async def classify_regime(self, data: RegimePromptInput) -> Optional[RegimeClassification]:
        if not self.enabled:
            return None
        cached = self.regime_cache.get(_REGIME_CACHE_KEY)
        if cached is not None:
            return cached

        result = await self._complete(LLMTask.REGIME, REGIME_SYSTEM, build_regime_prompt(data))
        if not result:
            return None
        regime = MarketRegime.parse(result.get("regime"))
        if regime is None:
            logger.warning("LLM returned invalid regime: %r", result.get("regime"))
            return None
        confidence = _bounded_float(result.get("confidence"), 0.0, 1.0)
        classification = RegimeClassification(
            regime=regime,
            confidence=confidence if confidence is not None else 0.0,
            reasoning=str(result.get("reasoning") or ""),
        )
        self.regime_cache.set(_REGIME_CACHE_KEY, classification)
        logger.info(
            "Regime: %s (confidence: %.0f%%)",
            classification.regime.value,
            classification.confidence * 100,
        )
        return classification

    async def analyze_sentiment(self, symbol: str, headlines: Sequence[str]) -> Optional[SentimentScore]:
        if not self.enabled or not headlines:
            return None
        cached = self.sentiment_cache.get(symbol)
        if cached is not None:
            return cached

        result = await self._complete(
            LLMTask.SENTIMENT, SENTIMENT_SYSTEM, build_sentiment_prompt(symbol, headlines)
        )
        if not result:
            return None
        score = _bounded_float(result.get("score"), -1.0, 1.0)
        if score is None:
            logger.warning("LLM sentiment for %s missing numeric score: %r", symbol, result)
            return None
        sentiment = SentimentScore(
            symbol=symbol,
            score=score,
            summary=str(result.get("summary") or ""),
            headlines_analyzed=len(headlines),
        )
        self.sentiment_cache.set(symbol, sentiment)
        logger.info("Sentiment [%s]: %.2f – %s", symbol, score, sentiment.summary)
        return sentiment

    async def generate_trade_journal(self, data: JournalPromptInput) -> Optional[TradeJournalEntry]:
        if not (self.enabled and self.journal_enabled):
            return None
        result = await self._complete(LLMTask.JOURNAL, JOURNAL_SYSTEM, build_journal_prompt(data))
        analysis = (result or {}).get("analysis") or "LLM analysis unavailable"
        fear_greed = data.fear_greed if data.fear_greed is not None else "N/A"
        return TradeJournalEntry(
            id=f"tj_{uuid.uuid4().hex[:12]}",
            timestamp=datetime.now(timezone.utc).isoformat(),
            symbol=data.symbol,
            side=data.side,
            price=data.price,
            notional=data.notional,
            reason=data.reason,
            market_context=f"RSI: {data.rsi:.1f}, BB: {data.bb_position}, F&G: {fear_greed}",
            llm_analysis=str(analysis),
            regime=data.regime,
            sentiment=data.sentiment,
            fear_greed=data.fear_greed,
        )
