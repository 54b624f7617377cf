"""System prompts and prompt builders for the LLM enrichment tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

__all__ = [
    "SENTIMENT_SYSTEM",
    "REGIME_SYSTEM",
    "JOURNAL_SYSTEM",
    "PriceChange",
    "RegimePromptInput",
    "JournalPromptInput",
    "build_sentiment_prompt",
    "build_regime_prompt",
    "build_journal_prompt",
]

SENTIMENT_SYSTEM = """You are a crypto market sentiment analyzer. Read the news headlines and return a JSON object with your assessment. Be concise and precise.

Output ONLY valid JSON with this exact structure:
{
  "score": <number from -1.0 to 1.0>,
  "summary": "<one sentence summary>"
}

Score guide:
- -1.0: Extremely bearish (regulatory crackdown, exchange collapse, major hack)
- -0.5: Moderately bearish (whale selling, negative earnings, FUD)
- 0.0: Neutral (routine updates, mixed signals)
- +0.5: Moderately bullish (adoption news, positive regulation, partnerships)
- +1.0: Extremely bullish (ETF approval, major institutional buy, breakthrough tech)"""

REGIME_SYSTEM = """You are a crypto market regime classifier. Classify the current market regime from the market data provided. Be precise and data-driven.

Output ONLY valid JSON with this exact structure:
{
  "regime": "<one of: trending-up, trending-down, range-bound, volatile-expansion, volatile-compression>",
  "confidence": <number from 0.0 to 1.0>,
  "reasoning": "<two sentence explanation>"
}

Regime definitions:
- trending-up: Sustained higher highs and higher lows, RSI above 50, positive momentum
- trending-down: Sustained lower highs and lower lows, RSI below 50, negative momentum
- range-bound: Price oscillating within support/resistance, RSI near 50
- volatile-expansion: Bollinger bandwidth expanding, large candles, high volume
- volatile-compression: Bollinger bandwidth contracting, small candles, low volume (often precedes a breakout)"""

JOURNAL_SYSTEM = """You are a trade journal assistant for a crypto scalping bot. After each trade, write a brief analytical journal entry. Be concise and insightful.

Output ONLY valid JSON with this exact structure:
{
  "analysis": "<2-3 sentence analysis of why this trade was executed and the market context>"
}"""


@dataclass(frozen=True)
class PriceChange:
    current: float
    change_pct: float


@dataclass(frozen=True)
class RegimePromptInput:
    prices: Dict[str, PriceChange] = field(default_factory=dict)
    fear_greed: Optional[int] = None
    avg_rsi: float = 50.0
    avg_bandwidth: float = 0.0
    funding_rates: Dict[str, float] = field(default_factory=dict)
    window_label: str = "100m"


@dataclass(frozen=True)
class JournalPromptInput:
    symbol: str
    side: str
    price: float
    notional: float
    reason: str
    rsi: float
    bb_position: str
    fear_greed: Optional[int] = None
    sentiment: Optional[float] = None
    regime: Optional[str] = None
    funding_rate: Optional[float] = None


def build_sentiment_prompt(symbol: str, headlines: Sequence[str]) -> str:
    lines: List[str] = [f"{idx}. {headline}" for idx, headline in enumerate(headlines, start=1)]
    return (
        f"Analyze the sentiment of these recent {symbol} headlines:\n\n"
        + "\n".join(lines)
        + "\n\nReturn your JSON assessment."
    )


def build_regime_prompt(data: RegimePromptInput) -> str:
    price_lines = "\n".join(
        f"  {symbol}: ${change.current:.2f} ({change.change_pct:+.2f}%)"
        for symbol, change in data.prices.items()
    )
    funding_lines = "\n".join(
        f"  {symbol}: {rate * 100:.4f}%" for symbol, rate in data.funding_rates.items()
    )
    fear_greed = data.fear_greed if data.fear_greed is not None else "N/A"
    return (
        "Current market data:\n\n"
        f"Prices ({data.window_label} change):\n{price_lines}\n\n"
        f"Fear & Greed Index: {fear_greed}\n"
        f"Average RSI across symbols: {data.avg_rsi:.1f}\n"
        f"Average Bollinger Bandwidth: {data.avg_bandwidth:.4f}\n\n"
        f"Funding Rates:\n{funding_lines or '  N/A'}\n\n"
        "Classify the current market regime."
    )


def _fmt_optional(value: Optional[float], fmt: str) -> str:
    return "N/A" if value is None else format(value, fmt)


def build_journal_prompt(data: JournalPromptInput) -> str:
    funding = "N/A" if data.funding_rate is None else f"{data.funding_rate * 100:.4f}%"
    return (
        "Trade executed:\n"
        f"  Symbol: {data.symbol}\n"
        f"  Side: {data.side.upper()}\n"
        f"  Price: ${data.price:.2f}\n"
        f"  Notional: ${data.notional:.2f}\n"
        f"  Signal Reason: {data.reason}\n"
        f"  RSI: {data.rsi:.1f}\n"
        f"  BB Position: {data.bb_position}\n"
        f"  Fear & Greed: {data.fear_greed if data.fear_greed is not None else 'N/A'}\n"
        f"  Sentiment Score: {_fmt_optional(data.sentiment, '.2f')}\n"
        f"  Market Regime: {data.regime or 'N/A'}\n"
        f"  Funding Rate: {funding}\n\n"
        "Write a brief journal entry analyzing this trade."
    )
