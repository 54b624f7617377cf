"""Shared data structures for the scalp engine.

Records that are persisted (positions, closed scalps, journal entries) carry
``to_dict``/``from_dict`` helpers so the JSON state file stays a plain
document.  Epoch timestamps are milliseconds.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

__all__ = [
    "DIRECTION_LONG",
    "DIRECTION_SHORT",
    "DIRECTION_NONE",
    "ExitReason",
    "MarketRegime",
    "Bar",
    "QuoteSnapshot",
    "PositionInfo",
    "OrderResult",
    "IndicatorScore",
    "ScalpSignal",
    "ScalpSignalSnapshot",
    "ScalpPosition",
    "ClosedScalp",
    "ScalpMetrics",
    "SignalModifiers",
    "FearGreedData",
    "FundingRateData",
    "NewsItem",
    "VwapData",
    "RegimeClassification",
    "SentimentScore",
    "EnrichmentContext",
    "TradeJournalEntry",
]

DIRECTION_LONG = "long"
DIRECTION_SHORT = "short"
DIRECTION_NONE = "none"


class ExitReason(str, Enum):
    TAKE_PROFIT = "take-profit"
    STOP_LOSS = "stop-loss"
    TIMEOUT = "timeout"
    REVERSAL = "reversal"


class MarketRegime(str, Enum):
    TRENDING_UP = "trending-up"
    TRENDING_DOWN = "trending-down"
    RANGE_BOUND = "range-bound"
    VOLATILE_EXPANSION = "volatile-expansion"
    VOLATILE_COMPRESSION = "volatile-compression"

    @classmethod
    def parse(cls, value: Any) -> Optional["MarketRegime"]:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Bar:
    """One OHLCV candle in Alpaca's compact field naming."""

    t: str
    o: float
    h: float
    l: float
    c: float
    v: float
    n: int = 0
    vw: float = 0.0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Bar":
        return cls(
            t=str(payload.get("t", "")),
            o=float(payload.get("o", 0.0)),
            h=float(payload.get("h", 0.0)),
            l=float(payload.get("l", 0.0)),
            c=float(payload.get("c", 0.0)),
            v=float(payload.get("v", 0.0)),
            n=int(payload.get("n", 0) or 0),
            vw=float(payload.get("vw", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class QuoteSnapshot:
    symbol: str
    bid: float
    ask: float
    spread: float
    mid_price: float
    timestamp: str

    @classmethod
    def from_bid_ask(cls, symbol: str, bid: float, ask: float, timestamp: str) -> "QuoteSnapshot":
        return cls(
            symbol=symbol,
            bid=bid,
            ask=ask,
            spread=ask - bid,
            mid_price=(bid + ask) / 2,
            timestamp=timestamp,
        )


@dataclass(frozen=True)
class PositionInfo:
    """Broker-side view of an open position."""

    symbol: str
    qty: float
    market_value: float
    current_price: float


@dataclass(frozen=True)
class OrderResult:
    """Fill details returned by the broker; fields stay ``None`` while pending."""

    order_id: str
    status: str
    filled_qty: Optional[float] = None
    filled_avg_price: Optional[float] = None


@dataclass(frozen=True)
class IndicatorScore:
    name: str
    raw: float
    weight: float
    weighted: float

    @classmethod
    def build(cls, name: str, raw: float, weight: float) -> "IndicatorScore":
        return cls(name=name, raw=raw, weight=weight, weighted=raw * weight)


@dataclass(frozen=True)
class ScalpSignal:
    symbol: str
    direction: str
    score: float
    indicators: List[IndicatorScore]
    price: float
    spread: float
    timestamp: str

    def indicator(self, name: str) -> Optional[IndicatorScore]:
        for item in self.indicators:
            if item.name == name:
                return item
        return None


@dataclass
class ScalpSignalSnapshot:
    """Dashboard-facing summary of one evaluated signal."""

    symbol: str
    price: float
    score: float
    direction: str
    spread: float
    indicators: Dict[str, float]
    timestamp: str

    @classmethod
    def from_signal(cls, signal: ScalpSignal) -> "ScalpSignalSnapshot":
        return cls(
            symbol=signal.symbol,
            price=signal.price,
            score=signal.score,
            direction=signal.direction,
            spread=signal.spread,
            indicators={item.name: item.raw for item in signal.indicators},
            timestamp=signal.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ScalpSignalSnapshot":
        return cls(
            symbol=str(payload["symbol"]),
            price=float(payload.get("price", 0.0)),
            score=float(payload.get("score", 0.0)),
            direction=str(payload.get("direction", DIRECTION_NONE)),
            spread=float(payload.get("spread", 0.0)),
            indicators={str(k): float(v) for k, v in dict(payload.get("indicators") or {}).items()},
            timestamp=str(payload.get("timestamp", "")),
        )


@dataclass(frozen=True)
class ScalpPosition:
    id: str
    symbol: str
    direction: str
    entry_price: float
    qty: float
    notional: float
    take_profit_price: float
    stop_loss_price: float
    max_hold_until: int
    entry_score: float
    entry_time: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ScalpPosition":
        return cls(
            id=str(payload["id"]),
            symbol=str(payload["symbol"]),
            direction=str(payload.get("direction", DIRECTION_LONG)),
            entry_price=float(payload["entry_price"]),
            qty=float(payload["qty"]),
            notional=float(payload.get("notional", 0.0)),
            take_profit_price=float(payload["take_profit_price"]),
            stop_loss_price=float(payload["stop_loss_price"]),
            max_hold_until=int(payload["max_hold_until"]),
            entry_score=float(payload.get("entry_score", 0.0)),
            entry_time=int(payload["entry_time"]),
        )


@dataclass(frozen=True)
class ClosedScalp:
    id: str
    symbol: str
    direction: str
    entry_price: float
    exit_price: float
    qty: float
    notional: float
    pnl: float
    pnl_pct: float
    exit_reason: str
    entry_time: int
    exit_time: int
    duration_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ClosedScalp":
        return cls(
            id=str(payload["id"]),
            symbol=str(payload["symbol"]),
            direction=str(payload.get("direction", DIRECTION_LONG)),
            entry_price=float(payload["entry_price"]),
            exit_price=float(payload["exit_price"]),
            qty=float(payload["qty"]),
            notional=float(payload.get("notional", 0.0)),
            pnl=float(payload["pnl"]),
            pnl_pct=float(payload["pnl_pct"]),
            exit_reason=str(payload["exit_reason"]),
            entry_time=int(payload["entry_time"]),
            exit_time=int(payload["exit_time"]),
            duration_ms=int(payload["duration_ms"]),
        )


@dataclass(frozen=True)
class ScalpMetrics:
    total_scalps: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    avg_pnl: float = 0.0
    avg_duration_ms: float = 0.0
    best_pnl: float = 0.0
    worst_pnl: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SignalModifiers:
    position_size_multiplier: float
    take_profit_pct: float
    stop_loss_pct: float


@dataclass(frozen=True)
class FearGreedData:
    value: int
    classification: str
    timestamp: str


@dataclass(frozen=True)
class FundingRateData:
    """Funding rate keyed by the tracked symbol (e.g. ``BTC/USD``)."""

    symbol: str
    funding_rate: float
    mark_price: float
    next_funding_time: str
    venue: str


@dataclass(frozen=True)
class NewsItem:
    headline: str
    summary: str
    source: str
    created_at: str
    symbols: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class VwapData:
    symbol: str
    vwap: float
    timestamp: str


@dataclass(frozen=True)
class RegimeClassification:
    regime: MarketRegime
    confidence: float
    reasoning: str


@dataclass(frozen=True)
class SentimentScore:
    symbol: str
    score: float
    summary: str
    headlines_analyzed: int


@dataclass(frozen=True)
class EnrichmentContext:
    fear_greed: Optional[FearGreedData] = None
    funding_rates: List[FundingRateData] = field(default_factory=list)
    sentiments: Dict[str, float] = field(default_factory=dict)
    regime: Optional[MarketRegime] = None
    regime_confidence: Optional[float] = None
    timestamp: str = ""


@dataclass(frozen=True)
class TradeJournalEntry:
    id: str
    timestamp: str
    symbol: str
    side: str
    price: float
    notional: float
    reason: str
    market_context: str
    llm_analysis: str
    regime: Optional[str] = None
    sentiment: Optional[float] = None
    fear_greed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TradeJournalEntry":
        sentiment = payload.get("sentiment")
        fear_greed = payload.get("fear_greed")
        return cls(
            id=str(payload["id"]),
            timestamp=str(payload.get("timestamp", "")),
            symbol=str(payload.get("symbol", "")),
            side=str(payload.get("side", "")),
            price=float(payload.get("price", 0.0)),
            notional=float(payload.get("notional", 0.0)),
            reason=str(payload.get("reason", "")),
            market_context=str(payload.get("market_context", "")),
            llm_analysis=str(payload.get("llm_analysis", "")),
            regime=payload.get("regime"),
            sentiment=float(sentiment) if sentiment is not None else None,
            fear_greed=int(fear_greed) if fear_greed is not None else None,
        )
