"""Interfaces the scalp engine expects from its external collaborators.

The engine depends only on these protocols; the Alpaca, Groq and JSON-file
implementations are wired together in :mod:`agent`.  Tests substitute small
in-memory fakes.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence

from llm_prompts import RegimePromptInput
from scalp_types import (
    Bar,
    OrderResult,
    PositionInfo,
    QuoteSnapshot,
    RegimeClassification,
    SentimentScore,
)
from state_store import BotState

__all__ = ["OrderBroker", "PriceFeed", "EnrichmentProvider", "StateStore"]


class OrderBroker(Protocol):
    async def place_order(
        self,
        symbol: str,
        side: str,
        *,
        notional: Optional[float] = None,
        qty: Optional[float] = None,
    ) -> OrderResult: ...

    async def get_account_equity(self) -> float: ...

    async def get_open_positions(self) -> List[PositionInfo]: ...

    async def liquidate_all(self) -> None: ...


class PriceFeed(Protocol):
    async def get_bars(self, symbols: Sequence[str], timeframe: str, limit: int) -> Dict[str, List[Bar]]: ...

    async def get_quote_snapshots(self, symbols: Sequence[str]) -> Dict[str, QuoteSnapshot]: ...


class EnrichmentProvider(Protocol):
    """Optional LLM analysis; implementations return ``None`` rather than raise."""

    async def classify_regime(self, data: RegimePromptInput) -> Optional[RegimeClassification]: ...

    async def analyze_sentiment(self, symbol: str, headlines: Sequence[str]) -> Optional[SentimentScore]: ...


class StateStore(Protocol):
    def load(self) -> BotState: ...

    def save(self, state: BotState) -> bool: ...
