"""The scalp tick loop.

One tick:

1. fetch equity, broker positions, bars and quotes concurrently; any failure
   aborts the tick and is reported through :meth:`ScalpEngine.status`;
2. record the initial capital on the first tick and trip the daily loss
   pause when needed;
3. build the enrichment context and VWAPs, then score every symbol in the
   configured order;
4. evaluate exits for open scalps, then entries;
5. store the signal snapshots and persist the state.

Ticks never overlap: :meth:`ScalpEngine.run_forever` awaits each tick before
sleeping for the remainder of the interval.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from capabilities import OrderBroker, PriceFeed, StateStore
from config import AgentSettings
from enrichment import EnrichmentGatherer, modifier_input_for
from executor import execute_scalp_entry, execute_scalp_exit
from indicators import calculate_bollinger_bands, calculate_rsi
from journal import JournalQueue
from llm_prompts import JournalPromptInput
from log_utils import setup_logger
from risk_gate import (
    check_daily_loss_limit,
    check_scalp_entry,
    check_scalp_exit,
    is_paused,
    trip_daily_loss_pause,
)
from scalp_book import ScalpBook, epoch_ms
from scalp_signals import generate_scalp_signal
from scalp_types import (
    DIRECTION_LONG,
    Bar,
    ClosedScalp,
    EnrichmentContext,
    PositionInfo,
    QuoteSnapshot,
    ScalpPosition,
    ScalpSignal,
    ScalpSignalSnapshot,
)
from signal_modifiers import calculate_scalp_modifiers
from vwap import extract_all_vwaps

logger = setup_logger(__name__)

__all__ = ["ScalpEngine", "TickResult"]


@dataclass
class TickResult:
    timestamp: int
    signals: List[ScalpSignal] = field(default_factory=list)
    entries: List[ScalpPosition] = field(default_factory=list)
    exits: List[ClosedScalp] = field(default_factory=list)
    skipped: bool = False
    error: Optional[str] = None
    saved: bool = False


def _bb_position(price: float, closes: Sequence[float], period: int, multiplier: float) -> str:
    bands = calculate_bollinger_bands(closes, period, multiplier)
    if bands.middle <= 0:
        return "unknown"
    if price >= bands.upper:
        return "above upper band"
    if price <= bands.lower:
        return "below lower band"
    return "within bands"


class ScalpEngine:
    """Owns the :class:`ScalpBook` and drives one tick at a time."""

    def __init__(
        self,
        settings: AgentSettings,
        *,
        broker: OrderBroker,
        price_feed: PriceFeed,
        store: StateStore,
        book: Optional[ScalpBook] = None,
        gatherer: Optional[EnrichmentGatherer] = None,
        journal: Optional[JournalQueue] = None,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.settings = settings
        self.broker = broker
        self.price_feed = price_feed
        self.store = store
        self.book = book if book is not None else ScalpBook(store.load())
        self.gatherer = gatherer
        self.journal = journal
        self.clock = clock
        self.last_tick_at: Optional[int] = None
        self.last_error: Optional[str] = None
        self.tick_count = 0
        self._context = EnrichmentContext()
        self._running = False

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------
    async def _fetch_foundation(self):
        scalp = self.settings.scalp
        timeout = self.settings.runtime.http_timeout * 2
        return await asyncio.wait_for(
            asyncio.gather(
                self.broker.get_account_equity(),
                self.broker.get_open_positions(),
                self.price_feed.get_bars(scalp.symbols, scalp.bars_timeframe, scalp.bars_limit),
                self.price_feed.get_quote_snapshots(scalp.symbols),
            ),
            timeout=timeout,
        )

    async def _build_context(
        self, bars: Mapping[str, Sequence[Bar]], quotes: Mapping[str, QuoteSnapshot]
    ) -> EnrichmentContext:
        if self.gatherer is None:
            return EnrichmentContext()
        try:
            return await self.gatherer.build(bars, quotes)
        except Exception as exc:
            logger.warning("Enrichment failed, continuing with baseline parameters: %s", exc)
            return EnrichmentContext()

    def _score_symbols(
        self,
        bars: Mapping[str, Sequence[Bar]],
        quotes: Mapping[str, QuoteSnapshot],
    ) -> Dict[str, ScalpSignal]:
        scalp = self.settings.scalp
        vwaps = extract_all_vwaps(bars)
        signals: Dict[str, ScalpSignal] = {}
        for symbol in scalp.symbols:
            symbol_bars = bars.get(symbol) or []
            if len(symbol_bars) < scalp.min_bars:
                logger.warning("Insufficient bars for %s: %d < %d", symbol, len(symbol_bars), scalp.min_bars)
                continue
            quote = quotes.get(symbol)
            if quote is None:
                logger.warning("No quote for %s, skipping", symbol)
                continue
            vwap = vwaps.get(symbol)
            signal = generate_scalp_signal(
                symbol, symbol_bars, quote, vwap.vwap if vwap is not None else None, scalp
            )
            signals[symbol] = signal
            logger.info(
                "%s: %s | score %+.3f | price %.6f | spread %.6f",
                symbol,
                signal.direction.upper(),
                signal.score,
                signal.price,
                signal.spread,
            )
        return signals

    def _submit_journal(
        self,
        symbol: str,
        side: str,
        price: float,
        notional: float,
        reason: str,
        bars: Sequence[Bar],
    ) -> None:
        if self.journal is None:
            return
        scalp = self.settings.scalp
        closes = [bar.c for bar in bars]
        context = self._context
        self.journal.submit(
            JournalPromptInput(
                symbol=symbol,
                side=side,
                price=price,
                notional=notional,
                reason=reason,
                rsi=calculate_rsi(closes, scalp.rsi_classify_period),
                bb_position=_bb_position(price, closes, scalp.bb_period, scalp.bb_multiplier),
                fear_greed=context.fear_greed.value if context.fear_greed is not None else None,
                sentiment=context.sentiments.get(symbol),
                regime=context.regime.value if context.regime is not None else None,
                funding_rate=modifier_input_for(context, symbol).funding_rate,
            )
        )

    async def _process_exits(
        self,
        signals: Mapping[str, ScalpSignal],
        bars: Mapping[str, Sequence[Bar]],
        quotes: Mapping[str, QuoteSnapshot],
        now: int,
        result: TickResult,
    ) -> None:
        scalp = self.settings.scalp
        for symbol in scalp.symbols:
            positions = self.book.open_scalps_for(symbol)
            if not positions:
                continue
            quote = quotes.get(symbol)
            if quote is None:
                logger.warning("No quote for %s; cannot evaluate %d open scalp(s)", symbol, len(positions))
                continue
            price = quote.mid_price
            signal = signals.get(symbol)
            score = signal.score if signal is not None else 0.0
            for position in positions:
                reason = check_scalp_exit(position, price, score, scalp, now)
                if reason is None:
                    continue
                try:
                    closed = await execute_scalp_exit(self.broker, self.book, position, price, reason, now)
                except Exception as exc:
                    logger.error("Failed to exit scalp %s on %s: %s", position.id, symbol, exc)
                    continue
                if closed is None:
                    continue
                result.exits.append(closed)
                self._submit_journal(
                    symbol,
                    "sell",
                    closed.exit_price,
                    closed.exit_price * closed.qty,
                    f"Scalp exit: {closed.exit_reason} (pnl {closed.pnl:+.4f})",
                    bars.get(symbol) or [],
                )

    async def _process_entries(
        self,
        signals: Mapping[str, ScalpSignal],
        bars: Mapping[str, Sequence[Bar]],
        equity: float,
        now: int,
        result: TickResult,
    ) -> None:
        settings = self.settings
        if is_paused(self.book, now):
            if any(s.direction == DIRECTION_LONG for s in signals.values()):
                logger.info("Entries paused; skipping long signals this tick")
            return
        for symbol in settings.scalp.symbols:
            signal = signals.get(symbol)
            if signal is None or signal.direction != DIRECTION_LONG:
                continue
            check = check_scalp_entry(self.book, symbol, settings.risk, now)
            if not check.allowed:
                logger.debug("Entry for %s blocked: %s", symbol, check.reason)
                continue
            modifiers = calculate_scalp_modifiers(
                modifier_input_for(self._context, symbol), settings.scalp, settings.modifiers
            )
            try:
                position = await execute_scalp_entry(
                    self.broker, self.book, signal, modifiers, equity, settings.scalp, settings.risk, now
                )
            except Exception as exc:
                logger.error("Failed to enter scalp on %s: %s", symbol, exc)
                continue
            if position is None:
                continue
            result.entries.append(position)
            self._submit_journal(
                symbol,
                "buy",
                position.entry_price,
                position.notional,
                f"Scalp entry: score {signal.score:+.3f}",
                bars.get(symbol) or [],
            )

    def _log_broker_drift(self, positions: Sequence[PositionInfo]) -> None:
        held = {p.symbol for p in positions if p.qty > 0}
        for position in self.book.open_scalps():
            if position.symbol not in held:
                logger.warning("Open scalp %s on %s has no matching broker position", position.id, position.symbol)

    async def run_once(self, now: Optional[int] = None) -> TickResult:
        timestamp = self.clock() if now is None else int(now)
        result = TickResult(timestamp=timestamp)
        logger.info("--- Scalp tick ---")

        try:
            equity, positions, bars, quotes = await self._fetch_foundation()
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self.last_error = "foundational fetch timed out"
            logger.error("Tick skipped: %s", self.last_error)
            result.skipped, result.error = True, self.last_error
            return result
        except Exception as exc:
            self.last_error = f"{type(exc).__name__}: {exc}"
            logger.error("Tick skipped: foundational fetch failed: %s", exc)
            result.skipped, result.error = True, self.last_error
            return result

        book = self.book
        logger.info("Equity: $%.2f, broker positions: %d", equity, len(positions))
        if book.initial_capital <= 0:
            book.set_initial_capital(equity)
            logger.info("Initial capital recorded: $%.2f", equity)
        if not is_paused(book, timestamp) and check_daily_loss_limit(book, equity, self.settings.risk):
            trip_daily_loss_pause(book, self.settings.risk, timestamp)
        self._log_broker_drift(positions)

        self._context = await self._build_context(bars, quotes)
        signals = self._score_symbols(bars, quotes)
        result.signals = list(signals.values())

        await self._process_exits(signals, bars, quotes, timestamp, result)
        await self._process_entries(signals, bars, equity, timestamp, result)

        book.record_signals(ScalpSignalSnapshot.from_signal(s) for s in result.signals)
        result.saved = self.store.save(book.state)

        self.last_tick_at = timestamp
        self.last_error = None
        self.tick_count += 1
        logger.info(
            "--- Tick complete: %d signals, %d entries, %d exits, %d open ---",
            len(result.signals),
            len(result.entries),
            len(result.exits),
            len(book.open_scalps()),
        )
        return result

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        interval = self.settings.scalp.loop_interval_secs
        logger.info("Starting scalp loop (interval: %.0fs, symbols: %s)", interval, ", ".join(self.settings.scalp.symbols))
        self._running = True
        try:
            while not stop_event.is_set():
                started = time.monotonic()
                try:
                    await self.run_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    self.last_error = f"{type(exc).__name__}: {exc}"
                    logger.exception("Unexpected error in scalp tick")
                remaining = max(0.0, interval - (time.monotonic() - started))
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Scalp loop stopped")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def status(self, now: Optional[int] = None) -> Dict[str, Any]:
        timestamp = self.clock() if now is None else int(now)
        state = self.book.state
        return {
            "running": self._running,
            "mode": self.settings.runtime.bot_mode,
            "started_at": state.started_at,
            "last_tick_at": self.last_tick_at,
            "tick_count": self.tick_count,
            "error": self.last_error,
            "paused": is_paused(self.book, timestamp),
            "paused_until": state.paused_until,
            "initial_capital": state.initial_capital,
            "open_scalps": [p.to_dict() for p in self.book.open_scalps()],
            "daily_scalp_count": self.book.daily_scalp_count(timestamp),
            "metrics": self.book.get_scalp_metrics().to_dict(),
            "signals": [s.to_dict() for s in self.book.signals()],
        }
