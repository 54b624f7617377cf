"""Position lifecycle bookkeeping for scalp trades.

:class:`ScalpBook` is the single writer of :class:`~state_store.BotState`.
The tick loop owns one instance and passes it to every component that needs
to read or mutate positions, counters or trade timestamps.

Each position moves ``open -> closed`` exactly once.  Positions are opened
only from a broker fill and closed in full; there is no partial close and no
reopening.  Aggregate metrics are derived from the closed history whenever
they are requested.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from log_utils import setup_logger
from scalp_types import (
    DIRECTION_LONG,
    ClosedScalp,
    ExitReason,
    ScalpMetrics,
    ScalpPosition,
    ScalpSignalSnapshot,
    TradeJournalEntry,
)
from state_store import BotState

logger = setup_logger(__name__)

__all__ = ["ScalpBook", "epoch_ms", "utc_date"]

MAX_CLOSED_SCALPS = 500
MAX_JOURNAL_ENTRIES = 100
# Exit levels are rounded so that e.g. 100 * (1 + 0.003) compares equal to 100.3.
_PRICE_DECIMALS = 10


def epoch_ms() -> int:
    return int(time.time() * 1000)


def utc_date(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


class ScalpBook:
    """Open/closed scalp positions plus the counters the risk gate reads."""

    def __init__(
        self,
        state: Optional[BotState] = None,
        *,
        max_closed: int = MAX_CLOSED_SCALPS,
        max_journal: int = MAX_JOURNAL_ENTRIES,
    ) -> None:
        self.state = state if state is not None else BotState()
        self.max_closed = max(1, int(max_closed))
        self.max_journal = max(1, int(max_journal))

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    def open_scalps(self) -> List[ScalpPosition]:
        return list(self.state.open_scalps.values())

    def open_scalps_for(self, symbol: str) -> List[ScalpPosition]:
        return [p for p in self.state.open_scalps.values() if p.symbol == symbol]

    def get_open_scalp(self, position_id: str) -> Optional[ScalpPosition]:
        return self.state.open_scalps.get(position_id)

    def closed_scalps(self) -> List[ClosedScalp]:
        return list(self.state.closed_scalps)

    def signals(self) -> List[ScalpSignalSnapshot]:
        return list(self.state.signals)

    def journal(self) -> List[TradeJournalEntry]:
        return list(self.state.journal)

    @property
    def initial_capital(self) -> float:
        return self.state.initial_capital

    def set_initial_capital(self, equity: float) -> None:
        self.state.initial_capital = float(equity)

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------
    def open_scalp(
        self,
        symbol: str,
        *,
        fill_price: float,
        qty: float,
        notional: float,
        entry_score: float,
        take_profit_pct: float,
        stop_loss_pct: float,
        max_hold_ms: int,
        now: Optional[int] = None,
    ) -> ScalpPosition:
        """Record a filled long entry and return the new open position.

        Take-profit and stop-loss are anchored to ``fill_price`` so that entry
        slippage is reflected in the exit levels.
        """

        if fill_price <= 0 or qty <= 0:
            raise ValueError(f"Cannot open scalp for {symbol}: fill_price={fill_price}, qty={qty}")
        if take_profit_pct <= 0 or not 0 < stop_loss_pct < 1:
            raise ValueError(
                f"Cannot open scalp for {symbol}: tp={take_profit_pct}, sl={stop_loss_pct}"
            )
        timestamp = epoch_ms() if now is None else int(now)
        position = ScalpPosition(
            id=f"scalp_{uuid.uuid4().hex[:12]}",
            symbol=symbol,
            direction=DIRECTION_LONG,
            entry_price=fill_price,
            qty=qty,
            notional=notional,
            take_profit_price=round(fill_price * (1 + take_profit_pct), _PRICE_DECIMALS),
            stop_loss_price=round(fill_price * (1 - stop_loss_pct), _PRICE_DECIMALS),
            max_hold_until=timestamp + int(max_hold_ms),
            entry_score=entry_score,
            entry_time=timestamp,
        )
        self.state.open_scalps[position.id] = position
        count = self.increment_daily_scalp_count(timestamp)
        logger.info(
            "Scalp opened %s %s qty=%.8f @ %.6f (tp %.6f / sl %.6f, daily #%d)",
            position.id,
            symbol,
            qty,
            fill_price,
            position.take_profit_price,
            position.stop_loss_price,
            count,
        )
        return position

    def close_scalp(
        self,
        position_id: str,
        exit_price: float,
        reason: ExitReason | str,
        *,
        now: Optional[int] = None,
    ) -> Optional[ClosedScalp]:
        """Close ``position_id`` in full; returns ``None`` when the id is not open."""

        position = self.state.open_scalps.get(position_id)
        if position is None:
            logger.warning("close_scalp: no open scalp with id %s", position_id)
            return None
        timestamp = epoch_ms() if now is None else int(now)
        exit_time = max(timestamp, position.entry_time)
        reason_value = reason.value if isinstance(reason, ExitReason) else str(reason)
        pnl = (exit_price - position.entry_price) * position.qty
        closed = ClosedScalp(
            id=position.id,
            symbol=position.symbol,
            direction=position.direction,
            entry_price=position.entry_price,
            exit_price=exit_price,
            qty=position.qty,
            notional=position.notional,
            pnl=pnl,
            pnl_pct=(exit_price - position.entry_price) / position.entry_price,
            exit_reason=reason_value,
            entry_time=position.entry_time,
            exit_time=exit_time,
            duration_ms=exit_time - position.entry_time,
        )
        del self.state.open_scalps[position_id]
        history = self.state.closed_scalps
        history.append(closed)
        if len(history) > self.max_closed:
            del history[: len(history) - self.max_closed]
        logger.info(
            "Scalp closed %s %s (%s) pnl=%.4f (%.3f%%) after %.1fs",
            closed.id,
            closed.symbol,
            reason_value,
            pnl,
            closed.pnl_pct * 100,
            closed.duration_ms / 1000,
        )
        return closed

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------
    def increment_daily_scalp_count(self, now: Optional[int] = None) -> int:
        """Count one more entry for the current UTC date, resetting on rollover."""

        today = utc_date(epoch_ms() if now is None else int(now))
        if self.state.daily_scalp_date != today:
            self.state.daily_scalp_date = today
            self.state.daily_scalp_count = 0
        self.state.daily_scalp_count += 1
        return self.state.daily_scalp_count

    def daily_scalp_count(self, now: Optional[int] = None) -> int:
        today = utc_date(epoch_ms() if now is None else int(now))
        if self.state.daily_scalp_date != today:
            return 0
        return self.state.daily_scalp_count

    def record_trade(self, symbol: str, now: Optional[int] = None) -> None:
        self.state.last_trade_time[symbol] = epoch_ms() if now is None else int(now)

    def last_trade_time(self, symbol: str) -> Optional[int]:
        return self.state.last_trade_time.get(symbol)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def record_signals(self, snapshots: Iterable[ScalpSignalSnapshot]) -> None:
        self.state.signals = list(snapshots)

    def add_journal_entry(self, entry: TradeJournalEntry) -> None:
        journal = self.state.journal
        journal.append(entry)
        if len(journal) > self.max_journal:
            del journal[: len(journal) - self.max_journal]

    def get_scalp_metrics(self) -> ScalpMetrics:
        closed = self.state.closed_scalps
        if not closed:
            return ScalpMetrics()
        pnls = [item.pnl for item in closed]
        total = len(closed)
        wins = sum(1 for pnl in pnls if pnl > 0)
        total_pnl = sum(pnls)
        return ScalpMetrics(
            total_scalps=total,
            wins=wins,
            losses=total - wins,
            win_rate=wins / total,
            total_pnl=total_pnl,
            avg_pnl=total_pnl / total,
            avg_duration_ms=sum(item.duration_ms for item in closed) / total,
            best_pnl=max(pnls),
            worst_pnl=min(pnls),
        )
