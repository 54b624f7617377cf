"""Deterministic risk and capacity checks for scalp entries and exits.

The checks read the :class:`~scalp_book.ScalpBook` snapshot passed in by the
tick loop.  Only :func:`trip_daily_loss_pause` and
:func:`update_high_water_mark` write to the book.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from config import RiskSettings, ScalpSettings
from log_utils import setup_logger
from scalp_book import ScalpBook, epoch_ms
from scalp_types import ExitReason, ScalpPosition

logger = setup_logger(__name__)

__all__ = [
    "RiskCheckResult",
    "check_cooldown",
    "check_daily_loss_limit",
    "trip_daily_loss_pause",
    "is_paused",
    "check_scalp_capacity",
    "check_scalp_entry",
    "check_scalp_exit",
    "update_high_water_mark",
    "check_trailing_stop",
]


@dataclass
class RiskCheckResult:
    """Outcome of an entry check; ``reason`` explains a rejection."""

    allowed: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> "RiskCheckResult":
        return cls(True, "")

    @classmethod
    def blocked(cls, reason: str) -> "RiskCheckResult":
        return cls(False, reason)


def _now(now: Optional[int]) -> int:
    return epoch_ms() if now is None else int(now)


def check_cooldown(book: ScalpBook, symbol: str, risk: RiskSettings, now: Optional[int] = None) -> bool:
    """Return ``True`` while ``symbol`` is still cooling down from its last trade."""

    last_trade = book.last_trade_time(symbol)
    if not last_trade:
        return False
    return _now(now) - last_trade < risk.cooldown_ms


def check_daily_loss_limit(book: ScalpBook, equity: float, risk: RiskSettings) -> bool:
    """Return ``True`` when equity has fallen ``daily_loss_limit_pct`` below initial capital."""

    initial = book.initial_capital
    if initial <= 0:
        return False
    loss_pct = (initial - equity) / initial
    return loss_pct >= risk.daily_loss_limit_pct


def trip_daily_loss_pause(book: ScalpBook, risk: RiskSettings, now: Optional[int] = None) -> int:
    """Pause new entries for ``daily_loss_pause_ms`` and return the resume time."""

    resume_at = _now(now) + risk.daily_loss_pause_ms
    book.state.paused_until = resume_at
    logger.warning(
        "Daily loss limit breached – pausing entries for %.1f hours",
        risk.daily_loss_pause_ms / 3_600_000,
    )
    return resume_at


def is_paused(book: ScalpBook, now: Optional[int] = None) -> bool:
    state = book.state
    if state.paused:
        return True
    return bool(state.paused_until and _now(now) < state.paused_until)


def check_scalp_capacity(
    book: ScalpBook, symbol: str, risk: RiskSettings, now: Optional[int] = None
) -> RiskCheckResult:
    open_count = len(book.open_scalps())
    if open_count >= risk.max_open_scalps:
        return RiskCheckResult.blocked(f"max open scalps reached ({open_count}/{risk.max_open_scalps})")
    per_symbol = len(book.open_scalps_for(symbol))
    if per_symbol >= risk.max_per_symbol:
        return RiskCheckResult.blocked(f"max scalps for {symbol} reached ({per_symbol}/{risk.max_per_symbol})")
    daily = book.daily_scalp_count(_now(now))
    if daily >= risk.daily_max_scalps:
        return RiskCheckResult.blocked(f"daily scalp cap reached ({daily}/{risk.daily_max_scalps})")
    return RiskCheckResult.ok()


def check_scalp_entry(
    book: ScalpBook, symbol: str, risk: RiskSettings, now: Optional[int] = None
) -> RiskCheckResult:
    """Combine pause, cooldown and capacity checks for a new entry on ``symbol``."""

    timestamp = _now(now)
    if is_paused(book, timestamp):
        return RiskCheckResult.blocked("entries paused")
    if check_cooldown(book, symbol, risk, timestamp):
        return RiskCheckResult.blocked(f"cooldown active for {symbol}")
    return check_scalp_capacity(book, symbol, risk, timestamp)


def check_scalp_exit(
    position: ScalpPosition,
    current_price: float,
    current_score: float,
    scalp: ScalpSettings,
    now: Optional[int] = None,
) -> Optional[ExitReason]:
    """Return the exit reason for ``position`` or ``None`` to keep holding.

    Reasons are evaluated in strict priority order: take-profit, stop-loss,
    timeout, reversal.  The first match wins.
    """

    if current_price >= position.take_profit_price:
        return ExitReason.TAKE_PROFIT
    if current_price <= position.stop_loss_price:
        return ExitReason.STOP_LOSS
    if _now(now) >= position.max_hold_until:
        return ExitReason.TIMEOUT
    if current_score <= scalp.exit_reversal_threshold:
        return ExitReason.REVERSAL
    return None


def update_high_water_mark(book: ScalpBook, symbol: str, price: float) -> float:
    marks = book.state.high_water_marks
    current = marks.get(symbol, 0.0)
    if price > current:
        marks[symbol] = price
        return price
    return current


def check_trailing_stop(
    book: ScalpBook,
    symbol: str,
    current_price: float,
    risk: RiskSettings,
    stop_pct: Optional[float] = None,
) -> bool:
    """Return ``True`` once price has retraced ``stop_pct`` from its high-water mark."""

    high_water = book.state.high_water_marks.get(symbol)
    if not high_water or high_water <= 0:
        return False
    drawdown = (high_water - current_price) / high_water
    return drawdown >= (risk.trailing_stop_pct if stop_pct is None else stop_pct)
