"""Turn accepted entry/exit decisions into broker orders and book updates.

Order errors propagate to the caller; the tick loop logs them per symbol so
that one failing order never blocks the remaining symbols.
"""

from __future__ import annotations

from typing import Optional

from capabilities import OrderBroker
from config import RiskSettings, ScalpSettings
from log_utils import setup_logger
from position_sizing import calculate_scalp_size
from scalp_book import ScalpBook, epoch_ms
from scalp_types import ClosedScalp, ExitReason, ScalpPosition, ScalpSignal, SignalModifiers

logger = setup_logger(__name__)

__all__ = ["execute_scalp_entry", "execute_scalp_exit"]


async def execute_scalp_entry(
    broker: OrderBroker,
    book: ScalpBook,
    signal: ScalpSignal,
    modifiers: SignalModifiers,
    equity: float,
    scalp: ScalpSettings,
    risk: RiskSettings,
    now: Optional[int] = None,
) -> Optional[ScalpPosition]:
    """Buy ``signal.symbol`` by notional and open a position from the fill.

    Returns ``None`` without placing an order when the sized notional is below
    the broker minimum.  Unfilled fields on the order fall back to the signal
    price and ``notional / price``.
    """

    notional = calculate_scalp_size(
        equity, signal.score, modifiers.position_size_multiplier, scalp, risk
    )
    if notional <= 0:
        logger.info(
            "Skipping %s entry: size below minimum (score %.3f, equity %.2f)",
            signal.symbol,
            signal.score,
            equity,
        )
        return None

    logger.info(
        "SCALP BUY %s $%.2f (score %.3f, size x%.2f, tp %.4f, sl %.4f)",
        signal.symbol,
        notional,
        signal.score,
        modifiers.position_size_multiplier,
        modifiers.take_profit_pct,
        modifiers.stop_loss_pct,
    )
    order = await broker.place_order(signal.symbol, "buy", notional=notional)

    timestamp = epoch_ms() if now is None else int(now)
    fill_price = order.filled_avg_price or signal.price
    qty = order.filled_qty or notional / fill_price
    if not order.filled_avg_price or not order.filled_qty:
        logger.warning(
            "Order %s for %s not filled yet (status %s); assuming %.8f @ %.6f",
            order.order_id,
            signal.symbol,
            order.status,
            qty,
            fill_price,
        )
    position = book.open_scalp(
        signal.symbol,
        fill_price=fill_price,
        qty=qty,
        notional=notional,
        entry_score=signal.score,
        take_profit_pct=modifiers.take_profit_pct,
        stop_loss_pct=modifiers.stop_loss_pct,
        max_hold_ms=scalp.max_hold_ms,
        now=timestamp,
    )
    book.record_trade(signal.symbol, timestamp)
    return position


async def execute_scalp_exit(
    broker: OrderBroker,
    book: ScalpBook,
    position: ScalpPosition,
    current_price: float,
    reason: ExitReason,
    now: Optional[int] = None,
) -> Optional[ClosedScalp]:
    """Sell the full quantity of ``position`` and close it in the book."""

    logger.info(
        "SCALP SELL %s qty=%.8f (%s) entry %.6f → %.6f",
        position.symbol,
        position.qty,
        reason.value,
        position.entry_price,
        current_price,
    )
    order = await broker.place_order(position.symbol, "sell", qty=position.qty)

    timestamp = epoch_ms() if now is None else int(now)
    exit_price = order.filled_avg_price or current_price
    closed = book.close_scalp(position.id, exit_price, reason, now=timestamp)
    book.record_trade(position.symbol, timestamp)
    return closed
