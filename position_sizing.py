"""Score-proportional notional sizing for scalp entries."""

from __future__ import annotations

from config import RiskSettings, ScalpSettings

__all__ = ["calculate_scalp_size"]


def calculate_scalp_size(
    equity: float,
    score: float,
    size_multiplier: float,
    scalp: ScalpSettings,
    risk: RiskSettings,
) -> float:
    """Return the order notional in dollars, or 0 when too small to trade.

    A score at the entry threshold commits half of ``max_equity_per_scalp``;
    twice the threshold commits the full allowance.  The enrichment
    ``size_multiplier`` scales the result but never past the per-scalp cap.
    """

    if equity <= 0 or scalp.entry_threshold <= 0:
        return 0.0
    score_ratio = max(0.0, min(score / scalp.entry_threshold, 2.0))
    base_pct = risk.max_equity_per_scalp * (score_ratio / 2.0)
    notional = equity * base_pct * size_multiplier
    notional = min(notional, equity * risk.max_equity_per_scalp)
    if notional < risk.min_order_notional:
        return 0.0
    return notional
