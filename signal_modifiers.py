"""Translate enrichment context into bounded scalp parameter adjustments.

Rules are additive and applied in a fixed order (fear & greed, funding,
sentiment, regime).  The result is clamped once at the end, so however many
adverse signals coincide the output never leaves the configured bounds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from config import ModifierSettings, ScalpSettings
from scalp_types import MarketRegime, SignalModifiers

__all__ = ["ModifierInput", "calculate_scalp_modifiers"]


@dataclass(frozen=True)
class ModifierInput:
    """Per-symbol enrichment values; ``None`` means "no adjustment"."""

    fear_greed: Optional[float] = None
    funding_rate: Optional[float] = None
    sentiment: Optional[float] = None
    regime: Optional[MarketRegime] = None
    regime_confidence: Optional[float] = None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def calculate_scalp_modifiers(
    data: ModifierInput,
    scalp: ScalpSettings,
    modifiers: ModifierSettings,
) -> SignalModifiers:
    size = 1.0
    take_profit = scalp.take_profit_pct
    stop_loss = scalp.stop_loss_pct

    fg = modifiers.fear_greed
    if data.fear_greed is not None:
        if data.fear_greed < fg.extreme_fear_threshold:
            size += fg.size_boost_fear
            take_profit += fg.tp_boost_fear
        elif data.fear_greed > fg.extreme_greed_threshold:
            size += fg.size_reduce_greed
            stop_loss += fg.sl_tighten_greed

    # Negative funding means shorts pay longs.
    fd = modifiers.funding
    if data.funding_rate is not None:
        if data.funding_rate < fd.negative_threshold:
            size += fd.size_bullish_adjust
        elif data.funding_rate > fd.positive_threshold:
            size += fd.size_bearish_adjust

    st = modifiers.sentiment
    if data.sentiment is not None:
        if data.sentiment < st.negative_threshold:
            size += st.bearish_size_adjust
        elif data.sentiment > st.positive_threshold:
            size += st.bullish_size_adjust

    rg = modifiers.regime
    confidence = data.regime_confidence
    if data.regime is not None and confidence is not None and confidence > rg.min_confidence:
        if data.regime is MarketRegime.TRENDING_UP:
            size += rg.trending_up_size_adjust * confidence
            take_profit += rg.trending_up_tp_adjust * confidence
        elif data.regime is MarketRegime.TRENDING_DOWN:
            size += rg.trending_down_size_adjust * confidence
            stop_loss += rg.trending_down_sl_adjust * confidence
        elif data.regime is MarketRegime.VOLATILE_EXPANSION:
            stop_loss += rg.volatile_expansion_sl_adjust * confidence
        elif data.regime is MarketRegime.VOLATILE_COMPRESSION:
            size += rg.volatile_compression_size_adjust * confidence

    clamps = modifiers.clamps
    return SignalModifiers(
        position_size_multiplier=_clamp(size, clamps.size_min, clamps.size_max),
        take_profit_pct=_clamp(take_profit, clamps.take_profit_min, clamps.take_profit_max),
        stop_loss_pct=_clamp(stop_loss, clamps.stop_loss_min, clamps.stop_loss_max),
    )
