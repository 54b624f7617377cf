"""Weighted multi-indicator scoring for scalp entries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from config import ScalpSettings, indicator_weights
from indicators import (
    calculate_ema_cross_score,
    calculate_roc_score,
    calculate_rsi,
    calculate_rsi_score,
    calculate_spread_score,
    calculate_volume_spike_score,
    calculate_vwap_deviation_score,
)
from scalp_types import (
    DIRECTION_LONG,
    DIRECTION_NONE,
    Bar,
    IndicatorScore,
    QuoteSnapshot,
    ScalpSignal,
)

__all__ = ["generate_scalp_signal"]


def generate_scalp_signal(
    symbol: str,
    bars: Sequence[Bar],
    quote: QuoteSnapshot,
    vwap: Optional[float],
    settings: ScalpSettings,
) -> ScalpSignal:
    """Score ``symbol`` from its recent bars, live quote and VWAP.

    The aggregate score is the sum of each indicator's raw score multiplied by
    its configured weight.  Only long entries exist: the direction is
    ``"long"`` when the score reaches ``settings.entry_threshold`` and
    ``"none"`` otherwise.
    """

    closes = [bar.c for bar in bars]
    volumes = [bar.v for bar in bars]
    weights = indicator_weights(settings.weights)

    raw_scores = (
        ("ema-cross", calculate_ema_cross_score(closes, settings.ema_fast, settings.ema_slow)),
        ("rsi", calculate_rsi_score(calculate_rsi(closes, settings.rsi_period))),
        ("roc", calculate_roc_score(closes, settings.roc_period)),
        (
            "volume-spike",
            calculate_volume_spike_score(
                volumes,
                closes,
                settings.volume_avg_period,
                settings.volume_spike_multiplier,
            ),
        ),
        ("vwap-deviation", calculate_vwap_deviation_score(quote.mid_price, vwap)),
        ("spread", calculate_spread_score(quote.spread, quote.mid_price)),
    )
    indicators: List[IndicatorScore] = [
        IndicatorScore.build(name, raw, weights[name]) for name, raw in raw_scores
    ]
    score = sum(item.weighted for item in indicators)
    direction = DIRECTION_LONG if score >= settings.entry_threshold else DIRECTION_NONE

    return ScalpSignal(
        symbol=symbol,
        direction=direction,
        score=score,
        indicators=indicators,
        price=quote.mid_price,
        spread=quote.spread,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
