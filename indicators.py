"""
Technical indicators for the one-minute scalp strategy.

Every ``*_score`` helper maps its indicator onto a signed scale in
``[-1, 1]`` where positive values are bullish.  The functions are pure: they
accept plain sequences of floats (lists, NumPy arrays or pandas Series) and
never mutate their input.

Functions
---------

* ``calculate_bollinger_bands(closes, period, multiplier)`` – SMA with a
  population standard deviation envelope and relative bandwidth.
* ``calculate_rsi(closes, period)`` – Wilder's relative strength index.
* ``calculate_ema_cross_score(closes, fast, slow)`` – fast/slow EMA crossover.
* ``calculate_roc_score(closes, period)`` – rate of change, ±0.5% → ±1.
* ``calculate_volume_spike_score(volumes, closes, avg_period, spike_multiplier)``
  – volume surge signed by the latest price move.
* ``calculate_vwap_deviation_score(price, vwap)`` – ±0.3% from VWAP → ∓1.
* ``calculate_rsi_score(rsi)`` – oversold / overbought mapping.
* ``calculate_spread_score(spread, mid_price)`` – bid/ask tightness.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd
from ta.trend import EMAIndicator
from ta.volatility import BollingerBands as _TaBollingerBands

__all__ = [
    "BollingerBands",
    "calculate_bollinger_bands",
    "calculate_rsi",
    "calculate_ema",
    "calculate_ema_cross_score",
    "calculate_roc_score",
    "calculate_volume_spike_score",
    "calculate_vwap_deviation_score",
    "calculate_rsi_score",
    "calculate_spread_score",
]

Numeric = Union[pd.Series, np.ndarray, Iterable[float]]

# A fresh crossover scores full strength; an established trend is damped.
_TREND_DAMPING = 0.7
_ROC_FULL_SCALE_PCT = 0.5
_VWAP_FULL_SCALE_PCT = 0.3
_SPREAD_TIGHT_PCT = 0.01
_SPREAD_WIDE_PCT = 0.05
_RSI_OVERSOLD = 30.0
_RSI_OVERBOUGHT = 70.0


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    bandwidth: float


_ZERO_BAND = BollingerBands(upper=0.0, middle=0.0, lower=0.0, bandwidth=0.0)


def _clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _as_array(data: Numeric) -> np.ndarray:
    if isinstance(data, pd.Series):
        return data.to_numpy(dtype=float)
    if isinstance(data, np.ndarray):
        return data.astype(float)
    return np.asarray(list(data), dtype=float)


def calculate_bollinger_bands(
    closes: Numeric, period: int = 20, multiplier: float = 2.0
) -> BollingerBands:
    """Return Bollinger Bands over the last ``period`` closes.

    Parameters
    ----------
    closes : sequence of float
        Chronological close prices.
    period : int
        Lookback window for the moving average.
    multiplier : float
        Number of population standard deviations for the envelope.

    Returns
    -------
    BollingerBands
        A zero band when fewer than ``period`` closes are available.
        ``bandwidth`` is ``(upper - lower) / middle`` and 0 when the middle
        band is not positive.
    """

    values = _as_array(closes)
    if period <= 0 or len(values) < period:
        return _ZERO_BAND
    window = pd.Series(values[-period:])
    bands = _TaBollingerBands(window, window=period, window_dev=multiplier)
    middle = float(bands.bollinger_mavg().iloc[-1])
    upper = float(bands.bollinger_hband().iloc[-1])
    lower = float(bands.bollinger_lband().iloc[-1])
    bandwidth = (upper - lower) / middle if middle > 0 else 0.0
    return BollingerBands(upper=upper, middle=middle, lower=lower, bandwidth=bandwidth)


def calculate_rsi(closes: Numeric, period: int = 14) -> float:
    """Wilder's RSI in ``[0, 100]``.

    The first average gain/loss is the simple mean of the first ``period``
    deltas; later deltas are folded in with Wilder smoothing.  Returns 50 with
    insufficient history or a completely flat window, and 100 when the window
    contains gains but no losses.
    """

    values = _as_array(closes)
    if period <= 0 or len(values) < period + 1:
        return 50.0
    deltas = np.diff(values)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + float(gain)) / period
        avg_loss = (avg_loss * (period - 1) + float(loss)) / period

    if avg_loss == 0:
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_ema(values: Numeric, period: int) -> pd.Series:
    """Exponential moving average with ``alpha = 2 / (period + 1)``."""

    series = pd.Series(_as_array(values))
    return EMAIndicator(series, window=period).ema_indicator()


def calculate_ema_cross_score(closes: Numeric, fast: int = 8, slow: int = 21) -> float:
    """Score the fast/slow EMA relationship.

    A sign flip of ``(fast - slow) / slow`` between the previous and the
    current bar is a fresh crossover and scores ±1.  Otherwise the existing
    trend scores ``sign(gap) * min(|gap| * 100, 1) * 0.7``.
    """

    values = _as_array(closes)
    if fast <= 0 or slow <= 0 or len(values) < slow + 1:
        return 0.0
    fast_ema = calculate_ema(values, fast)
    slow_ema = calculate_ema(values, slow)
    slow_now, slow_prev = float(slow_ema.iloc[-1]), float(slow_ema.iloc[-2])
    if not (math.isfinite(slow_now) and math.isfinite(slow_prev)) or slow_now == 0 or slow_prev == 0:
        return 0.0
    gap_now = (float(fast_ema.iloc[-1]) - slow_now) / slow_now
    gap_prev = (float(fast_ema.iloc[-2]) - slow_prev) / slow_prev
    if not (math.isfinite(gap_now) and math.isfinite(gap_prev)):
        return 0.0

    if gap_prev <= 0 < gap_now:
        return 1.0
    if gap_prev >= 0 > gap_now:
        return -1.0
    if gap_now == 0:
        return 0.0
    sign = 1.0 if gap_now > 0 else -1.0
    return sign * min(abs(gap_now) * 100.0, 1.0) * _TREND_DAMPING


def calculate_roc_score(closes: Numeric, period: int = 5) -> float:
    """Rate of change over ``period`` bars; ±0.5% maps to ±1."""

    values = _as_array(closes)
    if period <= 0 or len(values) < period + 1:
        return 0.0
    base = float(values[-1 - period])
    if base <= 0:
        return 0.0
    pct = (float(values[-1]) - base) / base * 100.0
    return _clamp(pct / _ROC_FULL_SCALE_PCT)


def calculate_volume_spike_score(
    volumes: Numeric,
    closes: Numeric,
    avg_period: int = 20,
    spike_multiplier: float = 2.0,
) -> float:
    """Score a volume surge on the latest bar.

    The latest volume is compared with the average of the ``avg_period`` bars
    before it.  Below ``spike_multiplier`` times the average the score is 0.
    Above it the intensity grows linearly from 1x to ``spike_multiplier``x
    (capped at 1) and takes the sign of the latest close-to-close move.
    """

    vols = _as_array(volumes)
    prices = _as_array(closes)
    if avg_period <= 0 or len(vols) < avg_period + 1 or len(prices) < 2:
        return 0.0
    avg_volume = float(vols[-avg_period - 1 : -1].mean())
    if avg_volume <= 0:
        return 0.0
    ratio = float(vols[-1]) / avg_volume
    if ratio < spike_multiplier:
        return 0.0
    price_delta = float(prices[-1]) - float(prices[-2])
    if price_delta == 0:
        return 0.0
    if spike_multiplier > 1:
        intensity = min((ratio - 1.0) / (spike_multiplier - 1.0), 1.0)
    else:
        intensity = 1.0
    return intensity if price_delta > 0 else -intensity


def calculate_vwap_deviation_score(price: float, vwap: Optional[float]) -> float:
    """Price below VWAP is bullish; ±0.3% deviation maps to ∓1."""

    if vwap is None or not math.isfinite(vwap) or vwap <= 0 or not math.isfinite(price):
        return 0.0
    deviation_pct = (price - vwap) / vwap * 100.0
    return _clamp(-deviation_pct / _VWAP_FULL_SCALE_PCT)


def calculate_rsi_score(rsi: float) -> float:
    if rsi <= _RSI_OVERSOLD:
        return _clamp((_RSI_OVERSOLD - rsi) / _RSI_OVERSOLD, 0.0, 1.0)
    if rsi >= _RSI_OVERBOUGHT:
        return _clamp(-(rsi - _RSI_OVERBOUGHT) / (100.0 - _RSI_OVERBOUGHT), -1.0, 0.0)
    return 0.0


def calculate_spread_score(spread: float, mid_price: float) -> float:
    """Tight spreads (<=0.01% of mid) score +1, wide ones (>=0.05%) score -1."""

    if mid_price <= 0 or not math.isfinite(spread):
        return 0.0
    spread_pct = spread / mid_price * 100.0
    if spread_pct <= _SPREAD_TIGHT_PCT:
        return 1.0
    if spread_pct >= _SPREAD_WIDE_PCT:
        return -1.0
    position = (spread_pct - _SPREAD_TIGHT_PCT) / (_SPREAD_WIDE_PCT - _SPREAD_TIGHT_PCT)
    return 1.0 - 2.0 * position
