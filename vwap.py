"""Extract the volume-weighted average price carried on Alpaca bars."""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

from scalp_types import Bar, VwapData

__all__ = ["extract_vwap", "extract_all_vwaps"]


def extract_vwap(symbol: str, bars: Sequence[Bar]) -> Optional[VwapData]:
    """Return the latest bar's VWAP, or ``None`` when it is missing or not positive."""

    if not bars:
        return None
    latest = bars[-1]
    if not latest.vw or latest.vw <= 0:
        return None
    return VwapData(symbol=symbol, vwap=float(latest.vw), timestamp=latest.t)


def extract_all_vwaps(bars_by_symbol: Mapping[str, Sequence[Bar]]) -> Dict[str, VwapData]:
    vwaps: Dict[str, VwapData] = {}
    for symbol, bars in bars_by_symbol.items():
        vwap = extract_vwap(symbol, bars)
        if vwap is not None:
            vwaps[symbol] = vwap
    return vwaps
