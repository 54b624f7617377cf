"""Translate tracked symbols (``BTC/USD``) into venue-specific tickers."""

from __future__ import annotations

from typing import Dict, Optional

__all__ = [
    "to_alpaca_symbol",
    "from_alpaca_symbol",
    "to_binance_symbol",
    "to_bybit_symbol",
    "to_hyperliquid_symbol",
]

_ALPACA_MAP: Dict[str, str] = {
    "BTC/USD": "BTCUSD",
    "ETH/USD": "ETHUSD",
    "SOL/USD": "SOLUSD",
    "DOGE/USD": "DOGEUSD",
    "LINK/USD": "LINKUSD",
}

_PERP_MAP: Dict[str, str] = {
    "BTC/USD": "BTCUSDT",
    "ETH/USD": "ETHUSDT",
    "SOL/USD": "SOLUSDT",
    "DOGE/USD": "DOGEUSDT",
    "LINK/USD": "LINKUSDT",
}


def _base_asset(symbol: str) -> str:
    return symbol.split("/", 1)[0].upper()


def to_alpaca_symbol(symbol: str) -> str:
    return _ALPACA_MAP.get(symbol, symbol.replace("/", ""))


def from_alpaca_symbol(alpaca_symbol: str) -> Optional[str]:
    """Return the tracked symbol for an Alpaca position ticker, if known.

    Alpaca reports crypto positions as ``BTCUSD`` while market data uses
    ``BTC/USD``; both spellings are accepted.
    """

    candidate = str(alpaca_symbol or "").strip().upper()
    if candidate in _ALPACA_MAP:
        return candidate
    for tracked, ticker in _ALPACA_MAP.items():
        if ticker == candidate:
            return tracked
    if candidate.endswith("USD") and "/" not in candidate and len(candidate) > 3:
        return f"{candidate[:-3]}/USD"
    return None


def to_binance_symbol(symbol: str) -> str:
    return _PERP_MAP.get(symbol, symbol.replace("/USD", "USDT").replace("/", ""))


def to_bybit_symbol(symbol: str) -> str:
    # Bybit linear perpetuals share Binance's USDT ticker format.
    return to_binance_symbol(symbol)


def to_hyperliquid_symbol(symbol: str) -> str:
    return _base_asset(symbol)
