"""Perpetual funding rates resolved across public futures venues.

Providers are tried in priority order (Binance, Bybit, Hyperliquid).  The
first one that returns a non-empty result wins and its rates are cached
process-wide for 15 minutes.  When every provider fails the resolver returns
an empty list; it never raises.  No authentication is required.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

import requests

from log_utils import setup_logger
from scalp_types import FundingRateData
from symbol_map import to_binance_symbol, to_bybit_symbol, to_hyperliquid_symbol
from ttl_cache import TtlCache

logger = setup_logger(__name__)

__all__ = [
    "FundingRateProvider",
    "BinanceFundingProvider",
    "BybitFundingProvider",
    "HyperliquidFundingProvider",
    "FundingRateResolver",
    "default_funding_resolver",
    "get_funding_rate",
]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        return float(raw.strip())
    except (TypeError, ValueError):
        logger.warning("funding_rates: invalid %s=%r – using default %.2f", name, raw, default)
        return float(default)


HTTP_TIMEOUT = _env_float("FUNDING_HTTP_TIMEOUT", 8.0)
CACHE_TTL_SECONDS = 15 * 60
_CACHE_KEY = "funding"


def _ms_to_iso(value: Any) -> str:
    try:
        return datetime.fromtimestamp(int(float(value)) / 1000, tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError):
        return ""


class FundingRateProvider:
    """Base class: ``fetch`` returns rates keyed by tracked symbol or raises."""

    name = "base"

    def __init__(self, timeout: float = HTTP_TIMEOUT) -> None:
        self.timeout = timeout

    def fetch(self, symbols: Sequence[str]) -> List[FundingRateData]:
        raise NotImplementedError


class BinanceFundingProvider(FundingRateProvider):
    name = "binance"
    URL = os.getenv("BINANCE_FUTURES_BASE", "https://fapi.binance.com").rstrip("/") + "/fapi/v1/premiumIndex"

    def fetch(self, symbols: Sequence[str]) -> List[FundingRateData]:
        response = requests.get(self.URL, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError("premiumIndex payload is not a list")
        wanted = {to_binance_symbol(symbol): symbol for symbol in symbols}
        rates: List[FundingRateData] = []
        for item in payload:
            if not isinstance(item, dict) or item.get("symbol") not in wanted:
                continue
            rates.append(
                FundingRateData(
                    symbol=wanted[item["symbol"]],
                    funding_rate=float(item["lastFundingRate"]),
                    mark_price=float(item.get("markPrice", 0.0)),
                    next_funding_time=_ms_to_iso(item.get("nextFundingTime")),
                    venue=self.name,
                )
            )
        return rates


class BybitFundingProvider(FundingRateProvider):
    name = "bybit"
    URL = "https://api.bybit.com/v5/market/tickers"

    def fetch(self, symbols: Sequence[str]) -> List[FundingRateData]:
        response = requests.get(self.URL, params={"category": "linear"}, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict) or payload.get("retCode") not in (0, "0"):
            raise ValueError(f"bybit tickers error: {payload.get('retMsg') if isinstance(payload, dict) else payload!r}")
        tickers = (payload.get("result") or {}).get("list") or []
        wanted = {to_bybit_symbol(symbol): symbol for symbol in symbols}
        rates: List[FundingRateData] = []
        for item in tickers:
            if not isinstance(item, dict) or item.get("symbol") not in wanted:
                continue
            funding = item.get("fundingRate")
            if funding in (None, ""):
                continue
            rates.append(
                FundingRateData(
                    symbol=wanted[item["symbol"]],
                    funding_rate=float(funding),
                    mark_price=float(item.get("markPrice") or 0.0),
                    next_funding_time=_ms_to_iso(item.get("nextFundingTime")),
                    venue=self.name,
                )
            )
        return rates


class HyperliquidFundingProvider(FundingRateProvider):
    name = "hyperliquid"
    URL = "https://api.hyperliquid.xyz/info"

    def fetch(self, symbols: Sequence[str]) -> List[FundingRateData]:
        response = requests.post(self.URL, json={"type": "metaAndAssetCtxs"}, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list) or len(payload) < 2:
            raise ValueError("metaAndAssetCtxs payload malformed")
        universe = (payload[0] or {}).get("universe") or []
        contexts = payload[1] or []
        wanted = {to_hyperliquid_symbol(symbol): symbol for symbol in symbols}
        # Hyperliquid settles funding every hour on the hour.
        now = datetime.now(timezone.utc)
        next_funding = (now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)).isoformat()
        rates: List[FundingRateData] = []
        for asset, ctx in zip(universe, contexts):
            name = asset.get("name") if isinstance(asset, dict) else None
            if name not in wanted or not isinstance(ctx, dict):
                continue
            rates.append(
                FundingRateData(
                    symbol=wanted[name],
                    funding_rate=float(ctx["funding"]),
                    mark_price=float(ctx.get("markPx") or 0.0),
                    next_funding_time=next_funding,
                    venue=self.name,
                )
            )
        return rates


class FundingRateResolver:
    """Try ``providers`` in order until one yields a non-empty result."""

    def __init__(
        self,
        providers: Sequence[FundingRateProvider],
        cache: Optional[TtlCache[List[FundingRateData]]] = None,
    ) -> None:
        self.providers = list(providers)
        self.cache: TtlCache[List[FundingRateData]] = cache or TtlCache(CACHE_TTL_SECONDS)

    def fetch_funding_rates(self, symbols: Sequence[str]) -> List[FundingRateData]:
        cached = self.cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        for provider in self.providers:
            try:
                rates = provider.fetch(symbols)
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Funding rates from %s failed: %s", provider.name, exc)
                continue
            if not rates:
                logger.info("Funding rates from %s returned no tracked symbols", provider.name)
                continue
            self.cache.set(_CACHE_KEY, rates)
            logger.info("Funding rates fetched from %s for %d symbols", provider.name, len(rates))
            return rates

        logger.warning("All funding rate providers failed; continuing without funding data")
        return []


def default_funding_resolver() -> FundingRateResolver:
    return FundingRateResolver(
        [BinanceFundingProvider(), BybitFundingProvider(), HyperliquidFundingProvider()]
    )


def get_funding_rate(rates: Sequence[FundingRateData], symbol: str) -> Optional[float]:
    for rate in rates:
        if rate.symbol == symbol:
            return rate.funding_rate
    return None
