"""Alpaca REST adapters: order broker and crypto price feed.

Both adapters share one :class:`AlpacaClient`, a thin ``aiohttp`` wrapper
that adds the API key headers, applies a bounded ``ClientTimeout`` and turns
non-2xx responses into :class:`AlpacaAPIError`.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

import aiohttp

from config import RuntimeSettings
from log_utils import setup_logger
from scalp_types import Bar, OrderResult, PositionInfo, QuoteSnapshot
from symbol_map import from_alpaca_symbol

logger = setup_logger(__name__)

__all__ = ["AlpacaAPIError", "AlpacaClient", "AlpacaBroker", "AlpacaPriceFeed"]


class AlpacaAPIError(RuntimeError):
    """Raised when Alpaca answers with a non-success status code."""

    def __init__(self, status: int, path: str, body: str) -> None:
        super().__init__(f"Alpaca {status} on {path}: {body[:300]}")
        self.status = status
        self.path = path
        self.body = body


def _optional_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class AlpacaClient:
    """Authenticated JSON client for the trading and market-data APIs."""

    def __init__(self, runtime: RuntimeSettings, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.runtime = runtime
        self._session = session
        self._own_session = session is None
        self._base_urls = {
            "trading": runtime.trading_api_url,
            "data": runtime.data_api_url,
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "APCA-API-KEY-ID": self.runtime.alpaca_key_id,
            "APCA-API-SECRET-KEY": self.runtime.alpaca_secret_key,
            "Content-Type": "application/json",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.runtime.http_timeout, connect=min(5.0, self.runtime.http_timeout))
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._own_session = True
        return self._session

    async def request(
        self,
        method: str,
        path: str,
        *,
        base: str = "trading",
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        url = f"{self._base_urls[base]}{path}"
        logger.debug("Alpaca %s %s", method, path)
        session = self._get_session()
        async with session.request(method, url, params=params, json=json, headers=self._headers()) as response:
            if response.status >= 400:
                body = await response.text()
                logger.error("Alpaca API error %s on %s: %s", response.status, path, body[:300])
                raise AlpacaAPIError(response.status, path, body)
            if response.status == 204:
                return {}
            return await response.json(content_type=None)

    async def close(self) -> None:
        if self._own_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AlpacaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class AlpacaBroker:
    """``OrderBroker`` backed by the Alpaca trading API."""

    def __init__(self, client: AlpacaClient) -> None:
        self.client = client

    async def place_order(
        self,
        symbol: str,
        side: str,
        *,
        notional: Optional[float] = None,
        qty: Optional[float] = None,
    ) -> OrderResult:
        if (notional is None) == (qty is None):
            raise ValueError("place_order requires exactly one of notional or qty")
        body: Dict[str, Any] = {
            "symbol": symbol,
            "side": side,
            "type": "market",
            "time_in_force": "gtc",
        }
        if notional is not None:
            body["notional"] = f"{notional:.2f}"
        else:
            body["qty"] = f"{qty:.9f}".rstrip("0").rstrip(".")
        payload = await self.client.request("POST", "/v2/orders", json=body)
        result = OrderResult(
            order_id=str(payload.get("id", "")),
            status=str(payload.get("status", "")),
            filled_qty=_optional_float(payload.get("filled_qty")),
            filled_avg_price=_optional_float(payload.get("filled_avg_price")),
        )
        logger.info(
            "Order %s %s %s → %s (filled %s @ %s)",
            side.upper(),
            symbol,
            body.get("notional") or body.get("qty"),
            result.status,
            result.filled_qty,
            result.filled_avg_price,
        )
        return result

    async def get_account_equity(self) -> float:
        account = await self.client.request("GET", "/v2/account")
        return float(account["equity"])

    async def get_open_positions(self) -> List[PositionInfo]:
        payload = await self.client.request("GET", "/v2/positions")
        positions: List[PositionInfo] = []
        for item in payload or []:
            symbol = from_alpaca_symbol(item.get("symbol", ""))
            if symbol is None:
                continue
            positions.append(
                PositionInfo(
                    symbol=symbol,
                    qty=float(item.get("qty", 0.0)),
                    market_value=float(item.get("market_value", 0.0)),
                    current_price=float(item.get("current_price", 0.0)),
                )
            )
        return positions

    async def liquidate_all(self) -> None:
        await self.client.request("DELETE", "/v2/positions")
        logger.warning("Liquidate-all request sent to Alpaca")


_TIMEFRAME_RE = re.compile(r"^(\d+)(Min|T|Hour|H|Day|D)$")
_TIMEFRAME_SECONDS = {"Min": 60, "T": 60, "Hour": 3600, "H": 3600, "Day": 86400, "D": 86400}


def _timeframe_seconds(timeframe: str) -> int:
    match = _TIMEFRAME_RE.match(timeframe)
    if not match:
        raise ValueError(f"Unsupported bar timeframe: {timeframe!r}")
    return int(match.group(1)) * _TIMEFRAME_SECONDS[match.group(2)]


class AlpacaPriceFeed:
    """``PriceFeed`` backed by Alpaca's crypto market-data API."""

    BARS_PATH = "/v1beta3/crypto/us/bars"
    QUOTES_PATH = "/v1beta3/crypto/us/latest/quotes"

    def __init__(self, client: AlpacaClient) -> None:
        self.client = client

    async def _fetch_symbol_bars(self, symbol: str, timeframe: str, limit: int) -> List[Bar]:
        lookback = timedelta(seconds=_timeframe_seconds(timeframe) * limit)
        start = (datetime.now(timezone.utc) - lookback).strftime("%Y-%m-%dT%H:%M:%SZ")
        payload = await self.client.request(
            "GET",
            self.BARS_PATH,
            base="data",
            params={"symbols": symbol, "timeframe": timeframe, "limit": str(limit), "start": start},
        )
        raw_bars = (payload.get("bars") or {}).get(symbol) or []
        return [Bar.from_dict(item) for item in raw_bars]

    async def get_bars(self, symbols: Sequence[str], timeframe: str, limit: int) -> Dict[str, List[Bar]]:
        """Fetch bars per symbol concurrently; a failing symbol maps to ``[]``."""

        results = await asyncio.gather(
            *(self._fetch_symbol_bars(symbol, timeframe, limit) for symbol in symbols),
            return_exceptions=True,
        )
        bars: Dict[str, List[Bar]] = {}
        for symbol, result in zip(symbols, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning("Failed to fetch bars for %s: %s", symbol, result)
                bars[symbol] = []
            else:
                bars[symbol] = result
        return bars

    async def get_quote_snapshots(self, symbols: Sequence[str]) -> Dict[str, QuoteSnapshot]:
        payload = await self.client.request(
            "GET",
            self.QUOTES_PATH,
            base="data",
            params={"symbols": ",".join(symbols)},
        )
        snapshots: Dict[str, QuoteSnapshot] = {}
        for symbol, quote in (payload.get("quotes") or {}).items():
            bid = _optional_float(quote.get("bp"))
            ask = _optional_float(quote.get("ap"))
            if bid is None or ask is None or bid <= 0 or ask <= 0:
                logger.warning("Ignoring unusable quote for %s: %s", symbol, quote)
                continue
            snapshots[symbol] = QuoteSnapshot.from_bid_ask(symbol, bid, ask, str(quote.get("t", "")))
        return snapshots
