"""Per-symbol crypto headlines from the Alpaca news API.

One request per tracked symbol runs concurrently.  Each symbol is cached
independently for 15 minutes and a failing symbol simply yields an empty
headline list.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Mapping, Optional, Sequence

from alpaca import AlpacaClient
from log_utils import setup_logger
from scalp_types import NewsItem
from ttl_cache import TtlCache

logger = setup_logger(__name__)

__all__ = ["NewsFetcher", "get_headlines_for_symbol"]

CACHE_TTL_SECONDS = 15 * 60
NEWS_PATH = "/v1beta1/news"


class NewsFetcher:
    def __init__(
        self,
        client: AlpacaClient,
        cache: Optional[TtlCache[List[NewsItem]]] = None,
        *,
        limit: int = 10,
    ) -> None:
        self.client = client
        self.cache: TtlCache[List[NewsItem]] = cache or TtlCache(CACHE_TTL_SECONDS)
        self.limit = limit

    async def fetch_news_for_symbol(self, symbol: str) -> List[NewsItem]:
        cached = self.cache.get(symbol)
        if cached is not None:
            return cached
        try:
            payload = await self.client.request(
                "GET",
                NEWS_PATH,
                base="data",
                params={"symbols": symbol, "limit": str(self.limit), "sort": "desc"},
            )
            items = [
                NewsItem(
                    headline=str(raw.get("headline", "")),
                    summary=str(raw.get("summary") or ""),
                    source=str(raw.get("source", "")),
                    created_at=str(raw.get("created_at", "")),
                    symbols=list(raw.get("symbols") or []),
                )
                for raw in (payload.get("news") or [])
                if raw.get("headline")
            ]
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Failed to fetch news for %s: %s", symbol, exc)
            return []
        self.cache.set(symbol, items)
        return items

    async def fetch_all_news(self, symbols: Sequence[str]) -> Dict[str, List[NewsItem]]:
        results = await asyncio.gather(*(self.fetch_news_for_symbol(symbol) for symbol in symbols))
        news = dict(zip(symbols, results))
        total = sum(len(items) for items in news.values())
        logger.info("News fetched: %d headlines across %d symbols", total, len(symbols))
        return news


def get_headlines_for_symbol(news: Mapping[str, Sequence[NewsItem]], symbol: str) -> List[str]:
    return [item.headline for item in news.get(symbol, [])]
