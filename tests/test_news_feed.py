import asyncio

from news_feed import NewsFetcher, get_headlines_for_symbol


class _FakeClient:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    async def request(self, method, path, *, base="trading", params=None, json=None):
        symbol = params["symbols"]
        self.calls.append((method, path, base, dict(params)))
        if symbol in self.failing:
            raise RuntimeError("503 from news API")
        return {
            "news": [
                {"headline": f"{symbol} rallies", "summary": "", "source": "benzinga", "created_at": "t", "symbols": ["BTCUSD"]},
                {"headline": "", "summary": "dropped"},
            ]
        }


def test_fetch_news_for_symbol_caches_per_symbol():
    client = _FakeClient()
    fetcher = NewsFetcher(client)

    first = asyncio.run(fetcher.fetch_news_for_symbol("BTC/USD"))
    second = asyncio.run(fetcher.fetch_news_for_symbol("BTC/USD"))

    assert [item.headline for item in first] == ["BTC/USD rallies"]
    assert second == first
    assert len(client.calls) == 1
    method, path, base, params = client.calls[0]
    assert (method, path, base) == ("GET", "/v1beta1/news", "data")
    assert params == {"symbols": "BTC/USD", "limit": "10", "sort": "desc"}


def test_failing_symbol_yields_empty_list_without_caching():
    client = _FakeClient(failing={"ETH/USD"})
    fetcher = NewsFetcher(client)

    news = asyncio.run(fetcher.fetch_all_news(["BTC/USD", "ETH/USD"]))

    assert get_headlines_for_symbol(news, "BTC/USD") == ["BTC/USD rallies"]
    assert news["ETH/USD"] == []
    assert not fetcher.cache.has("ETH/USD")
    assert get_headlines_for_symbol(news, "SOL/USD") == []
