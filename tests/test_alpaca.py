import asyncio

import pytest

from alpaca import AlpacaBroker, AlpacaPriceFeed, _timeframe_seconds


class _Client:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def request(self, method, path, *, base="trading", params=None, json=None):
        self.calls.append({"method": method, "path": path, "base": base, "params": params, "json": json})
        response = self.responses[(method, path)]
        if callable(response):
            return response(params)
        if isinstance(response, Exception):
            raise response
        return response


def test_place_order_by_notional_parses_fill():
    client = _Client(
        {
            ("POST", "/v2/orders"): {
                "id": "abc",
                "status": "filled",
                "filled_qty": "0.0231",
                "filled_avg_price": "64920.5",
            }
        }
    )

    result = asyncio.run(AlpacaBroker(client).place_order("BTC/USD", "buy", notional=1500.0))

    assert client.calls[0]["json"] == {
        "symbol": "BTC/USD",
        "side": "buy",
        "type": "market",
        "time_in_force": "gtc",
        "notional": "1500.00",
    }
    assert result.order_id == "abc"
    assert result.filled_qty == pytest.approx(0.0231)
    assert result.filled_avg_price == pytest.approx(64920.5)


def test_place_order_by_qty_and_pending_fill():
    client = _Client({("POST", "/v2/orders"): {"id": "o2", "status": "accepted", "filled_avg_price": None}})

    result = asyncio.run(AlpacaBroker(client).place_order("ETH/USD", "sell", qty=0.5))

    assert client.calls[0]["json"]["qty"] == "0.5"
    assert result.filled_avg_price is None


def test_place_order_requires_exactly_one_amount():
    broker = AlpacaBroker(_Client({}))
    with pytest.raises(ValueError):
        asyncio.run(broker.place_order("BTC/USD", "buy"))
    with pytest.raises(ValueError):
        asyncio.run(broker.place_order("BTC/USD", "buy", notional=10.0, qty=1.0))


def test_positions_map_to_tracked_symbols():
    client = _Client(
        {
            ("GET", "/v2/positions"): [
                {"symbol": "BTCUSD", "qty": "0.01", "market_value": "650", "current_price": "65000"},
                {"symbol": "AAPL", "qty": "1", "market_value": "190", "current_price": "190"},
            ],
            ("GET", "/v2/account"): {"equity": "10234.56"},
        }
    )
    broker = AlpacaBroker(client)

    positions = asyncio.run(broker.get_open_positions())
    equity = asyncio.run(broker.get_account_equity())

    assert [p.symbol for p in positions] == ["BTC/USD"]
    assert positions[0].current_price == 65000.0
    assert equity == pytest.approx(10234.56)


def test_get_bars_isolates_failing_symbol():
    def bars(params):
        if params["symbols"] == "ETH/USD":
            raise ConnectionError("reset")
        return {"bars": {"BTC/USD": [{"t": "t0", "o": 1, "h": 2, "l": 0.5, "c": 1.5, "v": 10, "n": 3, "vw": 1.2}]}}

    client = _Client({("GET", AlpacaPriceFeed.BARS_PATH): bars})

    result = asyncio.run(AlpacaPriceFeed(client).get_bars(["BTC/USD", "ETH/USD"], "1Min", 100))

    assert result["ETH/USD"] == []
    assert result["BTC/USD"][0].c == 1.5
    assert result["BTC/USD"][0].vw == 1.2
    assert all(call["base"] == "data" for call in client.calls)
    assert client.calls[0]["params"]["limit"] == "100"


def test_quote_snapshots_skip_unusable_quotes():
    client = _Client(
        {
            ("GET", AlpacaPriceFeed.QUOTES_PATH): {
                "quotes": {
                    "BTC/USD": {"bp": 64999.0, "ap": 65001.0, "t": "t1"},
                    "ETH/USD": {"bp": 0, "ap": 3200.0, "t": "t1"},
                }
            }
        }
    )

    quotes = asyncio.run(AlpacaPriceFeed(client).get_quote_snapshots(["BTC/USD", "ETH/USD"]))

    assert list(quotes) == ["BTC/USD"]
    assert quotes["BTC/USD"].mid_price == 65000.0
    assert quotes["BTC/USD"].spread == 2.0
    assert client.calls[0]["params"] == {"symbols": "BTC/USD,ETH/USD"}


def test_timeframe_parsing():
    assert _timeframe_seconds("1Min") == 60
    assert _timeframe_seconds("5Min") == 300
    assert _timeframe_seconds("1Hour") == 3600
    with pytest.raises(ValueError):
        _timeframe_seconds("1Week")
