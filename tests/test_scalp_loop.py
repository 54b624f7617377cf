import asyncio

import pytest

from config import AgentSettings, RuntimeSettings, ScalpSettings
from scalp_book import ScalpBook
from scalp_loop import ScalpEngine
from scalp_types import Bar, OrderResult, PositionInfo, QuoteSnapshot
from state_store import BotState

T0 = 1_700_000_000_000
SYMBOLS = ("BTC/USD", "ETH/USD", "SOL/USD")


def _long_bars():
    closes = [100.0 - 0.1 * i for i in range(30)] + [105.0]
    volumes = [10.0] * 30 + [40.0]
    return [Bar(t=str(i), o=c, h=c, l=c, c=c, v=v, n=1, vw=105.0) for i, (c, v) in enumerate(zip(closes, volumes))]


def _flat_bars(count=30):
    return [Bar(t=str(i), o=100.0, h=100.0, l=100.0, c=100.0, v=10.0, n=1, vw=100.0) for i in range(count)]


def _quote(symbol, mid):
    return QuoteSnapshot.from_bid_ask(symbol, mid - 0.0005, mid + 0.0005, "t")


class _Broker:
    def __init__(self, equity=10_000.0, failing=(), equity_error=None):
        self.equity = equity
        self.failing = set(failing)
        self.equity_error = equity_error
        self.orders = []
        self.on_equity = None

    async def get_account_equity(self):
        if self.on_equity:
            self.on_equity()
        if self.equity_error:
            raise self.equity_error
        return self.equity

    async def get_open_positions(self):
        return [PositionInfo("BTC/USD", 1.0, 100.0, 100.0)]

    async def place_order(self, symbol, side, *, notional=None, qty=None):
        self.orders.append((symbol, side))
        if symbol in self.failing:
            raise RuntimeError(f"order rejected for {symbol}")
        return OrderResult(order_id=f"{symbol}-{side}", status="filled")

    async def liquidate_all(self):
        return None


class _Feed:
    def __init__(self, bars, quotes):
        self.bars = bars
        self.quotes = quotes

    async def get_bars(self, symbols, timeframe, limit):
        return {s: self.bars.get(s, []) for s in symbols}

    async def get_quote_snapshots(self, symbols):
        return {s: q for s, q in self.quotes.items() if s in symbols}


class _Store:
    def __init__(self):
        self.saved = []

    def load(self):
        return BotState()

    def save(self, state):
        self.saved.append(state.to_dict())
        return True


def _settings():
    return AgentSettings(scalp=ScalpSettings(symbols=SYMBOLS), runtime=RuntimeSettings(http_timeout=1.0))


def _engine(broker, feed, store=None, book=None):
    store = store or _Store()
    return ScalpEngine(_settings(), broker=broker, price_feed=feed, store=store, book=book or ScalpBook())


def _default_feed():
    return _Feed(
        bars={"BTC/USD": _long_bars(), "ETH/USD": _long_bars(), "SOL/USD": _flat_bars(10)},
        quotes={"BTC/USD": _quote("BTC/USD", 104.0), "ETH/USD": _quote("ETH/USD", 104.0)},
    )


def test_first_tick_records_capital_and_enters_long_signals():
    broker = _Broker()
    store = _Store()
    engine = _engine(broker, _default_feed(), store)

    result = asyncio.run(engine.run_once(now=T0))

    assert not result.skipped
    assert engine.book.initial_capital == 10_000.0
    assert [s.symbol for s in result.signals] == ["BTC/USD", "ETH/USD"]
    assert [p.symbol for p in result.entries] == ["BTC/USD", "ETH/USD"]
    assert broker.orders == [("BTC/USD", "buy"), ("ETH/USD", "buy")]
    assert [s.symbol for s in engine.book.signals()] == ["BTC/USD", "ETH/USD"]
    assert result.saved and len(store.saved) == 1
    assert engine.book.daily_scalp_count(T0) == 2

    status = engine.status(now=T0)
    assert status["error"] is None
    assert status["tick_count"] == 1
    assert len(status["open_scalps"]) == 2
    assert status["metrics"]["total_scalps"] == 0


def test_foundational_failure_skips_tick_and_reports_error():
    broker = _Broker(equity_error=RuntimeError("alpaca 500"))
    store = _Store()
    engine = _engine(broker, _default_feed(), store)

    result = asyncio.run(engine.run_once(now=T0))

    assert result.skipped
    assert "alpaca 500" in result.error
    assert engine.status(now=T0)["error"] == result.error
    assert store.saved == []
    assert broker.orders == []


def test_exits_run_before_entries_and_respect_cooldown():
    broker = _Broker()
    book = ScalpBook()
    book.set_initial_capital(10_000.0)
    position = book.open_scalp(
        "BTC/USD",
        fill_price=100.0,
        qty=1.0,
        notional=100.0,
        entry_score=0.5,
        take_profit_pct=0.003,
        stop_loss_pct=0.002,
        max_hold_ms=300_000,
        now=T0 - 60_000,
    )
    engine = _engine(broker, _default_feed(), book=book)

    result = asyncio.run(engine.run_once(now=T0))

    assert [c.id for c in result.exits] == [position.id]
    assert result.exits[0].exit_reason == "take-profit"
    assert broker.orders == [("BTC/USD", "sell"), ("ETH/USD", "buy")]
    assert [p.symbol for p in result.entries] == ["ETH/USD"]


def test_daily_loss_pause_blocks_entries_but_not_exits():
    broker = _Broker(equity=9_000.0)
    book = ScalpBook()
    book.set_initial_capital(10_000.0)
    position = book.open_scalp(
        "ETH/USD",
        fill_price=100.0,
        qty=1.0,
        notional=100.0,
        entry_score=0.5,
        take_profit_pct=0.003,
        stop_loss_pct=0.002,
        max_hold_ms=300_000,
        now=T0 - 60_000,
    )
    engine = _engine(broker, _default_feed(), book=book)

    result = asyncio.run(engine.run_once(now=T0))

    assert book.state.paused_until == T0 + 4 * 60 * 60 * 1000
    assert [c.id for c in result.exits] == [position.id]
    assert result.entries == []
    assert broker.orders == [("ETH/USD", "sell")]
    assert engine.status(now=T0)["paused"] is True


def test_order_failure_only_skips_that_symbol():
    broker = _Broker(failing={"BTC/USD"})
    engine = _engine(broker, _default_feed())

    result = asyncio.run(engine.run_once(now=T0))

    assert [p.symbol for p in result.entries] == ["ETH/USD"]
    assert engine.book.open_scalps_for("BTC/USD") == []
    assert engine.last_error is None


def test_enrichment_failure_falls_back_to_baseline():
    class _Gatherer:
        async def build(self, bars, quotes):
            raise RuntimeError("enrichment exploded")

    broker = _Broker()
    engine = ScalpEngine(
        _settings(),
        broker=broker,
        price_feed=_default_feed(),
        store=_Store(),
        book=ScalpBook(),
        gatherer=_Gatherer(),
    )

    result = asyncio.run(engine.run_once(now=T0))

    assert len(result.entries) == 2
    position = result.entries[0]
    assert position.take_profit_price == pytest.approx(position.entry_price * 1.003)


def test_run_forever_stops_on_event():
    broker = _Broker()
    engine = _engine(broker, _default_feed())

    async def scenario():
        stop = asyncio.Event()
        broker.on_equity = stop.set
        await asyncio.wait_for(engine.run_forever(stop), timeout=5)

    asyncio.run(scenario())

    assert engine.tick_count == 1
    assert engine.status()["running"] is False


def test_slow_feed_times_out_and_skips_tick():
    class _SlowFeed(_Feed):
        async def get_bars(self, symbols, timeframe, limit):
            await asyncio.sleep(1.0)
            return {}

    settings = AgentSettings(scalp=ScalpSettings(symbols=SYMBOLS), runtime=RuntimeSettings(http_timeout=0.05))
    store = _Store()
    engine = ScalpEngine(
        settings,
        broker=_Broker(),
        price_feed=_SlowFeed({}, {}),
        store=store,
        book=ScalpBook(),
    )

    result = asyncio.run(engine.run_once(now=T0))

    assert result.skipped
    assert engine.status(now=T0)["error"] == "foundational fetch timed out"
    assert store.saved == []
    assert engine.tick_count == 0


def test_tick_keeps_no_high_water_marks():
    engine = _engine(_Broker(), _default_feed())
    asyncio.run(engine.run_once(now=T0))
    assert len(engine.book.open_scalps()) == 2
    assert engine.book.state.high_water_marks == {}
