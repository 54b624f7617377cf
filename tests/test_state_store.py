import json

import pytest

from scalp_book import ScalpBook
from scalp_types import ExitReason, ScalpSignalSnapshot
from state_store import BotState, JsonStateStore, StateStoreError


def test_missing_file_loads_defaults(tmp_path):
    store = JsonStateStore(str(tmp_path / "bot-state.json"))
    state = store.load()
    assert isinstance(state, BotState)
    assert state.initial_capital == 0.0
    assert state.open_scalps == {}


def test_empty_file_loads_defaults(tmp_path):
    path = tmp_path / "bot-state.json"
    path.write_text("  \n")
    assert JsonStateStore(str(path)).load().closed_scalps == []


def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "bot-state.json"
    path.write_text("{not json")
    with pytest.raises(StateStoreError):
        JsonStateStore(str(path)).load()


def test_non_object_document_raises(tmp_path):
    path = tmp_path / "bot-state.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(StateStoreError):
        JsonStateStore(str(path)).load()


def test_save_then_load_preserves_book(tmp_path):
    path = tmp_path / "nested" / "bot-state.json"
    store = JsonStateStore(str(path))
    book = ScalpBook()
    book.set_initial_capital(1000.0)
    kept = book.open_scalp(
        "BTC/USD",
        fill_price=100.0,
        qty=0.5,
        notional=50.0,
        entry_score=0.4,
        take_profit_pct=0.003,
        stop_loss_pct=0.002,
        max_hold_ms=300_000,
        now=1_700_000_000_000,
    )
    closed = book.open_scalp(
        "ETH/USD",
        fill_price=2000.0,
        qty=0.01,
        notional=20.0,
        entry_score=0.35,
        take_profit_pct=0.003,
        stop_loss_pct=0.002,
        max_hold_ms=300_000,
        now=1_700_000_000_000,
    )
    book.close_scalp(closed.id, 2010.0, ExitReason.TAKE_PROFIT, now=1_700_000_030_000)
    book.record_trade("ETH/USD", 1_700_000_030_000)
    book.record_signals(
        [ScalpSignalSnapshot("BTC/USD", 100.0, 0.4, "long", 0.01, {"rsi": 0.2}, "t")]
    )

    assert store.save(book.state) is True
    assert json.loads(path.read_text())["initial_capital"] == 1000.0

    restored = ScalpBook(store.load())
    assert restored.get_open_scalp(kept.id) == kept
    assert restored.closed_scalps() == book.closed_scalps()
    assert restored.last_trade_time("ETH/USD") == 1_700_000_030_000
    assert restored.daily_scalp_count(1_700_000_000_000) == 2
    assert restored.signals()[0].indicators == {"rsi": 0.2}
    assert list(tmp_path.joinpath("nested").glob(".bot-state-*")) == []


def test_save_failure_returns_false(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    store = JsonStateStore(str(blocker / "bot-state.json"))
    assert store.save(BotState()) is False
