# tests/collector/test_binance_liq.py
import json
from unittest.mock import AsyncMock

from liqwatch.collector.binance_liq import BinanceLiquidationCollector
from liqwatch.storage.models import Side


def _collector(on_event=None) -> BinanceLiquidationCollector:
    return BinanceLiquidationCollector(on_event=on_event or AsyncMock(), clock=lambda: 42.0)


def _message(**order) -> dict:
    base = {
        "s": "BTCUSDT",
        "S": "SELL",
        "q": "1.5",
        "p": "99000",
        "ap": "98500",
        "X": "FILLED",
        "T": 1706600000000,
    }
    base.update(order)
    return {"e": "forceOrder", "E": 1706600000000, "o": base}


def test_parse_liquidation_message():
    collector = _collector()

    # Binance forceOrder 原始格式
    event = collector._parse_liquidation(_message())

    assert event is not None
    assert event.instrument == "BTCUSDT"
    assert event.side == Side.SELL
    assert event.quantity == 1.5
    assert event.price == 98500.0
    assert event.notional_value == 147750.0  # 1.5 * 98500
    assert event.observed_at == 42.0
    assert event.exchange_ts == 1706600000000


def test_parse_falls_back_to_order_price():
    collector = _collector()

    event = collector._parse_liquidation(_message(ap="0", S="BUY"))

    assert event.price == 99000.0
    assert event.side == Side.BUY


def test_parse_ignores_other_events():
    collector = _collector()
    assert collector._parse_liquidation({"e": "aggTrade"}) is None


async def test_process_message_forwards_event():
    on_event = AsyncMock()
    collector = _collector(on_event)

    await collector._process_message(json.dumps(_message()))

    on_event.assert_awaited_once()
    assert on_event.await_args.args[0].instrument == "BTCUSDT"


async def test_process_message_skips_malformed():
    on_event = AsyncMock()
    collector = _collector(on_event)

    await collector._process_message("not json")
    await collector._process_message(json.dumps({"e": "forceOrder", "o": {"s": "BTCUSDT"}}))
    await collector._process_message(json.dumps(_message(S="HOLD")))

    on_event.assert_not_called()


async def test_subscribe_is_noop():
    collector = _collector()
    await collector.subscribe("BTCUSDT")
    await collector.unsubscribe("BTCUSDT")
