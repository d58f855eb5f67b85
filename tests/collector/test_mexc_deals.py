import json
from unittest.mock import AsyncMock, patch

from liqwatch.collector.mexc_deals import MexcDealsCollector
from liqwatch.storage.models import Side


def _collector(on_event=None, contract_sizes=None) -> MexcDealsCollector:
    return MexcDealsCollector(
        on_event=on_event or AsyncMock(),
        contract_sizes=contract_sizes,
        clock=lambda: 7.0,
    )


def _push(data, symbol: str = "XYZ_USDT") -> dict:
    return {"channel": "push.deal", "symbol": symbol, "data": data, "ts": 1706600000000}


def test_parse_deal_list():
    collector = _collector(contract_sizes={"XYZ_USDT": 10})

    events = collector._parse_deals(
        _push(
            [
                {"p": 0.52, "v": 1000, "T": 1, "O": 1, "M": 1, "t": 1706600000000},
                {"p": 0.51, "v": 400, "T": 2, "O": 3, "M": 2, "t": 1706600000100},
            ]
        )
    )

    assert [e.side for e in events] == [Side.BUY, Side.SELL]
    assert events[0].contract_multiplier == 10
    assert events[0].notional_value == 5200.0  # 0.52 * 1000 * 10
    assert events[1].exchange_ts == 1706600000100
    assert all(e.observed_at == 7.0 for e in events)


def test_parse_single_deal_and_deals_wrapper():
    collector = _collector()

    single = collector._parse_deals(_push({"p": 1, "v": 2, "T": 2}))
    wrapped = collector._parse_deals(_push({"deals": [{"p": 1, "v": 2, "T": 1}]}))

    assert len(single) == 1 and single[0].side == Side.SELL
    assert single[0].contract_multiplier == 1.0
    assert len(wrapped) == 1 and wrapped[0].side == Side.BUY


def test_parse_skips_malformed_deals():
    collector = _collector()

    events = collector._parse_deals(_push([{"p": "x", "v": 1, "T": 1}, {"v": 1}, {"p": 2, "v": 1, "T": 2}]))

    assert len(events) == 1
    assert events[0].price == 2.0


def test_parse_ignores_other_channels():
    collector = _collector()
    assert collector._parse_deals({"channel": "push.ticker", "symbol": "XYZ_USDT", "data": {}}) == []
    assert collector._parse_deals({"channel": "push.deal", "data": []}) == []


def test_contract_sizes_shared_by_reference():
    sizes: dict[str, float] = {}
    collector = _collector(contract_sizes=sizes)
    sizes["XYZ_USDT"] = 100

    events = collector._parse_deals(_push([{"p": 1, "v": 1, "T": 1}]))

    assert events[0].contract_multiplier == 100


async def test_process_message_forwards_events():
    on_event = AsyncMock()
    collector = _collector(on_event)

    await collector._process_message(json.dumps(_push([{"p": 1, "v": 1, "T": 1}, {"p": 1, "v": 2, "T": 2}])))

    assert on_event.await_count == 2


async def test_process_message_ignores_control_frames():
    on_event = AsyncMock()
    collector = _collector(on_event)

    await collector._process_message(json.dumps({"channel": "pong", "data": 1706600000000}))
    await collector._process_message(json.dumps({"channel": "rs.error", "data": "invalid symbol"}))
    await collector._process_message(json.dumps([1, 2, 3]))
    await collector._process_message("not json")

    on_event.assert_not_called()


async def test_subscribe_before_connect_only_records():
    collector = _collector()

    await collector.subscribe("XYZ_USDT")

    assert collector.subscribed == {"XYZ_USDT"}


async def test_subscribe_and_unsubscribe_send_frames():
    collector = _collector()
    collector.ws = AsyncMock()

    await collector.subscribe("XYZ_USDT")
    await collector.unsubscribe("XYZ_USDT")

    sent = [json.loads(c.args[0]) for c in collector.ws.send.await_args_list]
    assert sent == [
        {"method": "sub.deal", "param": {"symbol": "XYZ_USDT"}},
        {"method": "unsub.deal", "param": {"symbol": "XYZ_USDT"}},
    ]
    assert collector.subscribed == set()


async def test_subscribe_send_failure_keeps_symbol():
    collector = _collector()
    collector.ws = AsyncMock()
    collector.ws.send.side_effect = ConnectionError("closed")

    await collector.subscribe("XYZ_USDT")

    # 重连后补订阅
    assert "XYZ_USDT" in collector.subscribed


def test_parse_skips_unknown_deal_side():
    collector = _collector()

    events = collector._parse_deals(_push([{"p": 1, "v": 1, "T": 3}, {"p": 1, "v": 1, "T": 2}]))

    assert [e.side for e in events] == [Side.SELL]


async def test_connect_resubscribes_snapshot_of_symbols():
    collector = _collector()
    collector.subscribed = {"AAA_USDT", "BBB_USDT"}
    ws = AsyncMock()

    async def send(frame):
        # 重连补订阅期间新增订阅
        collector.subscribed.add("CCC_USDT")

    ws.send.side_effect = send
    with patch("liqwatch.collector.mexc_deals.websockets.connect", AsyncMock(return_value=ws)):
        await collector.connect()
    collector._stop_ping()

    assert ws.send.await_count == 2
    assert "CCC_USDT" in collector.subscribed
