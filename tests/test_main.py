from unittest.mock import patch

from liqwatch.collector.binance_liq import BinanceLiquidationCollector
from liqwatch.collector.mexc_deals import MexcDealsCollector
from liqwatch.config import Config
from liqwatch.main import LiquidationMonitor


def _config(**overrides) -> Config:
    return Config(telegram={"bot_token": "test", "chat_id": "123"}, **overrides)


def test_mexc_monitor_wiring():
    with patch("liqwatch.notifier.telegram.Bot"):
        monitor = LiquidationMonitor(_config())

    assert isinstance(monitor.collector, MexcDealsCollector)
    # 合约面值表与筛选器共享
    assert monitor.collector.contract_sizes is monitor.eligibility.contract_sizes
    assert monitor.eligibility.mexc is monitor.mexc
    assert monitor.pipeline.eligibility is monitor.eligibility
    assert monitor.pipeline.sink is monitor.notifier
    assert monitor.notifier.market_data is monitor.market_data
    assert monitor.notifier.metadata == monitor.eligibility.metadata_of


def test_binance_monitor_wiring():
    config = _config(
        exchange={"name": "binance"},
        eligibility={"symbols": ["BTCUSDT"]},
        market_data={"enabled": False},
    )
    with patch("liqwatch.notifier.telegram.Bot"):
        monitor = LiquidationMonitor(config)

    assert isinstance(monitor.collector, BinanceLiquidationCollector)
    assert monitor.eligibility.mexc is None
    assert monitor.market_data is None


async def test_status_report():
    with patch("liqwatch.notifier.telegram.Bot"):
        monitor = LiquidationMonitor(_config())
    monitor.pipeline.counters.events_received = 12
    monitor.pipeline.counters.alerts_raised = 1

    text = await monitor._on_status()

    assert "mexc (per_event)" in text
    assert "事件: 12" in text
    assert "告警: 1" in text
