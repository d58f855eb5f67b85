from unittest.mock import AsyncMock, MagicMock, call

from liqwatch.collector.subscriptions import SubscriptionManager


def _manager(watchlists: list[list[str]]):
    collector = MagicMock()
    collector.subscribe = AsyncMock()
    collector.unsubscribe = AsyncMock()

    eligibility = MagicMock()
    eligibility.refresh = AsyncMock()
    eligibility.watchlist = MagicMock(side_effect=watchlists)

    return SubscriptionManager(collector, eligibility, refresh_hours=2), collector


async def test_refresh_diffs_subscriptions():
    manager, collector = _manager([["AAA", "BBB"], ["BBB", "CCC"]])

    await manager.refresh()
    assert collector.subscribe.await_args_list == [call("AAA"), call("BBB")]

    await manager.refresh()
    collector.unsubscribe.assert_awaited_once_with("AAA")
    assert collector.subscribe.await_args_list[-1] == call("CCC")
    assert manager.current == {"BBB", "CCC"}


async def test_empty_watchlist_keeps_current():
    manager, collector = _manager([["AAA"], []])

    await manager.refresh()
    await manager.refresh()

    collector.unsubscribe.assert_not_called()
    assert manager.current == {"AAA"}


async def test_start_and_stop():
    manager, _ = _manager([])

    await manager.start()
    assert manager.running

    await manager.stop()
    assert not manager.running
    assert manager._task.cancelled()


async def test_unfiltered_mexc_subscribes_all_usdt_contracts():
    from liqwatch.client.models import ContractTicker
    from liqwatch.collector.eligibility import EligibilityFilter
    from liqwatch.config import EligibilityConfig

    mexc = MagicMock()
    mexc.get_tickers = AsyncMock(
        return_value=[
            ContractTicker("BTC_USDT", 65000, 1, 1, 1, 0),
            ContractTicker("XYZ_USDT", 0.5, 1, 1, 1, 0),
        ]
    )
    mexc.get_contract_details = AsyncMock(return_value=[])
    eligibility = EligibilityFilter(EligibilityConfig(enabled=False), mexc, MagicMock(), sleep=AsyncMock())

    collector = MagicMock()
    collector.subscribe = AsyncMock()
    collector.unsubscribe = AsyncMock()
    manager = SubscriptionManager(collector, eligibility)

    await manager.refresh()

    assert collector.subscribe.await_args_list == [call("BTC_USDT"), call("XYZ_USDT")]
    assert eligibility.is_eligible("BTC_USDT")
