from unittest.mock import AsyncMock, MagicMock

from liqwatch.collector.market_data import MarketData, MarketDataFetcher, to_ccxt_symbol


def test_to_ccxt_symbol():
    assert to_ccxt_symbol("BTC_USDT") == "BTC/USDT:USDT"
    assert to_ccxt_symbol("BTCUSDT") == "BTC/USDT:USDT"
    assert to_ccxt_symbol("BTC/USDT:USDT") == "BTC/USDT:USDT"


def test_exchange_id_mapping():
    assert MarketDataFetcher("binance").exchange_id == "binanceusdm"
    assert MarketDataFetcher("mexc").exchange_id == "mexc"


def _fetcher(exchange: MagicMock, clock=None) -> MarketDataFetcher:
    fetcher = MarketDataFetcher("mexc", cache_seconds=60, clock=clock or (lambda: 0.0))
    fetcher.exchange = exchange
    return fetcher


async def test_fetch_without_exchange_returns_empty():
    fetcher = MarketDataFetcher("mexc")
    assert await fetcher.fetch("BTC_USDT") == MarketData()


async def test_fetch_funding_and_oi_value():
    exchange = MagicMock()
    exchange.fetch_funding_rate = AsyncMock(return_value={"fundingRate": 0.0001})
    exchange.fetch_open_interest = AsyncMock(return_value={"openInterestValue": 25_000_000})

    data = await _fetcher(exchange).fetch("XYZ_USDT")

    assert data.funding_rate == 0.0001
    assert data.open_interest_usd == 25_000_000
    exchange.fetch_funding_rate.assert_awaited_once_with("XYZ/USDT:USDT")


async def test_open_interest_from_amount_and_last_price():
    exchange = MagicMock()
    exchange.fetch_funding_rate = AsyncMock(return_value={"fundingRate": None})
    exchange.fetch_open_interest = AsyncMock(return_value={"openInterestAmount": 1000})
    exchange.fetch_ticker = AsyncMock(return_value={"last": 2.5})

    data = await _fetcher(exchange).fetch("XYZ_USDT")

    assert data.funding_rate is None
    assert data.open_interest_usd == 2500.0


async def test_fetch_errors_degrade_to_none():
    exchange = MagicMock()
    exchange.fetch_funding_rate = AsyncMock(side_effect=Exception("not supported"))
    exchange.fetch_open_interest = AsyncMock(side_effect=Exception("timeout"))

    data = await _fetcher(exchange).fetch("XYZ_USDT")

    assert data == MarketData()


async def test_fetch_is_cached():
    now = [0.0]
    exchange = MagicMock()
    exchange.fetch_funding_rate = AsyncMock(return_value={"fundingRate": 0.0002})
    exchange.fetch_open_interest = AsyncMock(return_value={"openInterestValue": 1})
    fetcher = _fetcher(exchange, clock=lambda: now[0])

    await fetcher.fetch("XYZ_USDT")
    now[0] = 30
    await fetcher.fetch("XYZ_USDT")
    assert exchange.fetch_funding_rate.await_count == 1

    now[0] = 61
    await fetcher.fetch("XYZ_USDT")
    assert exchange.fetch_funding_rate.await_count == 2
