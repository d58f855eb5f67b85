# liqwatch/collector/market_data.py
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import ccxt.async_support as ccxt

logger = logging.getLogger(__name__)

CCXT_EXCHANGES = {
    "mexc": "mexc",
    "binance": "binanceusdm",
}


@dataclass
class MarketData:
    funding_rate: float | None = None  # 小数，0.0001 = 0.01%
    open_interest_usd: float | None = None


def to_ccxt_symbol(instrument: str) -> str:
    """BTC_USDT / BTCUSDT -> BTC/USDT:USDT"""
    if "/" in instrument:
        return instrument
    if "_" in instrument:
        base, quote = instrument.split("_", 1)
    elif instrument.endswith("USDT"):
        base, quote = instrument[: -len("USDT")], "USDT"
    else:
        return instrument
    return f"{base}/{quote}:{quote}"


class MarketDataFetcher:
    """资金费率 / 持仓量，告警附加信息，带短时缓存"""

    def __init__(
        self,
        exchange: str = "mexc",
        cache_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.exchange_id = CCXT_EXCHANGES.get(exchange, exchange)
        self.cache_seconds = cache_seconds
        self.clock = clock
        self.exchange: Any = None
        self._cache: dict[str, tuple[float, MarketData]] = {}

    async def init(self) -> None:
        self.exchange = getattr(ccxt, self.exchange_id)()

    async def close(self) -> None:
        if self.exchange:
            await self.exchange.close()

    async def _fetch_funding_rate(self, symbol: str) -> float | None:
        try:
            data: dict[str, Any] = await self.exchange.fetch_funding_rate(symbol)
            rate = data.get("fundingRate")
            return float(rate) if rate is not None else None
        except Exception as e:
            logger.warning(f"Failed to fetch funding rate for {symbol}: {e}")
            return None

    async def _fetch_open_interest(self, symbol: str) -> float | None:
        try:
            data: dict[str, Any] = await self.exchange.fetch_open_interest(symbol)
            value = data.get("openInterestValue")
            if value is not None:
                return float(value)

            amount = data.get("openInterestAmount")
            if amount is None:
                return None
            ticker: dict[str, Any] = await self.exchange.fetch_ticker(symbol)
            price = ticker.get("last")
            if price is None:
                return None
            return float(amount) * float(price)
        except Exception as e:
            logger.warning(f"Failed to fetch open interest for {symbol}: {e}")
            return None

    async def fetch(self, instrument: str) -> MarketData:
        now = self.clock()
        cached = self._cache.get(instrument)
        if cached and now - cached[0] < self.cache_seconds:
            return cached[1]

        if self.exchange is None:
            return MarketData()

        symbol = to_ccxt_symbol(instrument)
        data = MarketData(
            funding_rate=await self._fetch_funding_rate(symbol),
            open_interest_usd=await self._fetch_open_interest(symbol),
        )
        self._cache[instrument] = (now, data)
        return data
