# liqwatch/collector/eligibility.py
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import aiohttp

from liqwatch.client.base import APIError
from liqwatch.client.coingecko import CoinGeckoClient
from liqwatch.client.mexc import MexcClient
from liqwatch.config import EligibilityConfig

logger = logging.getLogger(__name__)

COINGECKO_BATCH_SIZE = 250

HARDCODED_COIN_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "AVAX": "avalanche-2",
    "MATIC": "matic-network",
    "DOT": "polkadot",
    "TRX": "tron",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "LTC": "litecoin",
    "ETC": "ethereum-classic",
    "BCH": "bitcoin-cash",
    "FIL": "filecoin",
    "APT": "aptos",
    "ARB": "arbitrum",
    "OP": "optimism",
    "SUI": "sui",
    "PEPE": "pepe",
    "SHIB": "shiba-inu",
    "WIF": "dogwifcoin",
    "BONK": "bonk",
}

Sleep = Callable[[float], Awaitable[None]]


def base_asset(symbol: str) -> str:
    if "_" in symbol:
        return symbol.split("_", 1)[0]
    if symbol.endswith("USDT"):
        return symbol[: -len("USDT")]
    return symbol


@dataclass
class SymbolMetadata:
    symbol: str
    last_price: float
    volume_24h: float
    open_interest_usd: float = 0.0
    contract_size: float = 1.0
    coin_id: str | None = None
    market_cap: float = 0.0

    @property
    def oi_mc_ratio(self) -> float:
        if self.market_cap <= 0:
            return 0.0
        return self.open_interest_usd / self.market_cap


@dataclass
class RefreshResult:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    total: int = 0


class SymbolMapper:
    """交易所合约 -> CoinGecko id"""

    def __init__(
        self,
        coingecko: CoinGeckoClient,
        rate_limit_seconds: float = 1.5,
        sleep: Sleep = asyncio.sleep,
    ):
        self.coingecko = coingecko
        self.rate_limit_seconds = rate_limit_seconds
        self.sleep = sleep
        self.cache: dict[str, str] = {}

    async def map_symbol(self, symbol: str) -> str | None:
        if symbol in self.cache:
            return self.cache[symbol]

        base = base_asset(symbol)
        hardcoded = HARDCODED_COIN_IDS.get(base.upper())
        if hardcoded:
            self.cache[symbol] = hardcoded
            return hardcoded

        term = base.lower()
        try:
            coins = await self.coingecko.search(term)
        except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error searching CoinGecko for {symbol}: {e}")
            return None
        finally:
            await self.sleep(self.rate_limit_seconds)

        if not coins:
            return None

        # 优先精确匹配 symbol / id
        coin = next(
            (c for c in coins if c.symbol.lower() == term or c.id.lower() == term),
            coins[0],
        )
        self.cache[symbol] = coin.id
        return coin.id

    async def batch_map(self, symbols: list[str]) -> dict[str, str]:
        logger.info(f"Mapping {len(symbols)} symbols to CoinGecko ids...")
        mapped: dict[str, str] = {}
        for i, symbol in enumerate(symbols, 1):
            coin_id = await self.map_symbol(symbol)
            if coin_id:
                mapped[symbol] = coin_id
            if i % 50 == 0:
                logger.info(f"Mapping progress: {i}/{len(symbols)}")
        logger.info(f"Mapped {len(mapped)}/{len(symbols)} symbols")
        return mapped


def filter_by_oi_mc(
    candidates: list[SymbolMetadata], config: EligibilityConfig
) -> list[SymbolMetadata]:
    """按市值区间和 OI/MC 比例筛选，投机程度高的排前面"""
    passed = [
        s
        for s in candidates
        if config.min_market_cap <= s.market_cap <= config.max_market_cap
        and config.min_oi_mc_ratio <= s.oi_mc_ratio <= config.max_oi_mc_ratio
    ]
    passed.sort(key=lambda s: s.oi_mc_ratio, reverse=True)
    return passed


class EligibilityFilter:
    def __init__(
        self,
        config: EligibilityConfig,
        mexc: MexcClient | None,
        coingecko: CoinGeckoClient,
        mapper: SymbolMapper | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.mexc = mexc
        self.coingecko = coingecko
        self.sleep = sleep
        self.mapper = mapper or SymbolMapper(
            coingecko, config.coingecko_rate_limit_seconds, sleep
        )
        self.eligible: set[str] = set(config.symbols)
        self.metadata: dict[str, SymbolMetadata] = {}
        self.contract_sizes: dict[str, float] = {}

    @property
    def is_static(self) -> bool:
        return not self.config.enabled or bool(self.config.symbols)

    def is_eligible(self, instrument: str) -> bool:
        if not self.config.enabled and not self.config.symbols:
            return True
        return instrument in self.eligible

    def watchlist(self) -> list[str]:
        return sorted(self.eligible)

    def metadata_of(self, instrument: str) -> SymbolMetadata | None:
        return self.metadata.get(instrument)

    async def _fetch_candidates(self) -> list[SymbolMetadata]:
        tickers = await self.mexc.get_tickers()
        candidates = [
            SymbolMetadata(symbol=t.symbol, last_price=t.last_price, volume_24h=t.amount_24h)
            for t in tickers
            if t.symbol.endswith("_USDT") and t.amount_24h >= self.config.min_volume_24h
        ]
        candidates.sort(key=lambda s: s.volume_24h, reverse=True)
        logger.info(
            f"Found {len(candidates)} symbols with 24h volume >= ${self.config.min_volume_24h:,.0f}"
        )

        hold_vols = {t.symbol: t.hold_vol for t in tickers}
        sizes = {d.symbol: d.contract_size for d in await self.mexc.get_contract_details()}
        self.contract_sizes.update(sizes)

        with_oi = []
        for s in candidates:
            s.contract_size = sizes.get(s.symbol, 1.0)
            s.open_interest_usd = hold_vols.get(s.symbol, 0.0) * s.contract_size * s.last_price
            if s.open_interest_usd > 0:
                with_oi.append(s)
        logger.info(f"Got OI for {len(with_oi)} symbols")
        return with_oi

    async def _attach_market_caps(self, candidates: list[SymbolMetadata]) -> None:
        mapped = await self.mapper.batch_map([s.symbol for s in candidates])
        for s in candidates:
            s.coin_id = mapped.get(s.symbol)

        coin_ids = sorted({s.coin_id for s in candidates if s.coin_id})
        market_caps: dict[str, float] = {}
        for i in range(0, len(coin_ids), COINGECKO_BATCH_SIZE):
            batch = coin_ids[i : i + COINGECKO_BATCH_SIZE]
            try:
                for market in await self.coingecko.get_markets(batch):
                    market_caps[market.id] = market.market_cap
            except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error(f"Error fetching market caps batch: {e}")
            logger.info(
                f"Market cap progress: {min(i + COINGECKO_BATCH_SIZE, len(coin_ids))}/{len(coin_ids)}"
            )
            await self.sleep(self.config.coingecko_rate_limit_seconds)

        for s in candidates:
            if s.coin_id:
                s.market_cap = market_caps.get(s.coin_id, 0.0)

    async def _all_usdt_contracts(self) -> set[str]:
        """不做筛选时订阅全部 USDT 合约"""
        tickers = await self.mexc.get_tickers()
        return {t.symbol for t in tickers if t.symbol.endswith("_USDT")}

    async def refresh(self) -> RefreshResult:
        old = set(self.eligible)

        if self.is_static:
            if self.mexc is not None:
                try:
                    if not self.config.symbols:
                        contracts = await self._all_usdt_contracts()
                        if contracts:
                            self.eligible = contracts
                    details = await self.mexc.get_contract_details()
                    self.contract_sizes.update({d.symbol: d.contract_size for d in details})
                except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.warning(f"Failed to fetch contract list: {e}")
            if self.config.symbols:
                self.eligible = set(self.config.symbols)
        elif self.mexc is None:
            logger.error("Dynamic eligibility requires the MEXC REST client")
            return RefreshResult(total=len(self.eligible))
        else:
            try:
                candidates = await self._fetch_candidates()
                await self._attach_market_caps(candidates)
            except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error(f"Eligibility refresh failed: {e}")
                return RefreshResult(total=len(self.eligible))

            passed = filter_by_oi_mc(candidates, self.config)
            if not passed:
                logger.warning("No symbols passed filter, keeping current set")
                return RefreshResult(total=len(self.eligible))

            for s in passed:
                logger.info(
                    f"Eligible {s.symbol} | MC: ${s.market_cap / 1e6:.1f}M | "
                    f"OI: ${s.open_interest_usd / 1e6:.1f}M | Ratio: {s.oi_mc_ratio:.2f}"
                )
            self.eligible = {s.symbol for s in passed}
            self.metadata = {s.symbol: s for s in passed}

        result = RefreshResult(
            added=sorted(self.eligible - old),
            removed=sorted(old - self.eligible),
            total=len(self.eligible),
        )
        logger.info(
            f"Eligibility refreshed: {result.total} symbols "
            f"(+{len(result.added)} / -{len(result.removed)})"
        )
        return result
