"""CoinGecko REST 客户端"""

from dataclasses import dataclass

from liqwatch.client.base import APIError, HTTPClient
from liqwatch.client.models import CoinMarket, CoinSearchResult


class CoinGeckoAPIError(APIError):
    """CoinGecko API 错误"""


@dataclass
class CoinGeckoClient(HTTPClient):
    base_url: str = "https://api.coingecko.com/api/v3"

    error_cls = CoinGeckoAPIError

    async def search(self, query: str) -> list[CoinSearchResult]:
        data = await self._request("GET", "/search", {"query": query})
        return [
            CoinSearchResult(id=c["id"], symbol=c.get("symbol", ""), name=c.get("name", ""))
            for c in data.get("coins", [])
        ]

    async def get_markets(self, coin_ids: list[str]) -> list[CoinMarket]:
        """批量获取市值 (单次最多 250 个)"""
        if not coin_ids:
            return []
        data = await self._request(
            "GET",
            "/coins/markets",
            {"vs_currency": "usd", "ids": ",".join(coin_ids), "per_page": 250, "page": 1},
        )
        return [
            CoinMarket(
                id=c["id"],
                symbol=c.get("symbol", ""),
                market_cap=float(c.get("market_cap") or 0),
                current_price=float(c.get("current_price") or 0),
            )
            for c in data
        ]
