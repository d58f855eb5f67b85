"""MEXC 合约 REST 客户端"""

from dataclasses import dataclass
from typing import Any

from liqwatch.client.base import APIError, HTTPClient
from liqwatch.client.models import ContractDetail, ContractTicker


class MexcAPIError(APIError):
    """MEXC API 错误"""


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class MexcClient(HTTPClient):
    base_url: str = "https://contract.mexc.com/api/v1/contract"

    error_cls = MexcAPIError

    async def _get_data(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        payload = await self._request("GET", endpoint, params)
        if not isinstance(payload, dict) or payload.get("success") is False:
            code = payload.get("code", -1) if isinstance(payload, dict) else -1
            raise MexcAPIError(code, f"Unexpected response from {endpoint}: {payload}")
        return payload.get("data")

    async def get_tickers(self) -> list[ContractTicker]:
        """获取全部合约行情"""
        data = await self._get_data("/ticker")
        return [
            ContractTicker(
                symbol=t["symbol"],
                last_price=_float(t.get("lastPrice")),
                volume_24h=_float(t.get("volume24")),
                amount_24h=_float(t.get("amount24")),
                hold_vol=_float(t.get("holdVol")),
                funding_rate=_float(t.get("fundingRate")),
            )
            for t in data or []
            if t.get("symbol")
        ]

    async def get_contract_details(self) -> list[ContractDetail]:
        """获取全部合约信息 (合约面值)"""
        data = await self._get_data("/detail")
        if isinstance(data, dict):
            data = [data]
        return [
            ContractDetail(
                symbol=d["symbol"],
                contract_size=_float(d.get("contractSize"), 1.0),
                base_coin=d.get("baseCoin", ""),
            )
            for d in data or []
            if d.get("symbol")
        ]
