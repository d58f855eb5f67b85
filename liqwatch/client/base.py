"""aiohttp REST 客户端基类"""

import json
from dataclasses import dataclass, field
from typing import Any

import aiohttp


class APIError(Exception):
    """REST API 错误"""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass
class HTTPClient:
    base_url: str
    timeout_seconds: float = 10
    _session: aiohttp.ClientSession | None = field(default=None, repr=False)

    error_cls = APIError

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """发送 HTTP 请求"""
        if self._session is None:
            raise RuntimeError("Session not initialized. Use 'async with' context.")

        url = f"{self.base_url}{endpoint}"

        if method == "GET":
            response = await self._session.get(url, params=params)
        else:
            response = await self._session.post(url, data=params)

        if response.status != 200:
            error_text = await response.text()
            try:
                error_data = json.loads(error_text)
            except json.JSONDecodeError:
                raise self.error_cls(response.status, error_text)
            if isinstance(error_data, dict):
                message = error_data.get("msg") or error_data.get("message") or error_text
                raise self.error_cls(error_data.get("code", response.status), str(message))
            raise self.error_cls(response.status, error_text)

        return await response.json()

    async def open(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HTTPClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
