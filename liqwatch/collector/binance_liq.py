# liqwatch/collector/binance_liq.py
import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Any

import websockets

from liqwatch.storage.models import Side, TradeEvent

from .base import RECONNECT_DELAY_SECONDS, BaseCollector, OnEvent

logger = logging.getLogger(__name__)

BINANCE_FORCE_ORDER_WS = "wss://fstream.binance.com/ws/!forceOrder@arr"


class BinanceLiquidationCollector(BaseCollector):
    """Binance 全市场强平流，每条强平单即一个 TradeEvent"""

    def __init__(
        self,
        on_event: OnEvent,
        ws_url: str = BINANCE_FORCE_ORDER_WS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__("liquidations", on_event)
        self.ws_url = ws_url
        self.clock = clock
        self.ws: Any = None

    async def connect(self) -> None:
        self.ws = await websockets.connect(self.ws_url)

    async def disconnect(self) -> None:
        if self.ws:
            await self.ws.close()

    def _parse_liquidation(self, data: dict[str, Any]) -> TradeEvent | None:
        if data.get("e") != "forceOrder":
            return None

        order = data["o"]
        quantity = float(order["q"])
        # 成交均价为 0 时退回委托价
        price = float(order.get("ap") or 0) or float(order["p"])

        return TradeEvent(
            instrument=order["s"],
            side=Side.parse(order["S"]),
            price=price,
            quantity=quantity,
            observed_at=self.clock(),
            exchange_ts=order.get("T"),
        )

    async def _process_message(self, message: str) -> None:
        try:
            data = json.loads(message)
            event = self._parse_liquidation(data)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse liquidation message: {message}")
            return
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed liquidation message ({e}): {message}")
            return

        if event:
            await self.on_event(event)

    async def _run(self) -> None:
        try:
            await self.connect()
        except Exception as e:
            logger.error(f"Binance liquidation connect failed: {e}")
            await self._reconnect()

        while self.running:
            try:
                message = await self.ws.recv()
                await self._process_message(message)
            except asyncio.CancelledError:
                break
            except websockets.ConnectionClosed:
                logger.warning("Binance liquidation WS disconnected, reconnecting...")
                await self._reconnect()
            except Exception as e:
                logger.error(f"Binance liquidation error: {e}")
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)
