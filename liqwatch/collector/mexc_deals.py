# liqwatch/collector/mexc_deals.py
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

MEXC_CONTRACT_WS = "wss://contract.mexc.com/edge"
PING_INTERVAL_SECONDS = 25

# T: 1 = 买, 2 = 卖
DEAL_SIDES = {1: Side.BUY, 2: Side.SELL}


class MexcDealsCollector(BaseCollector):
    """MEXC 合约逐笔成交流 (push.deal)

    成交量单位为张，名义价值需乘以合约面值。
    """

    def __init__(
        self,
        on_event: OnEvent,
        ws_url: str = MEXC_CONTRACT_WS,
        contract_sizes: dict[str, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__("deals", on_event)
        self.ws_url = ws_url
        self.contract_sizes = contract_sizes if contract_sizes is not None else {}
        self.clock = clock
        self.subscribed: set[str] = set()
        self.ws: Any = None
        self._ping_task: asyncio.Task[None] | None = None

    async def connect(self) -> None:
        self.ws = await websockets.connect(self.ws_url)
        logger.info(f"Connected to MEXC WS, resubscribing {len(self.subscribed)} symbols")
        for symbol in list(self.subscribed):
            await self._send({"method": "sub.deal", "param": {"symbol": symbol}})
        self._start_ping()

    async def disconnect(self) -> None:
        self._stop_ping()
        if self.ws:
            await self.ws.close()

    async def _send(self, payload: dict[str, Any]) -> None:
        await self.ws.send(json.dumps(payload))

    def _start_ping(self) -> None:
        self._stop_ping()
        self._ping_task = asyncio.create_task(self._ping_loop())

    def _stop_ping(self) -> None:
        if self._ping_task:
            self._ping_task.cancel()
            self._ping_task = None

    async def _ping_loop(self) -> None:
        while self.running:
            await asyncio.sleep(PING_INTERVAL_SECONDS)
            try:
                await self._send({"method": "ping"})
            except Exception as e:
                logger.warning(f"MEXC ping error: {e}")

    async def subscribe(self, instrument: str) -> None:
        self.subscribed.add(instrument)
        if self.ws is None:
            return
        try:
            await self._send({"method": "sub.deal", "param": {"symbol": instrument}})
            logger.info(f"Subscribed to {instrument}")
        except Exception as e:
            # 重连后会自动补订阅
            logger.error(f"Failed to subscribe to {instrument}: {e}")

    async def unsubscribe(self, instrument: str) -> None:
        self.subscribed.discard(instrument)
        if self.ws is None:
            return
        try:
            await self._send({"method": "unsub.deal", "param": {"symbol": instrument}})
            logger.info(f"Unsubscribed from {instrument}")
        except Exception as e:
            logger.error(f"Failed to unsubscribe from {instrument}: {e}")

    def _parse_deals(self, message: dict[str, Any]) -> list[TradeEvent]:
        if message.get("channel") != "push.deal":
            return []

        symbol = message.get("symbol")
        data = message.get("data")
        if not symbol or data is None:
            return []

        if isinstance(data, dict):
            deals = data.get("deals", [data])
        else:
            deals = data

        multiplier = self.contract_sizes.get(symbol, 1.0)
        observed_at = self.clock()
        events = []
        for deal in deals:
            try:
                side = DEAL_SIDES[int(deal["T"])]
                events.append(
                    TradeEvent(
                        instrument=symbol,
                        side=side,
                        price=float(deal["p"]),
                        quantity=float(deal["v"]),
                        observed_at=observed_at,
                        contract_multiplier=multiplier,
                        exchange_ts=deal.get("t"),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed deal for {symbol} ({e}): {deal}")
        return events

    async def _process_message(self, message: str) -> None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse MEXC message: {message}")
            return
        if not isinstance(data, dict):
            return

        channel = data.get("channel")
        if channel == "pong":
            return
        if channel == "rs.error":
            logger.error(f"MEXC subscription error: {data}")
            return

        for event in self._parse_deals(data):
            await self.on_event(event)

    async def _run(self) -> None:
        try:
            await self.connect()
        except Exception as e:
            logger.error(f"MEXC connect failed: {e}")
            await self._reconnect()

        while self.running:
            try:
                message = await self.ws.recv()
                await self._process_message(message)
            except asyncio.CancelledError:
                break
            except websockets.ConnectionClosed:
                logger.warning("MEXC WS disconnected, reconnecting...")
                self._stop_ping()
                await self._reconnect()
            except Exception as e:
                logger.error(f"MEXC deals error: {e}")
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)
