# liqwatch/collector/base.py
import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any

from liqwatch.storage.models import TradeEvent

logger = logging.getLogger(__name__)

OnEvent = Callable[[TradeEvent], Coroutine[Any, Any, Any]]

RECONNECT_DELAY_SECONDS = 5


class BaseCollector(ABC):
    def __init__(self, name: str, on_event: OnEvent):
        self.name = name
        self.on_event = on_event
        self.running = False
        self._task: asyncio.Task[None] | None = None

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def _process_message(self, message: Any) -> None:
        pass

    async def start(self) -> None:
        self.running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"{self.__class__.__name__} started for {self.name}")

    async def stop(self) -> None:
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.disconnect()
        logger.info(f"{self.__class__.__name__} stopped for {self.name}")

    async def subscribe(self, instrument: str) -> None:
        """全市场流无需订阅"""

    async def unsubscribe(self, instrument: str) -> None:
        """全市场流无需退订"""

    async def _reconnect(self) -> None:
        """断线后固定间隔重连，直到成功或停止"""
        while self.running:
            await asyncio.sleep(RECONNECT_DELAY_SECONDS)
            try:
                await self.connect()
                logger.info(f"{self.__class__.__name__} reconnected")
                return
            except Exception as e:
                logger.warning(f"{self.__class__.__name__} reconnect failed: {e}")

    @abstractmethod
    async def _run(self) -> None:
        pass
