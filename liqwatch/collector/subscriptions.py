# liqwatch/collector/subscriptions.py
import asyncio
import logging

from .base import BaseCollector
from .eligibility import EligibilityFilter

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """定时刷新可监控品种，并同步到采集器订阅"""

    def __init__(
        self,
        collector: BaseCollector,
        eligibility: EligibilityFilter,
        refresh_hours: float = 2,
    ):
        self.collector = collector
        self.eligibility = eligibility
        self.refresh_hours = refresh_hours
        self.current: set[str] = set()
        self.running = False
        self._task: asyncio.Task[None] | None = None

    async def refresh(self) -> None:
        await self.eligibility.refresh()
        target = set(self.eligibility.watchlist())

        if not target:
            logger.warning("No eligible symbols, keeping current subscriptions")
            return

        for symbol in sorted(self.current - target):
            await self.collector.unsubscribe(symbol)
        for symbol in sorted(target - self.current):
            await self.collector.subscribe(symbol)

        self.current = target
        logger.info(f"Subscriptions refreshed, monitoring {len(self.current)} symbols")

    async def _run(self) -> None:
        interval = self.refresh_hours * 3600
        while self.running:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Failed to refresh subscriptions: {e}")

    async def start(self) -> None:
        self.running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
