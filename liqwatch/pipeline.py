# liqwatch/pipeline.py
import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from liqwatch.aggregator.trend import TrendContext, TrendTracker
from liqwatch.aggregator.window_stats import WindowStats
from liqwatch.alert.detector import (
    Classification,
    DetectionThresholds,
    classify,
    rejection_reason,
)
from liqwatch.alert.suppressor import EpisodeSuppressor, SuppressionSettings, SuppressionStore
from liqwatch.storage.models import TradeEvent
from liqwatch.storage.window import RollingWindowStore

if TYPE_CHECKING:
    from liqwatch.config import Config

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def dispatch(
        self,
        instrument: str,
        stats: WindowStats,
        classification: Classification,
        context: TrendContext | None = None,
    ) -> None: ...


class Eligibility(Protocol):
    def is_eligible(self, instrument: str) -> bool: ...


@dataclass
class Alert:
    instrument: str
    stats: WindowStats
    classification: Classification
    context: TrendContext | None
    raised_at: float


@dataclass
class PipelineCounters:
    events_received: int = 0
    events_ineligible: int = 0
    events_invalid: int = 0
    alerts_raised: int = 0
    alerts_suppressed: int = 0
    alerts_sent: int = 0
    dispatch_failures: int = 0


class AlertPipeline:
    """接收 -> 窗口聚合 -> 信号检测 -> 冷却/去重 -> 推送

    所有状态只在事件循环的同步代码段内修改，接收、扫描与清理天然串行。
    推送在独立 task 中执行，失败只记录日志，不回滚冷却记录。
    """

    def __init__(
        self,
        sink: NotificationSink,
        thresholds: DetectionThresholds,
        suppression: SuppressionSettings,
        window_seconds: float = 120,
        min_events: int = 2,
        mode: str = "per_event",
        sweep_interval_seconds: float = 15,
        gc_interval_seconds: float = 60,
        trend: TrendTracker | None = None,
        eligibility: Eligibility | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if mode not in ("per_event", "sweep"):
            raise ValueError(f"Unknown pipeline mode: {mode}")

        self.sink = sink
        self.thresholds = thresholds
        self.mode = mode
        self.sweep_interval_seconds = sweep_interval_seconds
        self.gc_interval_seconds = gc_interval_seconds
        self.eligibility = eligibility
        self.clock = clock

        self.windows = RollingWindowStore(window_seconds, min_events)
        self.suppression_store = SuppressionStore()
        self.suppressor = EpisodeSuppressor(suppression, self.suppression_store)
        self.trend = trend if trend is not None else TrendTracker()

        self.counters = PipelineCounters()
        self.running = False
        self._tasks: list[asyncio.Task[None]] = []
        self._dispatches: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(
        cls,
        config: "Config",
        sink: NotificationSink,
        eligibility: Eligibility | None = None,
    ) -> "AlertPipeline":
        return cls(
            sink=sink,
            thresholds=config.detection.to_thresholds(),
            suppression=config.suppression.to_settings(),
            window_seconds=config.window.window_seconds,
            min_events=config.window.min_events,
            mode=config.pipeline.mode,
            sweep_interval_seconds=config.pipeline.sweep_interval_seconds,
            gc_interval_seconds=config.pipeline.gc_interval_seconds,
            trend=TrendTracker(
                config.trend.context_windows,
                config.trend.imbalance_threshold,
            ),
            eligibility=eligibility,
        )

    async def ingest(self, event: TradeEvent) -> Alert | None:
        self.counters.events_received += 1

        if self.eligibility is not None and not self.eligibility.is_eligible(event.instrument):
            self.counters.events_ineligible += 1
            return None

        if not self.windows.add_event(event.instrument, event):
            self.counters.events_invalid += 1
            return None
        self.trend.add(event)

        if self.mode == "per_event":
            return self.evaluate(event.instrument, self.clock())
        return None

    def evaluate(self, instrument: str, now: float) -> Alert | None:
        stats = self.windows.stats_of(instrument, now)
        if stats is None:
            return None

        reason = rejection_reason(stats, self.thresholds)
        if reason is not None:
            logger.debug(f"No signal for {instrument}: {reason}")
            return None

        decision = self.suppressor.gate(stats, now)
        if not decision.allowed:
            self.counters.alerts_suppressed += 1
            logger.info(
                f"Suppressed {instrument} {stats.dominant_side.value} "
                f"${stats.total_volume:,.0f}: {decision.reason}"
            )
            return None

        # 先记录再推送，推送失败也算已告警
        self.suppressor.record(stats, now)
        self.windows.reset(instrument)

        alert = Alert(
            instrument=instrument,
            stats=stats,
            classification=classify(stats),
            context=self.trend.context(instrument, now),
            raised_at=now,
        )
        self.counters.alerts_raised += 1
        logger.info(
            f"Alert: {instrument} {alert.classification.label} "
            f"${stats.total_volume:,.0f} {stats.dominance_pct:.1f}% "
            f"{stats.price_change_pct:+.2f}% ({decision.reason})"
        )
        self._schedule_dispatch(alert)
        return alert

    def sweep(self, now: float | None = None) -> list[Alert]:
        now = self.clock() if now is None else now
        alerts = []
        for instrument in self.windows.active_instruments():
            alert = self.evaluate(instrument, now)
            if alert:
                alerts.append(alert)
        return alerts

    def maintenance(self, now: float | None = None) -> dict[str, int]:
        now = self.clock() if now is None else now
        return {
            "suppression_records": self.suppressor.prune(now),
            "windows": self.windows.evict_all(now),
            "trend": self.trend.prune(now),
        }

    def _schedule_dispatch(self, alert: Alert) -> None:
        task = asyncio.create_task(self._dispatch(alert))
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)

    async def _dispatch(self, alert: Alert) -> None:
        try:
            await self.sink.dispatch(
                alert.instrument, alert.stats, alert.classification, alert.context
            )
            self.counters.alerts_sent += 1
        except Exception as e:
            self.counters.dispatch_failures += 1
            logger.error(f"Failed to dispatch alert for {alert.instrument}: {e}")

    async def drain(self) -> None:
        if self._dispatches:
            await asyncio.gather(*list(self._dispatches), return_exceptions=True)

    async def _sweep_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Sweep failed: {e}")

    async def _maintenance_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.gc_interval_seconds)
            try:
                removed = self.maintenance()
                if any(removed.values()):
                    logger.debug(f"Maintenance removed: {removed}")
            except Exception as e:
                logger.error(f"Maintenance failed: {e}")

    async def start(self) -> None:
        self.running = True
        if self.mode == "sweep":
            self._tasks.append(asyncio.create_task(self._sweep_loop()))
        self._tasks.append(asyncio.create_task(self._maintenance_loop()))
        logger.info(f"Alert pipeline started ({self.mode} mode)")

    async def close(self) -> None:
        self.running = False
        for task in [*self._tasks, *self._dispatches]:
            task.cancel()
        await asyncio.gather(*self._tasks, *self._dispatches, return_exceptions=True)
        self._tasks.clear()
        logger.info("Alert pipeline stopped")
