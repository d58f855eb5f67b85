# liqwatch/storage/window.py
import logging
from collections import deque
from dataclasses import dataclass, field

from liqwatch.aggregator.window_stats import WindowStats, compute_window_stats
from liqwatch.storage.models import TradeEvent, is_valid_event

logger = logging.getLogger(__name__)

MIN_WINDOW_EVENTS = 2


@dataclass
class RollingWindow:
    start_price: float
    end_price: float
    events: deque[TradeEvent] = field(default_factory=deque)

    @property
    def newest_at(self) -> float | None:
        return self.events[-1].observed_at if self.events else None


class RollingWindowStore:
    """按品种维护的滑动时间窗口

    淘汰是惰性的：每次读取窗口内容前先淘汰过期事件，空窗口直接删除。
    """

    def __init__(self, window_seconds: float, min_events: int = MIN_WINDOW_EVENTS):
        self.window_seconds = window_seconds
        self.min_events = max(MIN_WINDOW_EVENTS, min_events)
        self._windows: dict[str, RollingWindow] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, instrument: object) -> bool:
        return instrument in self._windows

    def add_event(self, instrument: str, event: TradeEvent, now: float | None = None) -> bool:
        if not is_valid_event(event):
            logger.debug(f"Dropped invalid event for {instrument}: {event}")
            return False

        window = self._windows.get(instrument)
        if window is None:
            window = RollingWindow(start_price=event.price, end_price=event.price)
            self._windows[instrument] = window
        elif window.newest_at is not None and event.observed_at < window.newest_at:
            logger.debug(f"Dropped out-of-order event for {instrument}: {event}")
            return False

        window.events.append(event)
        window.end_price = event.price
        self.evict(instrument, event.observed_at if now is None else now)
        return True

    def evict(self, instrument: str, now: float) -> None:
        window = self._windows.get(instrument)
        if window is None:
            return

        events = window.events
        while events and now - events[0].observed_at >= self.window_seconds:
            events.popleft()

        if not events:
            del self._windows[instrument]
            return
        window.start_price = events[0].price

    def evict_all(self, now: float) -> int:
        """淘汰所有窗口，返回被删除的品种数"""
        before = len(self._windows)
        for instrument in list(self._windows):
            self.evict(instrument, now)
        return before - len(self._windows)

    def events_of(self, instrument: str, now: float) -> list[TradeEvent]:
        self.evict(instrument, now)
        window = self._windows.get(instrument)
        return list(window.events) if window else []

    def stats_of(self, instrument: str, now: float) -> WindowStats | None:
        self.evict(instrument, now)
        window = self._windows.get(instrument)
        if window is None or len(window.events) < self.min_events:
            return None
        return compute_window_stats(instrument, window.events)

    def reset(self, instrument: str) -> None:
        self._windows.pop(instrument, None)

    def active_instruments(self) -> list[str]:
        return [s for s, w in self._windows.items() if w.events]
