# liqwatch/aggregator/trend.py
from collections import deque
from dataclasses import dataclass, field

from liqwatch.storage.models import Side, TradeEvent

DEFAULT_CONTEXT_WINDOWS = {"2h": 7200, "5m": 300}


@dataclass
class TrendWindow:
    buy_volume: float = 0.0
    sell_volume: float = 0.0

    @property
    def total(self) -> float:
        return self.buy_volume + self.sell_volume

    @property
    def imbalance(self) -> float:
        if self.total <= 0:
            return 0.0
        return (self.buy_volume - self.sell_volume) / self.total


@dataclass
class TrendContext:
    instrument: str
    windows: dict[str, TrendWindow] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)  # long / short / balance


def trend_label(imbalance: float, threshold: float = 0.15) -> str:
    if imbalance > threshold:
        return "long"
    if imbalance < -threshold:
        return "short"
    return "balance"


class TrendTracker:
    """长周期主动买卖背景 (默认 2h / 5m)，独立于告警窗口"""

    def __init__(
        self,
        context_windows: dict[str, int] | None = None,
        imbalance_threshold: float = 0.15,
    ):
        self.context_windows = context_windows or dict(DEFAULT_CONTEXT_WINDOWS)
        self.imbalance_threshold = imbalance_threshold
        self.retention = max(self.context_windows.values())
        self._trades: dict[str, deque[tuple[float, Side, float]]] = {}

    def __len__(self) -> int:
        return len(self._trades)

    def add(self, event: TradeEvent) -> None:
        trades = self._trades.setdefault(event.instrument, deque())
        trades.append((event.observed_at, event.side, event.notional_value))
        self._evict(event.instrument, event.observed_at)

    def _evict(self, instrument: str, now: float) -> None:
        trades = self._trades.get(instrument)
        if trades is None:
            return
        while trades and now - trades[0][0] >= self.retention:
            trades.popleft()
        if not trades:
            del self._trades[instrument]

    def prune(self, now: float) -> int:
        before = len(self._trades)
        for instrument in list(self._trades):
            self._evict(instrument, now)
        return before - len(self._trades)

    def context(self, instrument: str, now: float) -> TrendContext | None:
        self._evict(instrument, now)
        trades = self._trades.get(instrument)
        if not trades:
            return None

        ctx = TrendContext(instrument=instrument)
        for name, seconds in self.context_windows.items():
            window = TrendWindow()
            for observed_at, side, notional in trades:
                if now - observed_at >= seconds:
                    continue
                if side == Side.BUY:
                    window.buy_volume += notional
                else:
                    window.sell_volume += notional
            ctx.windows[name] = window
            ctx.labels[name] = trend_label(window.imbalance, self.imbalance_threshold)
        return ctx
