# liqwatch/aggregator/window_stats.py
import math
from collections.abc import Iterable
from dataclasses import dataclass

from liqwatch.storage.models import Side, TradeEvent


@dataclass(frozen=True)
class WindowStats:
    instrument: str
    buy_volume: float
    sell_volume: float
    total_volume: float
    dominant_side: Side
    dominance_pct: float
    price_change_pct: float
    duration_sec: float
    event_count: int
    first_price: float
    last_price: float


def compute_window_stats(instrument: str, events: Iterable[TradeEvent]) -> WindowStats | None:
    """单次遍历窗口事件，计算成交量/主导方向/价格变化

    Returns:
        WindowStats，窗口为空、总成交量为 0 或首个价格非正时返回 None
    """
    buy_volume = 0.0
    sell_volume = 0.0
    count = 0
    first: TradeEvent | None = None
    last: TradeEvent | None = None

    for event in events:
        if first is None:
            first = event
        last = event
        count += 1
        if event.side == Side.BUY:
            buy_volume += event.notional_value
        else:
            sell_volume += event.notional_value

    if first is None or last is None:
        return None

    total = buy_volume + sell_volume
    if not math.isfinite(total) or total <= 0:
        return None
    if first.price <= 0:
        return None

    # 平局归为卖方
    dominant = Side.BUY if buy_volume > sell_volume else Side.SELL
    dominance = max(buy_volume, sell_volume) / total * 100
    price_change = (last.price - first.price) / first.price * 100

    return WindowStats(
        instrument=instrument,
        buy_volume=buy_volume,
        sell_volume=sell_volume,
        total_volume=total,
        dominant_side=dominant,
        dominance_pct=dominance,
        price_change_pct=price_change,
        duration_sec=last.observed_at - first.observed_at,
        event_count=count,
        first_price=first.price,
        last_price=last.price,
    )
