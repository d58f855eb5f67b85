# liqwatch/alert/detector.py
import math
from dataclasses import dataclass

from liqwatch.aggregator.window_stats import WindowStats
from liqwatch.storage.models import Side


@dataclass(frozen=True)
class DetectionThresholds:
    min_volume_usd: float = 1_000_000
    min_dominance_pct: float = 65
    min_price_change_pct: float = 0.5
    max_price_change_pct: float | None = None
    min_event_count: int = 3
    min_duration_sec: float = 0.0


@dataclass(frozen=True)
class Classification:
    liquidated_side: str  # long / short
    direction: str  # up / down
    label: str


def rejection_reason(stats: WindowStats, thresholds: DetectionThresholds) -> str | None:
    """返回第一个未通过的检查，全部通过返回 None"""
    if stats.total_volume < thresholds.min_volume_usd:
        return f"volume {stats.total_volume:,.0f} < {thresholds.min_volume_usd:,.0f}"

    if stats.dominance_pct < thresholds.min_dominance_pct:
        return f"dominance {stats.dominance_pct:.1f}% < {thresholds.min_dominance_pct}%"

    if stats.event_count < thresholds.min_event_count:
        return f"event count {stats.event_count} < {thresholds.min_event_count}"

    if stats.duration_sec < thresholds.min_duration_sec:
        return f"duration {stats.duration_sec:.1f}s < {thresholds.min_duration_sec}s"

    move = abs(stats.price_change_pct)
    if not math.isfinite(move) or move < thresholds.min_price_change_pct:
        return f"price change {stats.price_change_pct:+.2f}% below minimum"

    if thresholds.max_price_change_pct is not None and move > thresholds.max_price_change_pct:
        return f"price change {stats.price_change_pct:+.2f}% above maximum (anomaly)"

    # 空头爆仓 (主动买) 必须伴随上涨，多头爆仓 (主动卖) 必须伴随下跌
    if stats.dominant_side == Side.BUY and stats.price_change_pct <= 0:
        return "buy dominance without rising price"
    if stats.dominant_side == Side.SELL and stats.price_change_pct >= 0:
        return "sell dominance without falling price"

    return None


def should_alert(stats: WindowStats, thresholds: DetectionThresholds) -> bool:
    return rejection_reason(stats, thresholds) is None


def classify(stats: WindowStats) -> Classification:
    if stats.dominant_side == Side.BUY:
        return Classification(liquidated_side="short", direction="up", label="shorts liquidated")
    return Classification(liquidated_side="long", direction="down", label="longs liquidated")


def signature(stats: WindowStats, bucket_usd: float) -> str:
    bucket = math.floor(stats.total_volume / bucket_usd) if bucket_usd > 0 else 0
    return f"{stats.instrument}:{stats.dominant_side.value}:{bucket}"
