# liqwatch/notifier/formatter.py
import html

from liqwatch.aggregator.trend import TrendContext
from liqwatch.aggregator.window_stats import WindowStats
from liqwatch.alert.detector import Classification
from liqwatch.collector.eligibility import SymbolMetadata
from liqwatch.collector.market_data import MarketData

SEPARATOR = "━━━━━━━━━━━━━━━━━━━━"

TREND_LABELS = {
    "long": "偏多 📈",
    "short": "偏空 📉",
    "balance": "均衡 ⚖️",
}


def _format_usd(value: float) -> str:
    if abs(value) >= 1_000_000_000:
        return f"${value / 1_000_000_000:.2f}B"
    elif abs(value) >= 1_000_000:
        return f"${value / 1_000_000:.2f}M"
    elif abs(value) >= 1_000:
        return f"${value / 1_000:.0f}K"
    else:
        return f"${value:,.0f}"


def _format_duration(seconds: float) -> str:
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins}m {secs}s"


def format_liquidation_alert(
    instrument: str,
    stats: WindowStats,
    classification: Classification,
    context: TrendContext | None = None,
    market: MarketData | None = None,
    meta: SymbolMetadata | None = None,
) -> str:
    if classification.liquidated_side == "long":
        emoji, title = "🔴", "多头爆仓"
    else:
        emoji, title = "🟢", "空头爆仓"

    price_emoji = "📈" if stats.price_change_pct > 0 else "📉"
    lines = [
        f"{emoji} <b>{html.escape(instrument)} {title}</b>",
        f"成交量: {_format_usd(stats.total_volume)} ({_format_duration(stats.duration_sec)}, "
        f"{stats.event_count} 笔)",
        f"主导: {stats.dominance_pct:.1f}% {stats.dominant_side.value.upper()}",
        f"{price_emoji} 价格: {stats.price_change_pct:+.2f}% "
        f"({stats.first_price:g} → {stats.last_price:g})",
    ]

    if context and context.windows:
        lines.append(SEPARATOR)
        lines.append("🔮 趋势 (主动买卖):")
        for name, window in context.windows.items():
            label = TREND_LABELS.get(context.labels.get(name, "balance"), "")
            lines.append(
                f"  {name}: {label} | 买 {_format_usd(window.buy_volume)} / "
                f"卖 {_format_usd(window.sell_volume)}"
            )

    if market and (market.funding_rate is not None or market.open_interest_usd is not None):
        lines.append(SEPARATOR)
        if market.funding_rate is not None:
            lines.append(f"资金费率: {market.funding_rate * 100:+.4f}%")
        if market.open_interest_usd is not None:
            lines.append(f"持仓量 (OI): {_format_usd(market.open_interest_usd)}")

    if meta and meta.market_cap > 0:
        lines.append(SEPARATOR)
        lines.append(f"💎 市值 (MC): {_format_usd(meta.market_cap)}")
        if meta.open_interest_usd > 0:
            lines.append(f"📊 OI / MC: {meta.oi_mc_ratio:.2f}")

    return "\n".join(lines)
