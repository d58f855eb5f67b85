# liqwatch/main.py
import argparse
import asyncio
import logging
import signal
import time
from pathlib import Path

from liqwatch.client.coingecko import CoinGeckoClient
from liqwatch.client.mexc import MexcClient
from liqwatch.collector.base import BaseCollector
from liqwatch.collector.binance_liq import BINANCE_FORCE_ORDER_WS, BinanceLiquidationCollector
from liqwatch.collector.eligibility import EligibilityFilter
from liqwatch.collector.market_data import MarketDataFetcher
from liqwatch.collector.mexc_deals import MEXC_CONTRACT_WS, MexcDealsCollector
from liqwatch.collector.subscriptions import SubscriptionManager
from liqwatch.config import Config, load_config
from liqwatch.notifier.telegram import TelegramNotifier
from liqwatch.pipeline import AlertPipeline

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # 第三方库的请求日志过多
    logging.getLogger("httpx").setLevel(logging.WARNING)


class LiquidationMonitor:
    def __init__(self, config: Config):
        self.config = config
        self.mexc = MexcClient(base_url=config.exchange.rest_url)
        self.coingecko = CoinGeckoClient(base_url=config.eligibility.coingecko_api)
        self.eligibility = EligibilityFilter(
            config.eligibility,
            self.mexc if config.exchange.name == "mexc" else None,
            self.coingecko,
        )
        self.market_data = (
            MarketDataFetcher(config.exchange.name, config.market_data.cache_seconds)
            if config.market_data.enabled
            else None
        )
        self.notifier = TelegramNotifier(
            config.telegram.bot_token,
            config.telegram.chat_id,
            market_data=self.market_data,
            metadata=self.eligibility.metadata_of,
        )
        self.pipeline = AlertPipeline.from_config(config, self.notifier, self.eligibility)
        self.collector = self._build_collector()
        self.subscriptions = SubscriptionManager(
            self.collector, self.eligibility, config.eligibility.refresh_hours
        )
        self.start_time = time.time()

    def _build_collector(self) -> BaseCollector:
        exchange = self.config.exchange
        if exchange.name == "binance":
            return BinanceLiquidationCollector(
                on_event=self.pipeline.ingest,
                ws_url=exchange.ws_url or BINANCE_FORCE_ORDER_WS,
            )
        return MexcDealsCollector(
            on_event=self.pipeline.ingest,
            ws_url=exchange.ws_url or MEXC_CONTRACT_WS,
            contract_sizes=self.eligibility.contract_sizes,
        )

    async def _on_status(self) -> str:
        uptime = time.time() - self.start_time
        days = int(uptime // 86400)
        hours = int((uptime % 86400) // 3600)
        minutes = int((uptime % 3600) // 60)
        c = self.pipeline.counters

        return f"""🔧 系统状态

运行时间: {days}d {hours}h {minutes}m
交易所: {self.config.exchange.name} ({self.pipeline.mode})
监控品种: {len(self.eligibility.watchlist()) or "全部"}
活跃窗口: {len(self.pipeline.windows)}

事件: {c.events_received} (无效 {c.events_invalid} / 未入选 {c.events_ineligible})
告警: {c.alerts_raised} (已发送 {c.alerts_sent} / 失败 {c.dispatch_failures})
抑制: {c.alerts_suppressed}
"""

    async def init(self) -> None:
        await self.mexc.open()
        await self.coingecko.open()
        if self.market_data:
            await self.market_data.init()
        self.notifier.on_status = self._on_status

    async def run(self) -> None:
        await self.init()

        await self.pipeline.start()
        await self.collector.start()
        await self.notifier.start_polling()

        logger.info("Starting initial symbol filtering...")
        await self.subscriptions.refresh()
        await self.subscriptions.start()

        t = self.pipeline.thresholds
        logger.info(
            f"Liquidation Watch started | min volume ${t.min_volume_usd:,.0f} | "
            f"min dominance {t.min_dominance_pct}% | window {self.config.window.window_seconds}s | "
            f"cooldown {self.config.suppression.cooldown_minutes}m"
        )
        try:
            await self.notifier.send_message("🚀 Liquidation Watch 已启动")
        except Exception as e:
            logger.error(f"Failed to send startup notice: {e}")

        # Wait for shutdown signal
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        await stop_event.wait()

        # Cleanup
        try:
            await self.notifier.send_message("⛔ Liquidation Watch 已停止")
        except Exception as e:
            logger.error(f"Failed to send shutdown notice: {e}")
        await self.subscriptions.stop()
        await self.collector.stop()
        await self.pipeline.close()
        await self.notifier.stop_polling()
        if self.market_data:
            await self.market_data.close()
        await self.coingecko.close()
        await self.mexc.close()

        logger.info("Liquidation Watch stopped")


async def main(config_path: Path = Path("config.yaml")) -> None:
    config = load_config(config_path)
    setup_logging(config.logging.level)
    monitor = LiquidationMonitor(config)
    await monitor.run()


def cli() -> None:
    parser = argparse.ArgumentParser(description="Forced-liquidation burst alerts")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"), help="YAML config path")
    args = parser.parse_args()
    asyncio.run(main(args.config))


if __name__ == "__main__":
    cli()
