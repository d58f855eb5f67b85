# liqwatch/notifier/telegram.py
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from telegram import Bot, BotCommand, Update
from telegram.ext import Application, CommandHandler, ContextTypes

from liqwatch.aggregator.trend import TrendContext
from liqwatch.aggregator.window_stats import WindowStats
from liqwatch.alert.detector import Classification
from liqwatch.collector.eligibility import SymbolMetadata
from liqwatch.collector.market_data import MarketDataFetcher

from .formatter import format_liquidation_alert

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = """
🔔 <b>Liquidation Watch</b> - 合约爆仓监控

<b>功能：</b>
• 滑动窗口聚合单边成交
• 价格方向确认
• 冷却 + 去重，避免重复推送

输入 /help 查看所有命令
"""

HELP_MESSAGE = """
📖 <b>命令列表</b>

/start - 开始使用
/help - 查看帮助
/status - 查看系统状态
"""

BOT_COMMANDS = [
    BotCommand("start", "开始使用"),
    BotCommand("help", "查看帮助"),
    BotCommand("status", "系统状态"),
]


class TelegramNotifier:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        market_data: MarketDataFetcher | None = None,
        metadata: Callable[[str], SymbolMetadata | None] | None = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.market_data = market_data
        self.metadata = metadata
        self.bot = Bot(token=bot_token)
        self.app: Application | None = None  # type: ignore[type-arg]

        # Callbacks
        self.on_status: Callable[[], Coroutine[Any, Any, str]] | None = None

    async def send_message(self, text: str) -> None:
        await self.bot.send_message(
            chat_id=self.chat_id,
            text=text,
            parse_mode="HTML",
        )

    async def dispatch(
        self,
        instrument: str,
        stats: WindowStats,
        classification: Classification,
        context: TrendContext | None = None,
    ) -> None:
        market = None
        if self.market_data:
            market = await self.market_data.fetch(instrument)

        meta = self.metadata(instrument) if self.metadata else None

        text = format_liquidation_alert(instrument, stats, classification, context, market, meta)
        await self.send_message(text)

    async def _handle_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return

        if self.on_status:
            text = await self.on_status()
            await update.message.reply_text(text)
        else:
            await update.message.reply_text("系统运行中")

    async def _handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return
        await update.message.reply_text(WELCOME_MESSAGE, parse_mode="HTML")

    async def _handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return
        await update.message.reply_text(HELP_MESSAGE, parse_mode="HTML")

    def setup_handlers(self, app: Application) -> None:  # type: ignore[type-arg]
        app.add_handler(CommandHandler("start", self._handle_start))
        app.add_handler(CommandHandler("help", self._handle_help))
        app.add_handler(CommandHandler("status", self._handle_status))

    async def start_polling(self) -> None:
        self.app = Application.builder().token(self.bot_token).build()
        self.setup_handlers(self.app)
        await self.app.initialize()
        await self.app.start()

        # Set bot command menu
        await self.bot.set_my_commands(BOT_COMMANDS)

        if self.app.updater:
            await self.app.updater.start_polling()

    async def stop_polling(self) -> None:
        if self.app:
            if self.app.updater:
                await self.app.updater.stop()
            await self.app.stop()
            await self.app.shutdown()
