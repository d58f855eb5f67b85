# tests/notifier/test_telegram.py
from unittest.mock import AsyncMock, MagicMock, patch

from liqwatch.aggregator.window_stats import WindowStats
from liqwatch.alert.detector import classify
from liqwatch.collector.market_data import MarketData
from liqwatch.storage.models import Side

STATS = WindowStats(
    instrument="XYZUSDT",
    buy_volume=0,
    sell_volume=1_019_000,
    total_volume=1_019_000,
    dominant_side=Side.SELL,
    dominance_pct=100.0,
    price_change_pct=-5.0,
    duration_sec=9,
    event_count=6,
    first_price=100,
    last_price=95,
)


async def test_send_message():
    with patch("liqwatch.notifier.telegram.Bot") as MockBot:
        mock_bot = MagicMock()
        mock_bot.send_message = AsyncMock()
        MockBot.return_value = mock_bot

        from liqwatch.notifier.telegram import TelegramNotifier

        notifier = TelegramNotifier(bot_token="test", chat_id="123")
        await notifier.send_message("Hello")

        mock_bot.send_message.assert_called_once_with(
            chat_id="123",
            text="Hello",
            parse_mode="HTML",
        )


async def test_dispatch_formats_alert_with_market_data():
    with patch("liqwatch.notifier.telegram.Bot") as MockBot:
        mock_bot = MagicMock()
        mock_bot.send_message = AsyncMock()
        MockBot.return_value = mock_bot

        from liqwatch.notifier.telegram import TelegramNotifier

        market_data = MagicMock()
        market_data.fetch = AsyncMock(return_value=MarketData(funding_rate=0.0001))
        notifier = TelegramNotifier(bot_token="test", chat_id="123", market_data=market_data)

        await notifier.dispatch("XYZUSDT", STATS, classify(STATS))

        market_data.fetch.assert_awaited_once_with("XYZUSDT")
        text = mock_bot.send_message.call_args.kwargs["text"]
        assert "多头爆仓" in text
        assert "资金费率" in text


async def test_status_command_uses_callback():
    with patch("liqwatch.notifier.telegram.Bot"):
        from liqwatch.notifier.telegram import TelegramNotifier

        notifier = TelegramNotifier(bot_token="test", chat_id="123")
        notifier.on_status = AsyncMock(return_value="ok")

        update = MagicMock()
        update.message.reply_text = AsyncMock()
        await notifier._handle_status(update, MagicMock())

        update.message.reply_text.assert_awaited_once_with("ok")


async def test_status_command_without_callback():
    with patch("liqwatch.notifier.telegram.Bot"):
        from liqwatch.notifier.telegram import TelegramNotifier

        notifier = TelegramNotifier(bot_token="test", chat_id="123")

        update = MagicMock()
        update.message.reply_text = AsyncMock()
        await notifier._handle_status(update, MagicMock())

        update.message.reply_text.assert_awaited_once_with("系统运行中")


async def test_dispatch_includes_symbol_metadata():
    from liqwatch.collector.eligibility import SymbolMetadata

    with patch("liqwatch.notifier.telegram.Bot") as MockBot:
        mock_bot = MagicMock()
        mock_bot.send_message = AsyncMock()
        MockBot.return_value = mock_bot

        from liqwatch.notifier.telegram import TelegramNotifier

        meta = SymbolMetadata("XYZUSDT", 95, 5_000_000, open_interest_usd=30_000_000, market_cap=60_000_000)
        lookup = MagicMock(return_value=meta)
        notifier = TelegramNotifier(bot_token="test", chat_id="123", metadata=lookup)

        await notifier.dispatch("XYZUSDT", STATS, classify(STATS))

        lookup.assert_called_once_with("XYZUSDT")
        text = mock_bot.send_message.call_args.kwargs["text"]
        assert "$60.00M" in text
        assert "OI / MC: 0.50" in text
