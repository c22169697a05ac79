"""Tests for Telegram notification formatting and delivery."""

from unittest.mock import patch

import pytest

from factories import TOKEN_MINT, make_metrics
from sniper_bot.solana.models import DRY_RUN_SIGNATURE, SnipeRecord
from sniper_bot.utils.telegram import (
    TelegramNotifier,
    format_error_notification,
    format_portfolio_message,
    format_snipe_notification,
    summarize_portfolio,
)


def make_record(dry_run=False, signature="5nNtjezQMYBHvgSQmoRmJPiXGsPAWmJPoGSa64xanqrau"):
    return SnipeRecord.create(
        make_metrics(symbol="A<B", name="Alpha & Co"),
        amount_spent=1.0,
        tokens_received=1000.0,
        price_impact=1.2,
        slippage=5.0,
        transaction_signature=DRY_RUN_SIGNATURE if dry_run else signature,
        dry_run=dry_run,
    )


PORTFOLIO = {
    "tokens": [
        {"symbol": "UP", "currentValue": 1.5, "profitLossPercent": 50.0},
        {"symbol": "DOWN", "currentValue": 0.5, "profitLossPercent": -50.0},
    ],
    "totalInvested": 2.0,
    "totalValue": 2.0,
}


class TestFormatting:
    def test_summary(self):
        summary = summarize_portfolio({"tokens": [{}], "totalInvested": 4.0, "totalValue": 5.0})
        assert summary["total_tokens"] == 1
        assert summary["pnl"] == pytest.approx(1.0)
        assert summary["pnl_percent"] == pytest.approx(25.0)

    def test_summary_without_investment(self):
        assert summarize_portfolio({})["pnl_percent"] == 0.0

    def test_snipe_notification_links_transaction(self):
        message = format_snipe_notification(make_record(), PORTFOLIO)

        assert "SUCCESSFUL SNIPE!" in message
        assert TOKEN_MINT in message
        assert "https://solscan.io/tx/5nNtjezQMYBHvgSQmoRmJPiXGsPAWmJPoGSa64xanqrau" in message
        assert "A&lt;B" in message
        assert "Alpha &amp; Co" in message

    def test_dry_run_notification(self):
        message = format_snipe_notification(make_record(dry_run=True), PORTFOLIO)

        assert "DRY RUN SNIPE" in message
        assert DRY_RUN_SIGNATURE in message
        assert "solscan" not in message

    def test_error_notification(self):
        message = format_error_notification("boom <html>", "Token Analysis")
        assert "BOT ERROR" in message
        assert "Token Analysis" in message
        assert "boom &lt;html&gt;" in message

    def test_portfolio_message(self):
        message = format_portfolio_message(PORTFOLIO)
        assert "PORTFOLIO UPDATE" in message
        assert "🟢 UP: $1.50 (+50.00%)" in message
        assert "🔴 DOWN: $0.50 (-50.00%)" in message


class TestNotifier:
    def test_from_config(self):
        notifier = TelegramNotifier.from_config({"telegram": {"bot_token": "t", "chat_id": 42}})
        assert notifier.enabled
        assert notifier.chat_id == "42"

    @pytest.mark.asyncio
    async def test_unconfigured_notifier_only_logs(self):
        notifier = TelegramNotifier()

        with patch("sniper_bot.utils.telegram.aiohttp.ClientSession") as session:
            assert await notifier.send_message("hello") is False
        session.assert_not_called()
