"""
Telegram Notifications

Sends HTML-formatted messages to a Telegram chat through the Bot API and
formats the snipe, error and portfolio messages the bot emits.
"""

from __future__ import annotations

import asyncio
import html
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .logger import setup_logger

logger = setup_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier:
    """Post messages to one Telegram chat; logs instead when not configured."""

    def __init__(self, bot_token: Optional[str] = None, chat_id: Optional[str] = None):
        self.bot_token = bot_token or ""
        self.chat_id = str(chat_id or "")
        if not self.enabled:
            logger.warning("Telegram not configured - notifications will only be logged")

    @classmethod
    def from_config(cls, config: Dict) -> "TelegramNotifier":
        telegram_config = config.get("telegram", {})
        return cls(telegram_config.get("bot_token"), telegram_config.get("chat_id"))

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def send_message(self, text: str, parse_mode: str = "HTML") -> bool:
        """Send ``text`` and return True when Telegram accepted it."""
        if not self.enabled:
            logger.info(f"📱 Telegram notification (not configured):\n{text}")
            return False

        url = TELEGRAM_API_URL.format(token=self.bot_token)
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(url, json=payload) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        logger.error(f"Telegram send failed: {resp.status} - {body}")
                        return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error(f"Error sending Telegram message: {exc}")
            return False

        logger.info("📱 Telegram notification sent")
        return True


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def summarize_portfolio(portfolio: Mapping[str, Any]) -> Dict[str, float]:
    """Totals and P&L for a portfolio document."""
    invested = float(portfolio.get("totalInvested") or 0.0)
    value = float(portfolio.get("totalValue") or 0.0)
    pnl = value - invested
    return {
        "total_tokens": len(portfolio.get("tokens") or []),
        "total_invested": invested,
        "total_value": value,
        "pnl": pnl,
        "pnl_percent": (pnl / invested * 100) if invested > 0 else 0.0,
    }


def format_snipe_notification(record, portfolio: Mapping[str, Any]) -> str:
    """Message announcing a completed snipe."""
    summary = summarize_portfolio(portfolio)
    symbol = html.escape(record.symbol or "?")
    name = html.escape(record.name or "Unknown")
    header = "🧪 <b>DRY RUN SNIPE</b>" if record.dry_run else "🚀 <b>SUCCESSFUL SNIPE!</b>"
    if record.dry_run:
        tx_line = f"🔗 <b>Transaction:</b> <code>{record.transaction_signature}</code>"
    else:
        tx_line = (
            f'🔗 <b>Transaction:</b> <a href="https://solscan.io/tx/{record.transaction_signature}">'
            "View on Solscan</a>"
        )
    return (
        f"{header}\n\n"
        f"💰 <b>Token:</b> {symbol} ({name})\n"
        f"📍 <b>Mint:</b> <code>{record.mint}</code>\n"
        f"💵 <b>Amount:</b> ${record.amount_spent:,.2f} USDT\n"
        f"🎯 <b>Received:</b> {record.tokens_received:,.4f} {symbol}\n"
        f"💲 <b>Price:</b> ${record.price:.8f}\n"
        f"💧 <b>Liquidity:</b> ${record.liquidity:,.0f}\n"
        f"📊 <b>Market Cap:</b> ${record.market_cap:,.0f}\n\n"
        f"{tx_line}\n\n"
        f"📈 <b>Portfolio Summary:</b>\n"
        f"   • Total Tokens: {summary['total_tokens']}\n"
        f"   • Total Invested: ${summary['total_invested']:.2f}\n"
        f"   • Current Value: ${summary['total_value']:.2f}\n"
        f"   • P&amp;L: ${summary['pnl']:.2f} ({summary['pnl_percent']:.2f}%)\n\n"
        f"⏰ <b>Time:</b> {_now()}"
    )


def format_error_notification(error: str, context: str) -> str:
    return (
        "❌ <b>BOT ERROR</b>\n\n"
        f"🔍 <b>Context:</b> {html.escape(context)}\n"
        f"⚠️ <b>Error:</b> {html.escape(str(error))}\n\n"
        f"⏰ <b>Time:</b> {_now()}"
    )


def format_portfolio_message(portfolio: Mapping[str, Any], max_tokens: int = 10) -> str:
    """Portfolio overview listing the most recent positions."""
    summary = summarize_portfolio(portfolio)
    lines = [
        "📊 <b>PORTFOLIO UPDATE</b>",
        "",
        f"💰 <b>Total Invested:</b> ${summary['total_invested']:.2f}",
        f"💎 <b>Current Value:</b> ${summary['total_value']:.2f}",
        f"📈 <b>P&amp;L:</b> ${summary['pnl']:.2f} ({summary['pnl_percent']:.2f}%)",
        f"🎯 <b>Total Tokens:</b> {summary['total_tokens']}",
    ]
    tokens = list(portfolio.get("tokens") or [])[-max_tokens:]
    if tokens:
        lines.append("")
        for entry in tokens:
            pnl_pct = float(entry.get("profitLossPercent") or 0.0)
            marker = "🟢" if pnl_pct >= 0 else "🔴"
            lines.append(
                f"{marker} {html.escape(str(entry.get('symbol') or '?'))}: "
                f"${float(entry.get('currentValue') or 0.0):.2f} ({pnl_pct:+.2f}%)"
            )
    lines.extend(["", f"⏰ <b>Updated:</b> {_now()}"])
    return "\n".join(lines)
