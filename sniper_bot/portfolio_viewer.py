"""
Portfolio Viewer

Re-prices every sniped position from market data, stores the new marks and
reports the result to the log and to Telegram.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from .portfolio import PortfolioStore
from .solana.market_data import BirdeyeClient
from .utils.logger import setup_logger
from .utils.telegram import TelegramNotifier, format_portfolio_message, summarize_portfolio

logger = setup_logger(__name__)

MAX_SANE_PRICE = 1_000_000


class PortfolioViewer:
    """Refresh prices and publish a portfolio overview."""

    def __init__(
        self,
        config: Dict,
        store: PortfolioStore,
        market_data: BirdeyeClient,
        notifier: TelegramNotifier,
    ):
        self.store = store
        self.market_data = market_data
        self.notifier = notifier
        self.request_delay = float(config.get("market_data", {}).get("price_request_delay", 0.5))

    async def fetch_price(self, mint: str) -> Optional[float]:
        try:
            price = await self.market_data.get_price(mint)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning(f"Price lookup failed for {mint}: {exc}")
            return None
        if price is None or price <= 0 or price > MAX_SANE_PRICE:
            logger.warning(f"Ignoring implausible price for {mint}: {price}")
            return None
        return price

    async def refresh(self) -> Dict[str, Any]:
        """Fetch current prices for every held mint and store the new marks."""
        portfolio = self.store.load_portfolio()
        mints = []
        for entry in portfolio["tokens"]:
            mint = entry.get("mint")
            if mint and mint not in mints:
                mints.append(mint)

        prices: Dict[str, Optional[float]] = {}
        for index, mint in enumerate(mints):
            if index and self.request_delay:
                await asyncio.sleep(self.request_delay)
            prices[mint] = await self.fetch_price(mint)

        return await self.store.update_prices(prices)

    async def report(self) -> Dict[str, Any]:
        portfolio = await self.refresh()
        summary = summarize_portfolio(portfolio)
        logger.info(
            f"📊 Portfolio: {summary['total_tokens']} tokens, "
            f"invested ${summary['total_invested']:.2f}, "
            f"value ${summary['total_value']:.2f}, "
            f"P&L ${summary['pnl']:.2f} ({summary['pnl_percent']:.2f}%)"
        )
        for entry in portfolio["tokens"]:
            logger.info(
                f"   {entry.get('symbol')}: {float(entry.get('tokensReceived') or 0):,.4f} tokens, "
                f"value ${float(entry.get('currentValue') or 0):.4f} "
                f"({float(entry.get('profitLossPercent') or 0):+.2f}%)"
            )
        await self.notifier.send_message(format_portfolio_message(portfolio))
        return portfolio
