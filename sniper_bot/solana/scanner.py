"""
Backup Token Poller

Periodically scans the Birdeye token list and new listings, in case the
real-time pool subscription misses a launch. New tokens passing the filters
are handed to the orchestrator, a few per cycle.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..utils.logger import setup_logger
from ..utils.seen_set import SeenSet
from ..utils.telegram import TelegramNotifier, format_error_notification
from .filters import FilterThresholds, passes_snipe_filters
from .market_data import BirdeyeClient
from .models import DetectionMethod, PoolCandidate, TokenMetrics

logger = setup_logger(__name__)

TokenCallback = Callable[[TokenMetrics, PoolCandidate], Awaitable[Any]]


class TokenListPoller:
    """Fixed-interval polling of Birdeye for tokens worth evaluating."""

    def __init__(
        self,
        config: Dict,
        market_data: BirdeyeClient,
        on_token: TokenCallback,
        notifier: TelegramNotifier,
        thresholds: Optional[FilterThresholds] = None,
    ):
        self.market_data = market_data
        self.on_token = on_token
        self.notifier = notifier
        self.thresholds = thresholds or FilterThresholds.from_config(config)
        self.scanner_config = config.get("scanner", {})

        self.poll_interval = float(self.scanner_config.get("poll_interval_seconds", 30))
        self.max_new_per_poll = int(self.scanner_config.get("max_new_tokens_per_poll", 3))
        self.seen_tokens = SeenSet(
            maxsize=int(self.scanner_config.get("seen_maxsize", 100_000)),
            ttl=float(self.scanner_config.get("seen_ttl_seconds", 86_400)),
        )

        self.scanning = False
        self.scan_task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self.stats = {"polls": 0, "tokens_fetched": 0, "tokens_selected": 0, "errors": 0}

    async def start(self):
        if self.scanning:
            logger.warning("Token poller already running")
            return
        self.scanning = True
        self._wake = asyncio.Event()
        self.scan_task = asyncio.create_task(self._poll_loop())
        logger.info(f"🔄 Backup polling started (every {self.poll_interval:.0f}s)")

    async def stop(self):
        """Stop polling; a cycle already handing tokens on runs to completion."""
        self.scanning = False
        if self._wake:
            self._wake.set()
        if self.scan_task:
            await asyncio.gather(self.scan_task, return_exceptions=True)
            self.scan_task = None
        logger.info("Backup polling stopped")

    async def _poll_loop(self):
        while self.scanning:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                self.stats["errors"] += 1
                logger.error(f"Error in token analysis: {exc}")
                await self.notifier.send_message(format_error_notification(str(exc), "Token Analysis"))
            if not self.scanning:
                break
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def poll_once(self) -> List[TokenMetrics]:
        """Run one polling cycle and return the tokens handed on."""
        self.stats["polls"] += 1
        token_list, new_listings = await asyncio.gather(
            self.market_data.get_token_list(), self.market_data.get_new_listings()
        )

        tokens = [
            TokenMetrics.from_birdeye(item)
            for item in list(new_listings) + list(token_list)
            if item.get("address")
        ]
        self.stats["tokens_fetched"] += len(tokens)

        passing = [t for t in tokens if passes_snipe_filters(t, self.thresholds)]
        fresh = []
        for token in passing:
            if token.address not in self.seen_tokens and token.address not in {f.address for f in fresh}:
                fresh.append(token)
        for token in tokens:
            self.seen_tokens.add_if_absent(token.address)

        logger.info(
            f"📊 Polled {len(tokens)} tokens: {len(passing)} passed filters, {len(fresh)} new"
        )

        selected = fresh[: self.max_new_per_poll]
        for token in selected:
            self.stats["tokens_selected"] += 1
            candidate = PoolCandidate(
                address=token.address,
                pool_id=None,
                base_mint=token.address,
                quote_mint="",
                detection_method=DetectionMethod.BIRDEYE_POLL,
            )
            await self.on_token(token, candidate)
        return selected
