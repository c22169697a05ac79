"""
Raydium Pool Monitor

Subscribes to the Raydium AMM v4 program and turns pool-creation events into
``PoolCandidate`` records. Two detection modes are supported:

- ``logs``: transaction log subscription; transactions whose logs contain
  the ``initialize2`` marker are fetched and decoded.
- ``account_change``: program account subscription filtered to v4 pool
  accounts quoted in SOL; pools opening after start-up are emitted.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..utils.logger import setup_logger
from ..utils.seen_set import SeenSet
from ..utils.telemetry import telemetry
from .models import WSOL_MINT, DetectionMethod, PoolCandidate
from .pool_layout import (
    LIQUIDITY_STATE_V4_SPAN,
    QUOTE_MINT_OFFSET,
    RAYDIUM_AMM_V4_PROGRAM_ID,
    LayoutError,
    decode_liquidity_state_v4,
    find_initialize2,
)
from .rpc import SolanaRpc

logger = setup_logger(__name__)

PoolCallback = Callable[[PoolCandidate], Awaitable[Any]]


class PoolMonitor:
    """
    Real-time detection of new Raydium pools.

    Features:
    - Log or account-change detection
    - Bounded signature and pool deduplication
    - Automatic reconnection after subscription errors
    - Concurrent candidate resolution
    """

    def __init__(self, config: Dict, rpc: SolanaRpc, on_new_pool: PoolCallback):
        self.rpc = rpc
        self.on_new_pool = on_new_pool
        self.monitor_config = config.get("pool_monitor", {})

        self.mode = self.monitor_config.get("mode", "logs")
        self.program_id = self.monitor_config.get("program_id", RAYDIUM_AMM_V4_PROGRAM_ID)
        self.log_marker = self.monitor_config.get("log_marker", "initialize2")
        self.log_commitment = self.monitor_config.get("log_commitment", "finalized")
        self.account_commitment = self.monitor_config.get("account_commitment", "confirmed")
        self.quote_mint = self.monitor_config.get("quote_mint", WSOL_MINT)
        self.reconnect_interval = self.monitor_config.get("reconnect_interval", 5)

        maxsize = int(self.monitor_config.get("seen_maxsize", 100_000))
        ttl = float(self.monitor_config.get("seen_ttl_seconds", 3600))
        self.seen_signatures = SeenSet(maxsize=maxsize, ttl=ttl)
        self.seen_pools = SeenSet(maxsize=maxsize, ttl=ttl)

        self.start_time = time.time()
        self.monitoring = False
        self.monitor_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

        self.stats = {
            "events_received": 0,
            "duplicates_dropped": 0,
            "pools_detected": 0,
            "lookup_failures": 0,
            "connection_errors": 0,
        }

    async def start(self):
        """Start the subscription loop."""
        if self.monitoring:
            logger.warning("Pool monitor already running")
            return
        self.monitoring = True
        self.start_time = time.time()
        self.monitor_task = asyncio.create_task(self._monitor_loop())
        logger.info(f"👀 Pool monitor started ({self.mode} mode) on {self.program_id}")

    async def stop(self):
        """Close the subscription, then wait for in-flight candidates to finish.

        Candidate tasks may be mid-snipe, so they are drained, never cancelled.
        """
        if not self.monitoring:
            return
        self.monitoring = False
        if self.monitor_task:
            self.monitor_task.cancel()
            await asyncio.gather(self.monitor_task, return_exceptions=True)
            self.monitor_task = None

        if self._pending:
            logger.info(f"Waiting for {len(self._pending)} in-flight pool candidates")
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._pending.clear()
        logger.info("Pool monitor stopped")

    async def _monitor_loop(self):
        while self.monitoring:
            try:
                if self.mode == "account_change":
                    await self._consume_account_changes()
                else:
                    await self._consume_logs()
                logger.warning("Subscription ended, reconnecting...")
            except asyncio.CancelledError:
                break
            except Exception as exc:
                self.stats["connection_errors"] += 1
                logger.error(f"Error in pool subscription: {exc}")

            if self.monitoring:
                await asyncio.sleep(self.reconnect_interval)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _consume_logs(self):
        async for event in self.rpc.logs_subscribe(self.program_id, commitment=self.log_commitment):
            self._spawn(self.handle_log_event(event))

    async def _consume_account_changes(self):
        filters = [
            {"dataSize": LIQUIDITY_STATE_V4_SPAN},
            {"memcmp": {"offset": QUOTE_MINT_OFFSET, "bytes": self.quote_mint}},
        ]
        async for notification in self.rpc.program_subscribe(
            self.program_id, filters=filters, commitment=self.account_commitment
        ):
            self._spawn(self.handle_account_change(notification))

    # ------------------------------------------------------------------
    # Log mode
    # ------------------------------------------------------------------
    async def handle_log_event(self, event: Dict[str, Any]) -> Optional[PoolCandidate]:
        """Process one log notification; returns the emitted candidate, if any."""
        self.stats["events_received"] += 1
        signature = event.get("signature")
        if not signature:
            return None
        if not self.seen_signatures.add_if_absent(signature):
            self.stats["duplicates_dropped"] += 1
            return None

        logs = event.get("logs") or []
        if not any(self.log_marker in line for line in logs):
            return None
        if event.get("err"):
            logger.debug(f"Skipping failed pool transaction {signature}")
            return None

        logger.info(f"🆕 Pool initialization detected: {signature}")
        candidate = await self.extract_pool_from_transaction(signature)
        if candidate is None:
            return None
        if not self.seen_pools.add_if_absent(candidate.pool_id):
            self.stats["duplicates_dropped"] += 1
            return None

        await self._emit(candidate)
        return candidate

    async def extract_pool_from_transaction(self, signature: str) -> Optional[PoolCandidate]:
        try:
            transaction = await self.rpc.get_parsed_transaction(signature)
        except Exception as exc:
            self.stats["lookup_failures"] += 1
            logger.warning(f"Transaction lookup failed for {signature}: {exc}")
            return None
        if not transaction:
            self.stats["lookup_failures"] += 1
            logger.warning(f"Transaction {signature} not found")
            return None

        try:
            decoded = find_initialize2(transaction, self.program_id)
        except LayoutError as exc:
            self.stats["lookup_failures"] += 1
            logger.warning(f"Could not decode pool from {signature}: {exc}")
            return None

        accounts = decoded.accounts
        return PoolCandidate(
            address=accounts["coin_mint"],
            pool_id=accounts["amm"],
            base_mint=accounts["coin_mint"],
            quote_mint=accounts["pc_mint"],
            detection_method=DetectionMethod.TRANSACTION_LOG,
            signature=signature,
        )

    # ------------------------------------------------------------------
    # Account-change mode
    # ------------------------------------------------------------------
    async def handle_account_change(self, notification: Dict[str, Any]) -> Optional[PoolCandidate]:
        self.stats["events_received"] += 1
        pool_id = notification.get("pubkey")
        if not pool_id:
            return None
        if not self.seen_pools.add_if_absent(pool_id):
            self.stats["duplicates_dropped"] += 1
            return None

        try:
            encoded = notification["account"]["data"][0]
            state = decode_liquidity_state_v4(base64.b64decode(encoded))
        except (KeyError, IndexError, TypeError, binascii.Error, LayoutError) as exc:
            self.stats["lookup_failures"] += 1
            logger.warning(f"Could not decode pool account {pool_id}: {exc}")
            return None

        if state.pool_open_time <= self.start_time:
            return None

        candidate = PoolCandidate(
            address=state.base_mint,
            pool_id=pool_id,
            base_mint=state.base_mint,
            quote_mint=state.quote_mint,
            detection_method=DetectionMethod.ACCOUNT_CHANGE,
        )
        logger.info(f"🆕 New pool account {pool_id} opens at {state.pool_open_time}")
        await self._emit(candidate)
        return candidate

    async def _emit(self, candidate: PoolCandidate):
        self.stats["pools_detected"] += 1
        telemetry.inc("pool_monitor.pools_detected")
        try:
            await self.on_new_pool(candidate)
        except Exception as exc:
            logger.error(f"Error in new pool callback for {candidate.address}: {exc}")
