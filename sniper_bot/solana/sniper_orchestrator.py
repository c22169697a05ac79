"""
Sniper Orchestrator

Wires the pool monitor and the backup poller into a single evaluation
pipeline: real-time pre-filter, market-data enrichment, snipe filters, an
in-flight guard, safety checks and execution.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional

from solders.keypair import Keypair

from ..portfolio import PortfolioStore
from ..utils.logger import setup_logger
from ..utils.seen_set import SeenSet
from ..utils.telegram import TelegramNotifier
from ..utils.telemetry import telemetry
from .executor import ExecutionResult, SnipeExecutor
from .filters import FilterThresholds, evaluate_snipe_filters, passes_realtime_filters
from .jupiter import JupiterClient
from .market_data import BirdeyeClient
from .models import WSOL_MINT, PoolCandidate, SnipeStage, TokenMetrics
from .pool_monitor import PoolMonitor
from .rpc import SolanaRpc
from .safety import SafetyChecker
from .scanner import TokenListPoller

logger = setup_logger(__name__)


@dataclass
class OrchestratorStats:
    """Pipeline counters."""

    candidates_received: int = 0
    prefilter_rejections: int = 0
    enrichment_failures: int = 0
    filter_rejections: int = 0
    duplicate_attempts: int = 0
    safety_rejections: int = 0
    snipes_attempted: int = 0
    successful_snipes: int = 0
    failed_snipes: int = 0


class SniperOrchestrator:
    """
    Coordinates detection, evaluation and execution.

    Features:
    - Real-time pool monitor and backup polling feeding one pipeline
    - At most one attempt per token mint across both detection paths
    - Start/stop lifecycle for every background task
    """

    def __init__(
        self,
        config: Dict,
        wallet: Keypair,
        rpc: Optional[SolanaRpc] = None,
        market_data: Optional[BirdeyeClient] = None,
        jupiter: Optional[JupiterClient] = None,
        notifier: Optional[TelegramNotifier] = None,
        portfolio: Optional[PortfolioStore] = None,
    ):
        self.config = config
        self.orchestrator_config = config.get("orchestrator", {})

        self.rpc = rpc or SolanaRpc(config)
        self.market_data = market_data or BirdeyeClient(config)
        self.jupiter = jupiter or JupiterClient(config)
        self.notifier = notifier or TelegramNotifier.from_config(config)
        self.portfolio = portfolio or PortfolioStore(config)

        self.thresholds = FilterThresholds.from_config(config)
        self.quote_mint = config.get("pool_monitor", {}).get("quote_mint", WSOL_MINT)
        self.safety_checker = SafetyChecker(config, self.rpc, self.jupiter)
        self.executor = SnipeExecutor(
            config, self.rpc, self.jupiter, self.portfolio, self.notifier, wallet
        )

        self.pool_monitor: Optional[PoolMonitor] = None
        if config.get("pool_monitor", {}).get("enabled", True):
            self.pool_monitor = PoolMonitor(config, self.rpc, self.handle_pool_candidate)

        self.poller: Optional[TokenListPoller] = None
        if config.get("scanner", {}).get("enabled", True):
            self.poller = TokenListPoller(
                config, self.market_data, self.evaluate_token, self.notifier, self.thresholds
            )

        # mints already claimed for a snipe attempt, shared by both paths
        self.attempted_tokens = SeenSet(
            maxsize=int(self.orchestrator_config.get("attempted_maxsize", 100_000)),
            ttl=float(self.orchestrator_config.get("attempted_ttl_seconds", 86_400)),
        )

        self.stats = OrchestratorStats()
        # how far each evaluated token got
        self.stage_counts: Dict[SnipeStage, int] = {stage: 0 for stage in SnipeStage}
        self.execution_callbacks: List[Callable] = []
        self.running = False
        self.started_at: Optional[float] = None

    async def start(self):
        """Start the portfolio writer, pool monitor and backup poller."""
        if self.running:
            return
        self.running = True
        self.started_at = time.time()
        await self.portfolio.start()
        if self.pool_monitor:
            await self.pool_monitor.start()
        if self.poller:
            await self.poller.start()
        logger.info("🚀 Sniper orchestrator started")

    async def stop(self):
        """Stop detection, let in-flight snipes finish, then flush the portfolio."""
        if not self.running:
            return
        self.running = False
        if self.poller:
            await self.poller.stop()
        if self.pool_monitor:
            await self.pool_monitor.stop()
        await self.portfolio.stop()
        await self.rpc.close()
        logger.info("Sniper orchestrator stopped")

    def add_execution_callback(self, callback: Callable):
        """Register ``callback(result)`` to run after every execution attempt."""
        self.execution_callbacks.append(callback)

    async def handle_pool_candidate(self, candidate: PoolCandidate) -> Optional[ExecutionResult]:
        """Real-time path: pre-filter, enrich, then evaluate."""
        self.stats.candidates_received += 1
        passed, reason = passes_realtime_filters(candidate, self.thresholds, self.quote_mint)
        if not passed:
            self.stats.prefilter_rejections += 1
            logger.info(f"⏭️ Skipping pool {candidate.pool_id}: {reason}")
            return None

        metrics = await self.market_data.enrich(candidate)
        if metrics is None:
            self.stats.enrichment_failures += 1
            return None
        return await self.evaluate_token(metrics, candidate)

    async def evaluate_token(
        self, metrics: TokenMetrics, candidate: Optional[PoolCandidate] = None
    ) -> Optional[ExecutionResult]:
        """Filters, in-flight claim, safety checks and execution for one token."""
        source = candidate.detection_method.value if candidate else "manual"
        logger.info(f"🔎 Evaluating {metrics.symbol or metrics.address} from {source}")
        self._mark(SnipeStage.DETECTED)

        passed, reason = evaluate_snipe_filters(metrics, self.thresholds)
        if not passed:
            self.stats.filter_rejections += 1
            telemetry.inc("orchestrator.filter_rejections")
            logger.info(f"❌ {metrics.symbol or metrics.address} rejected by filters: {reason}")
            self._mark(SnipeStage.REJECTED)
            return None
        self._mark(SnipeStage.FILTERED)

        if not self.attempted_tokens.add_if_absent(metrics.address):
            self.stats.duplicate_attempts += 1
            logger.info(f"⏭️ {metrics.address} already claimed for a snipe attempt")
            return None

        report = await self.safety_checker.check_token(metrics.address)
        if not report.passed:
            self.stats.safety_rejections += 1
            logger.info(
                f"🛑 {metrics.symbol} failed safety ({report.failed_check}): {report.failure_reason}"
            )
            self._mark(SnipeStage.REJECTED)
            return None
        self._mark(SnipeStage.SAFETY_CHECKED)

        self.stats.snipes_attempted += 1
        result = await self.executor.execute_snipe(metrics)
        telemetry.gauge("orchestrator.execution_time", result.execution_time)
        if result.success:
            self.stats.successful_snipes += 1
            self._mark(SnipeStage.RECORDED)
        else:
            self.stats.failed_snipes += 1
            self._mark(SnipeStage.FAILED)

        for callback in self.execution_callbacks:
            try:
                outcome = callback(result)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as exc:
                logger.error(f"Execution callback error: {exc}")
        return result

    def _mark(self, stage: SnipeStage):
        self.stage_counts[stage] += 1
        telemetry.inc(f"orchestrator.stage.{stage.value}")

    def get_statistics(self) -> Dict:
        stats = asdict(self.stats)
        stats["stages"] = {stage.value: count for stage, count in self.stage_counts.items()}
        stats["uptime_seconds"] = time.time() - self.started_at if self.started_at else 0.0
        if self.pool_monitor:
            stats["pool_monitor"] = dict(self.pool_monitor.stats)
        if self.poller:
            stats["poller"] = dict(self.poller.stats)
        stats["executor"] = dict(self.executor.stats)
        stats["telemetry"] = telemetry.snapshot()
        return stats
