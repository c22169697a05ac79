#!/usr/bin/env python3
"""
Sniper Bot CLI

Command-line entry point for running the full sniper, watching new pools
only, or reporting the portfolio.
"""

import argparse
import asyncio
import signal
import sys
from typing import Any, Dict, Optional

from ..config import ConfigError, load_config, load_wallet, parse_overrides, validate_config
from ..portfolio import PortfolioStore
from ..portfolio_viewer import PortfolioViewer
from ..utils.logger import set_log_level, setup_logger
from ..utils.telegram import TelegramNotifier
from .market_data import BirdeyeClient
from .models import PoolCandidate
from .pool_monitor import PoolMonitor
from .rpc import SolanaRpc
from .sniper_orchestrator import SniperOrchestrator

logger = setup_logger(__name__)


class SniperCLI:
    """Command-line interface for the sniper service."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.orchestrator: Optional[SniperOrchestrator] = None
        self.running = False

    async def run(self):
        """Run the full sniper until interrupted."""
        wallet = load_wallet(self.config)
        self.orchestrator = SniperOrchestrator(self.config, wallet)
        self.orchestrator.add_execution_callback(self._on_execution)

        try:
            await self.orchestrator.start()
            self.running = True
            logger.info(f"💼 Wallet: {wallet.pubkey()}")
            while self.running:
                await asyncio.sleep(1)
        finally:
            await self.orchestrator.stop()
            logger.info(f"Final statistics: {self.orchestrator.get_statistics()}")

    async def monitor(self, duration: Optional[float] = None):
        """Watch for new pools and log them without evaluating."""
        rpc = SolanaRpc(self.config)
        monitor = PoolMonitor(self.config, rpc, self._on_pool)
        try:
            await monitor.start()
            self.running = True
            deadline = asyncio.get_running_loop().time() + duration if duration else None
            while self.running:
                if deadline and asyncio.get_running_loop().time() >= deadline:
                    break
                await asyncio.sleep(1)
        finally:
            await monitor.stop()
            await rpc.close()
            logger.info(f"Monitor statistics: {monitor.stats}")

    async def portfolio(self):
        store = PortfolioStore(self.config)
        viewer = PortfolioViewer(
            self.config, store, BirdeyeClient(self.config), TelegramNotifier.from_config(self.config)
        )
        try:
            await viewer.report()
        finally:
            await store.stop()

    async def _on_pool(self, candidate: PoolCandidate):
        logger.info(f"🆕 NEW POOL: {candidate.pool_id}")
        logger.info(f"   Base mint: {candidate.base_mint}")
        logger.info(f"   Quote mint: {candidate.quote_mint}")
        logger.info(f"   Detection: {candidate.detection_method.value}")
        if candidate.signature:
            logger.info(f"   Transaction: https://solscan.io/tx/{candidate.signature}")

    def _on_execution(self, result):
        if result.success:
            logger.info(f"⚡ SNIPED: {result.mint} -> {result.transaction_signature}")
        else:
            logger.warning(f"⚠️ SNIPE FAILED: {result.mint} at {result.stage.value}: {result.error_message}")


def signal_handler(signum, frame):
    """Handle interrupt signals."""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Solana New Pool Sniper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the sniper with the default configuration
  sniper-bot run

  # Simulate snipes without sending transactions
  sniper-bot run --dry-run

  # Watch new pools for five minutes
  sniper-bot monitor --duration 300

  # Refresh and report the portfolio
  sniper-bot portfolio

  # Override individual settings
  sniper-bot run --override filters.min_liquidity=5000 --override pool_monitor.mode=account_change
        """,
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=["run", "monitor", "portfolio"],
        help="What to run (default: run)",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (default: config/sniper_config.yaml if present)",
    )
    parser.add_argument(
        "--override",
        action="append",
        help="Override configuration values (format: key.subkey=value)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from configuration, INFO)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate snipes: quote and build swaps but never sign or send",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop the monitor command after this many seconds",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit",
    )
    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    try:
        overrides = parse_overrides(args.override)
        if args.dry_run:
            overrides.setdefault("execution", {})["dry_run"] = True
        config = load_config(args.config, overrides)
        set_log_level(args.log_level or config.get("logging", {}).get("level", "INFO"))

        if args.command == "run":
            validate_config(config)
            load_wallet(config)
        elif args.command == "portfolio":
            validate_config(config, require_wallet=False)
        else:
            validate_config(config, require_wallet=False, require_market_data=False)
    except ConfigError as exc:
        logger.error(f"Configuration error: {exc}")
        sys.exit(1)

    if args.validate:
        logger.info("Configuration validation completed successfully")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    cli = SniperCLI(config)
    try:
        if args.command == "monitor":
            asyncio.run(cli.monitor(args.duration))
        elif args.command == "portfolio":
            asyncio.run(cli.portfolio())
        else:
            asyncio.run(cli.run())
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
    except ConfigError as exc:
        logger.error(f"Configuration error: {exc}")
        sys.exit(1)
    except Exception as exc:
        logger.error(f"Service failed: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
