"""
Snipe Execution Engine

Turns a token that passed filters and safety checks into a swap: balance
check, quote with risk limits, prebuilt swap transaction from Jupiter,
signing, submission and confirmation. Successful snipes are recorded in the
portfolio and announced over Telegram. Failures abandon the attempt; there
are no retries.
"""

from __future__ import annotations

import asyncio
import base64
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import aiohttp
from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction, VersionedTransaction

from ..portfolio import PortfolioStore
from ..utils.logger import LOG_DIR, setup_logger
from ..utils.telegram import TelegramNotifier, format_snipe_notification
from ..utils.telemetry import telemetry
from .jupiter import JupiterClient, QuoteResult, SwapApiError
from .models import DRY_RUN_SIGNATURE, USDT_MINT, SnipeRecord, SnipeStage, TokenMetrics
from .rpc import RpcError, SolanaRpc, TransactionFailedError

logger = setup_logger(__name__, LOG_DIR / "sniper.log")


class TransactionDecodeError(Exception):
    """The swap transaction could not be deserialized."""


@dataclass
class ExecutionResult:
    """Outcome of one snipe attempt."""

    success: bool
    mint: str
    stage: SnipeStage
    transaction_signature: Optional[str] = None
    tokens_received: float = 0.0
    price_impact: float = 0.0
    slippage: float = 0.0
    error_message: Optional[str] = None
    record: Optional[SnipeRecord] = None
    execution_time: float = 0.0
    timestamp: float = field(default_factory=time.time)


class SnipeExecutor:
    """
    Executes a single fixed-notional buy per token.

    Features:
    - Spend-asset balance check before quoting
    - Price impact and slippage limits on the quote
    - Versioned and legacy swap transactions
    - Dry-run mode that performs every step except signing and submission
    """

    def __init__(
        self,
        config: Dict,
        rpc: SolanaRpc,
        jupiter: JupiterClient,
        portfolio: PortfolioStore,
        notifier: TelegramNotifier,
        wallet: Keypair,
    ):
        self.rpc = rpc
        self.jupiter = jupiter
        self.portfolio = portfolio
        self.notifier = notifier
        self.wallet = wallet
        self.execution_config = config.get("execution", {})

        self.dry_run = bool(self.execution_config.get("dry_run", False))
        self.spend_mint = self.execution_config.get("spend_mint", USDT_MINT)
        self.spend_decimals = int(self.execution_config.get("spend_decimals", 6))
        self.snipe_amount = float(self.execution_config.get("snipe_amount", 1.0))
        self.max_slippage_bps = int(self.execution_config.get("max_slippage_bps", 500))
        self.max_price_impact_pct = float(self.execution_config.get("max_price_impact_pct", 20.0))
        self.max_quote_slippage_pct = float(self.execution_config.get("max_quote_slippage_pct", 5.0))
        self.check_balance = bool(self.execution_config.get("check_balance", True))
        self.default_token_decimals = int(self.execution_config.get("default_token_decimals", 9))

        self.stats = {
            "attempts": 0,
            "successful": 0,
            "failed": 0,
            "rejected_by_risk": 0,
            "total_spent": 0.0,
        }

        if self.dry_run:
            logger.warning("🧪 DRY RUN mode - transactions will not be signed or sent")

    @property
    def wallet_address(self) -> str:
        return str(self.wallet.pubkey())

    def _fail(self, mint: str, stage: SnipeStage, message: str, started: float) -> ExecutionResult:
        self.stats["failed"] += 1
        telemetry.inc("execution.failed")
        logger.error(f"❌ Snipe failed for {mint}: {message}")
        return ExecutionResult(
            success=False,
            mint=mint,
            stage=stage,
            error_message=message,
            execution_time=time.time() - started,
        )

    async def execute_snipe(self, metrics: TokenMetrics) -> ExecutionResult:
        """Buy ``snipe_amount`` of the spend asset worth of ``metrics.address``."""
        started = time.time()
        mint = metrics.address
        self.stats["attempts"] += 1
        logger.info(f"🎯 Sniping {metrics.symbol} ({mint}) with ${self.snipe_amount} USDT")

        if self.check_balance:
            try:
                balance = await self.rpc.get_token_balance(self.wallet_address, self.spend_mint)
            except (aiohttp.ClientError, asyncio.TimeoutError, RpcError, ValueError) as exc:
                return self._fail(mint, SnipeStage.SAFETY_CHECKED, f"Balance check failed: {exc}", started)
            if balance < self.snipe_amount:
                return self._fail(
                    mint,
                    SnipeStage.SAFETY_CHECKED,
                    f"Insufficient balance: have {balance:.2f}, need {self.snipe_amount:.2f}",
                    started,
                )

        amount_in = int(round(self.snipe_amount * 10 ** self.spend_decimals))
        quote = await self.jupiter.get_quote(self.spend_mint, mint, amount_in, self.max_slippage_bps)
        if not quote.ok:
            return self._fail(
                mint, SnipeStage.SAFETY_CHECKED, f"Quote failed: {quote.describe_failure()}", started
            )

        rejection = self._check_quote_limits(quote)
        if rejection:
            self.stats["rejected_by_risk"] += 1
            return self._fail(mint, SnipeStage.QUOTED, rejection, started)

        try:
            swap_transaction = await self.jupiter.build_swap_transaction(quote, self.wallet_address)
        except SwapApiError as exc:
            return self._fail(mint, SnipeStage.QUOTED, str(exc), started)

        if self.dry_run:
            signature = DRY_RUN_SIGNATURE
            logger.info(f"🧪 DRY RUN: would swap for {quote.out_amount} raw units of {mint}")
        else:
            try:
                signed = await self._sign_transaction(swap_transaction)
                signature = await self.rpc.send_and_confirm(signed)
            except (TransactionDecodeError, TransactionFailedError, RpcError) as exc:
                return self._fail(mint, SnipeStage.SUBMITTED, str(exc), started)
            except Exception as exc:
                return self._fail(mint, SnipeStage.SUBMITTED, f"Submission error: {exc}", started)
            logger.info(f"✅ Transaction confirmed: {signature}")

        decimals = await self._token_decimals(mint)
        tokens_received = quote.out_amount / (10 ** decimals)

        record = SnipeRecord.create(
            metrics,
            amount_spent=self.snipe_amount,
            tokens_received=tokens_received,
            price_impact=quote.price_impact_pct,
            slippage=quote.slippage_pct,
            transaction_signature=signature,
            dry_run=self.dry_run,
        )

        try:
            portfolio = await self.portfolio.record_snipe(record)
        except OSError as exc:
            logger.error(f"Failed to record snipe of {mint}: {exc}")
            portfolio = self.portfolio.load_portfolio()

        await self.notifier.send_message(format_snipe_notification(record, portfolio))

        self.stats["successful"] += 1
        self.stats["total_spent"] += self.snipe_amount
        telemetry.inc("execution.successful")
        logger.info(
            f"🚀 Sniped {tokens_received:,.4f} {metrics.symbol} for ${self.snipe_amount} ({signature})"
        )
        return ExecutionResult(
            success=True,
            mint=mint,
            stage=SnipeStage.RECORDED,
            transaction_signature=signature,
            tokens_received=tokens_received,
            price_impact=quote.price_impact_pct,
            slippage=quote.slippage_pct,
            record=record,
            execution_time=time.time() - started,
        )

    def _check_quote_limits(self, quote: QuoteResult) -> Optional[str]:
        if quote.price_impact_pct > self.max_price_impact_pct:
            return f"Price impact too high: {quote.price_impact_pct:.2f}%"
        if quote.slippage_pct > self.max_quote_slippage_pct:
            return f"Slippage too high: {quote.slippage_pct:.2f}%"
        return None

    async def _sign_transaction(self, swap_transaction: str) -> bytes:
        """Sign the base64 swap transaction.

        Both wire formats parse as ``VersionedTransaction``; a legacy message
        is re-signed as a legacy ``Transaction`` against a fresh blockhash.
        """
        try:
            raw = base64.b64decode(swap_transaction)
        except ValueError as exc:
            raise TransactionDecodeError(f"Swap transaction is not base64: {exc}") from exc

        try:
            unsigned = VersionedTransaction.from_bytes(raw)
        except Exception as exc:
            raise TransactionDecodeError(f"Failed to deserialize transaction: {exc}") from exc

        if not isinstance(unsigned.message, Message):
            return bytes(VersionedTransaction(unsigned.message, [self.wallet]))

        logger.debug("Legacy swap transaction, signing with a fresh blockhash")
        legacy = Transaction.new_unsigned(unsigned.message)
        blockhash = await self.rpc.get_latest_blockhash()
        legacy.sign([self.wallet], blockhash)
        return bytes(legacy)

    async def _token_decimals(self, mint: str) -> int:
        try:
            account = await self.rpc.get_parsed_account_info(mint)
            info = account["data"]["parsed"]["info"]
            return int(info["decimals"])
        except (aiohttp.ClientError, asyncio.TimeoutError, RpcError, KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Could not read decimals for {mint} ({exc}), assuming {self.default_token_decimals}")
            return self.default_token_decimals
