"""
Token Safety Checker

Runs the pre-trade checklist against a token mint. Checks run in a fixed
order and stop at the first failure. Any error while checking counts as a
failure, so an unreachable node or quote API never lets a token through.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..utils.logger import setup_logger
from ..utils.telemetry import telemetry
from .jupiter import JupiterClient
from .models import SAFETY_CHECKS, USDT_MINT, CheckResult, SafetyReport
from .pool_layout import RAYDIUM_AMM_AUTHORITY
from .rpc import SolanaRpc

logger = setup_logger(__name__)


class SafetyChecker:
    """
    Pre-trade token safety checks.

    Checks, in order:
    - Mint authority revoked
    - Freeze authority revoked
    - Supply and decimals within sane bounds
    - Honeypot: a small buy can be sold back
    - Holder concentration
    """

    def __init__(self, config: Dict, rpc: SolanaRpc, jupiter: JupiterClient):
        self.rpc = rpc
        self.jupiter = jupiter
        self.safety_config = config.get("safety", {})

        self.min_supply = float(self.safety_config.get("min_supply", 1_000_000))
        self.max_supply = float(self.safety_config.get("max_supply", 1_000_000_000_000))
        self.allowed_decimals = tuple(self.safety_config.get("allowed_decimals", (6, 8, 9)))

        self.stable_mint = self.safety_config.get("honeypot_stable_mint", USDT_MINT)
        self.test_amount = int(self.safety_config.get("honeypot_test_amount", 1_000_000))
        self.test_slippage_bps = int(self.safety_config.get("honeypot_slippage_bps", 100))
        self.max_round_trip_impact = float(self.safety_config.get("max_round_trip_impact_pct", 50.0))
        self.min_recovery = float(self.safety_config.get("min_recovery_pct", 50.0))
        self.max_leg_impact = float(self.safety_config.get("max_leg_price_impact_pct", 20.0))

        self.holder_check_enabled = bool(self.safety_config.get("holder_check_enabled", True))
        self.max_top_holder_pct = float(self.safety_config.get("max_top_holder_pct", 50.0))
        self.excluded_holder_owners = set(
            self.safety_config.get("excluded_holder_owners", [RAYDIUM_AMM_AUTHORITY])
        )
        if not self.holder_check_enabled:
            logger.warning("⚠️ Holder distribution check is DISABLED by configuration")

    def _checks(self) -> List[Tuple[str, Callable[[str, Dict[str, Any]], Awaitable[CheckResult]]]]:
        handlers = {
            "mint_authority": self.check_mint_authority,
            "freeze_authority": self.check_freeze_authority,
            "supply": self.check_supply,
            "honeypot": self.check_honeypot,
            "holders": self.check_holders,
        }
        return [(name, handlers[name]) for name in SAFETY_CHECKS]

    async def check_token(self, mint: str) -> SafetyReport:
        """Run every check in order, stopping at the first failure."""
        report = SafetyReport(mint=mint)
        state: Dict[str, Any] = {}
        logger.info(f"🔍 Running safety checks for {mint}")

        for name, check in self._checks():
            try:
                result = await check(mint, state)
            except Exception as exc:
                result = CheckResult(False, f"Error during {name} check: {exc}")
            report.record(name, result)

            if not result.passed:
                telemetry.inc(f"safety.{name}_failed")
                logger.info(f"❌ {mint} failed {name} check: {result.reason}")
                break
            logger.debug(f"✅ {mint} passed {name} check {result.details}")

        if report.passed:
            logger.info(f"✅ {mint} passed all safety checks")
        return report

    # ------------------------------------------------------------------
    # Mint account
    # ------------------------------------------------------------------
    async def _mint_info(self, mint: str, state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Parsed mint info, fetched once per ``check_token`` call."""
        if "mint_info" not in state:
            account = await self.rpc.get_parsed_account_info(mint)
            info = None
            if account:
                data = account.get("data")
                if isinstance(data, dict):
                    info = data.get("parsed", {}).get("info")
            state["mint_info"] = info
            state["mint_found"] = account is not None
        return state["mint_info"]

    def _missing_mint(self, state: Dict[str, Any]) -> CheckResult:
        if not state.get("mint_found"):
            return CheckResult(False, "Token account not found")
        return CheckResult(False, "Could not parse token data")

    async def check_mint_authority(self, mint: str, state: Dict[str, Any]) -> CheckResult:
        info = await self._mint_info(mint, state)
        if info is None:
            return self._missing_mint(state)
        authority = info.get("mintAuthority")
        if authority:
            return CheckResult(False, f"Mint authority exists: {authority}")
        return CheckResult(True, details="Mint authority revoked")

    async def check_freeze_authority(self, mint: str, state: Dict[str, Any]) -> CheckResult:
        info = await self._mint_info(mint, state)
        if info is None:
            return self._missing_mint(state)
        authority = info.get("freezeAuthority")
        if authority:
            return CheckResult(False, f"Freeze authority exists: {authority}")
        return CheckResult(True, details="Freeze authority revoked")

    async def check_supply(self, mint: str, state: Dict[str, Any]) -> CheckResult:
        info = await self._mint_info(mint, state)
        if info is None:
            return self._missing_mint(state)
        decimals = int(info.get("decimals", 0))
        supply = int(info.get("supply", 0)) / (10 ** decimals)

        if supply < self.min_supply:
            return CheckResult(False, f"Supply too low: {supply:,.0f}")
        if supply > self.max_supply:
            return CheckResult(False, f"Supply too high: {supply:,.0f}")
        if decimals not in self.allowed_decimals:
            return CheckResult(False, f"Unusual decimals: {decimals}")
        return CheckResult(True, details=f"Supply {supply:,.0f}, decimals {decimals}")

    # ------------------------------------------------------------------
    # Honeypot
    # ------------------------------------------------------------------
    async def check_honeypot(self, mint: str, state: Dict[str, Any]) -> CheckResult:
        """Quote a small buy, then quote selling everything it returned."""
        buy = await self.jupiter.get_quote(
            self.stable_mint, mint, self.test_amount, self.test_slippage_bps
        )
        if not buy.ok:
            return CheckResult(
                False, f"Buy quote failed: {buy.describe_failure()} - token may not be tradeable"
            )
        if buy.out_amount <= 0:
            return CheckResult(False, "Buy quote returned 0 tokens")

        sell = await self.jupiter.get_quote(
            mint, self.stable_mint, buy.out_amount, self.test_slippage_bps
        )
        if not sell.ok:
            return CheckResult(
                False,
                f"Sell quote failed: {sell.describe_failure()} - cannot sell, classic honeypot",
            )
        if sell.out_amount <= 0:
            return CheckResult(False, "Sell quote returned 0 - cannot sell, honeypot confirmed")

        buy_price = self.test_amount / buy.out_amount
        sell_price = sell.out_amount / buy.out_amount
        round_trip_impact = (buy_price - sell_price) / buy_price * 100
        recovery = sell.out_amount / self.test_amount * 100

        if round_trip_impact > self.max_round_trip_impact:
            return CheckResult(False, f"Round-trip price impact too high: {round_trip_impact:.2f}%")
        if recovery < self.min_recovery:
            return CheckResult(False, f"Low sell recovery: {recovery:.2f}% - possible honeypot")
        if buy.price_impact_pct > self.max_leg_impact or sell.price_impact_pct > self.max_leg_impact:
            return CheckResult(
                False,
                f"Quote price impact too high: buy {buy.price_impact_pct:.2f}%, "
                f"sell {sell.price_impact_pct:.2f}%",
            )

        return CheckResult(
            True,
            details=f"Round-trip impact {round_trip_impact:.2f}%, recovery {recovery:.2f}%",
        )

    # ------------------------------------------------------------------
    # Holders
    # ------------------------------------------------------------------
    async def check_holders(self, mint: str, state: Dict[str, Any]) -> CheckResult:
        """Fail when a single non-pool holder owns too much of the supply."""
        if not self.holder_check_enabled:
            return CheckResult(True, details="disabled by configuration")

        info = await self._mint_info(mint, state)
        if info is None:
            return self._missing_mint(state)
        supply = int(info.get("supply", 0))
        if supply <= 0:
            return CheckResult(False, "Token supply is zero")

        largest = await self.rpc.get_token_largest_accounts(mint)
        if not largest:
            return CheckResult(False, "No holder data available")

        addresses = [acct["address"] for acct in largest if acct.get("address")]
        owners = await self.rpc.get_token_account_owners(addresses)

        top_pct = 0.0
        for acct in largest:
            owner = owners.get(acct.get("address"))
            if owner in self.excluded_holder_owners:
                continue
            pct = int(acct.get("amount", 0)) / supply * 100
            if pct > self.max_top_holder_pct:
                return CheckResult(
                    False,
                    f"Top holder {owner or acct.get('address')} owns {pct:.2f}% of supply",
                )
            top_pct = max(top_pct, pct)

        return CheckResult(True, details=f"Largest holder owns {top_pct:.2f}% of supply")
