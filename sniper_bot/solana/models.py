"""
Sniper Data Model

Records that flow between the pool monitor, the filter stage, the safety
checker and the execution engine, plus the persisted snipe/portfolio shapes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

DRY_RUN_SIGNATURE = "DRY_RUN_SIMULATION"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_float(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


class DetectionMethod(Enum):
    """How a candidate was discovered."""
    TRANSACTION_LOG = "transaction_log"
    ACCOUNT_CHANGE = "account_change"
    BIRDEYE_POLL = "birdeye_poll"


class SnipeStage(Enum):
    """Lifecycle of a single snipe attempt."""
    DETECTED = "detected"
    FILTERED = "filtered"
    SAFETY_CHECKED = "safety_checked"
    QUOTED = "quoted"
    SUBMITTED = "submitted"
    RECORDED = "recorded"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class PoolCandidate:
    """A newly detected pool, before any market data is attached."""

    address: str  # token mint being evaluated
    pool_id: Optional[str]
    base_mint: str
    quote_mint: str
    detection_method: DetectionMethod
    signature: Optional[str] = None
    detected_at: float = field(default_factory=time.time)


@dataclass
class TokenMetrics:
    """Market snapshot of a token, rebuilt for every evaluation."""

    address: str
    symbol: str = ""
    name: str = ""
    price: float = 0.0
    market_cap: float = 0.0
    liquidity: float = 0.0
    volume_24h: float = 0.0
    last_trade_time: float = 0.0  # unix seconds
    price_change_24h: Optional[float] = None

    @classmethod
    def from_birdeye(cls, data: Mapping[str, Any]) -> "TokenMetrics":
        """Build metrics from a Birdeye token-list or token-overview item."""
        change = data.get("v24hChangePercent")
        if change is None:
            change = data.get("priceChange24hPercent")
        market_cap = data.get("mc")
        if market_cap is None:
            market_cap = data.get("marketCap")
        return cls(
            address=str(data.get("address") or ""),
            symbol=str(data.get("symbol") or ""),
            name=str(data.get("name") or ""),
            price=_as_float(data.get("price")),
            market_cap=_as_float(market_cap),
            liquidity=_as_float(data.get("liquidity")),
            volume_24h=_as_float(data.get("v24hUSD")),
            last_trade_time=_as_float(data.get("lastTradeUnixTime")),
            price_change_24h=None if change is None else _as_float(change),
        )


@dataclass
class CheckResult:
    """Outcome of one safety check."""
    passed: bool
    reason: str = ""
    details: str = ""


SAFETY_CHECKS = ("mint_authority", "freeze_authority", "supply", "honeypot", "holders")


@dataclass
class SafetyReport:
    """Per-check outcomes; ``None`` marks a check that never ran."""

    mint: str
    mint_authority_ok: Optional[bool] = None
    freeze_authority_ok: Optional[bool] = None
    supply_ok: Optional[bool] = None
    honeypot_ok: Optional[bool] = None
    holder_ok: Optional[bool] = None
    results: Dict[str, CheckResult] = field(default_factory=dict)

    _FIELDS = {
        "mint_authority": "mint_authority_ok",
        "freeze_authority": "freeze_authority_ok",
        "supply": "supply_ok",
        "honeypot": "honeypot_ok",
        "holders": "holder_ok",
    }

    def record(self, check: str, result: CheckResult) -> None:
        setattr(self, self._FIELDS[check], result.passed)
        self.results[check] = result

    @property
    def passed(self) -> bool:
        return all(getattr(self, attr) is True for attr in self._FIELDS.values())

    @property
    def failed_check(self) -> Optional[str]:
        for check, result in self.results.items():
            if not result.passed:
                return check
        return None

    @property
    def failure_reason(self) -> str:
        check = self.failed_check
        return self.results[check].reason if check else ""


@dataclass(frozen=True)
class SnipeRecord:
    """Immutable record of a completed (or simulated) snipe."""

    timestamp: str
    dry_run: bool
    symbol: str
    name: str
    mint: str
    price: float
    liquidity: float
    market_cap: float
    amount_spent: float
    tokens_received: float
    price_impact: float
    slippage: float
    transaction_signature: str

    @classmethod
    def create(
        cls,
        metrics: TokenMetrics,
        amount_spent: float,
        tokens_received: float,
        price_impact: float,
        slippage: float,
        transaction_signature: str,
        dry_run: bool = False,
    ) -> "SnipeRecord":
        return cls(
            timestamp=_utc_now_iso(),
            dry_run=dry_run,
            symbol=metrics.symbol,
            name=metrics.name,
            mint=metrics.address,
            price=metrics.price,
            liquidity=metrics.liquidity,
            market_cap=metrics.market_cap,
            amount_spent=amount_spent,
            tokens_received=tokens_received,
            price_impact=price_impact,
            slippage=slippage,
            transaction_signature=transaction_signature,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Shape written to the snipe log file."""
        return {
            "timestamp": self.timestamp,
            "dryRun": self.dry_run,
            "token": {
                "symbol": self.symbol,
                "name": self.name,
                "mint": self.mint,
                "price": self.price,
                "liquidity": self.liquidity,
                "marketCap": self.market_cap,
            },
            "snipe": {
                "amountUsdt": self.amount_spent,
                "tokensReceived": self.tokens_received,
                "priceImpact": self.price_impact,
                "slippage": self.slippage,
            },
            "transaction": self.transaction_signature,
        }

    def to_portfolio_entry(self) -> Dict[str, Any]:
        """Initial portfolio entry; value is marked at the snipe price."""
        current_value = self.tokens_received * self.price
        profit_loss = current_value - self.amount_spent
        return {
            "symbol": self.symbol,
            "name": self.name,
            "mint": self.mint,
            "snipedAt": self.timestamp,
            "amountUsdt": self.amount_spent,
            "tokensReceived": self.tokens_received,
            "priceAtSnipe": self.price,
            "liquidityAtSnipe": self.liquidity,
            "marketCapAtSnipe": self.market_cap,
            "transactionSignature": self.transaction_signature,
            "dryRun": self.dry_run,
            "currentPrice": self.price,
            "currentValue": current_value,
            "profitLoss": profit_loss,
            "profitLossPercent": (profit_loss / self.amount_spent * 100) if self.amount_spent else 0.0,
        }
