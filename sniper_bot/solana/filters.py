"""
Snipe Filters

Pure predicates deciding whether a token is worth a safety check. The
thresholds are loaded once from configuration and never change at runtime.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple

from .models import USDC_MINT, USDT_MINT, WSOL_MINT, PoolCandidate, TokenMetrics

DEFAULT_EXCLUDED_TOKENS: Tuple[str, ...] = (
    WSOL_MINT,
    USDC_MINT,
    USDT_MINT,
    "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So",  # mSOL
    "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn",  # JitoSOL
    "jupSoLaHXQiZZTSfEWMTRRgpnyFm8f6sZdosWBjx93v",  # JupSOL
)

DEFAULT_SUSPICIOUS_NAMES: Tuple[str, ...] = (
    "test", "scam", "rug", "fake", "honeypot", "shit", "moon", "safe",
)


@dataclass(frozen=True)
class FilterThresholds:
    """Static filter constants."""

    min_liquidity: float = 3000.0
    min_market_cap: float = 30_000.0
    max_market_cap: float = 10_000_000.0
    min_price: float = 0.000001
    max_price: float = 1000.0
    max_token_age_minutes: float = 60.0
    min_volume_24h: float = 5000.0
    min_volume_to_mc_ratio: float = 0.05
    max_price_change_24h_pct: float = 1000.0
    excluded_tokens: Tuple[str, ...] = DEFAULT_EXCLUDED_TOKENS
    suspicious_names: Tuple[str, ...] = DEFAULT_SUSPICIOUS_NAMES

    @classmethod
    def from_config(cls, config: Dict) -> "FilterThresholds":
        filter_config = config.get("filters", {})
        kwargs = {}
        for f in fields(cls):
            if f.name not in filter_config:
                continue
            value = filter_config[f.name]
            if f.name in ("excluded_tokens", "suspicious_names"):
                kwargs[f.name] = tuple(value)
            else:
                kwargs[f.name] = float(value)
        return cls(**kwargs)


def evaluate_snipe_filters(
    metrics: TokenMetrics,
    thresholds: FilterThresholds,
    now: Optional[float] = None,
) -> Tuple[bool, str]:
    """Return ``(passed, reason)``; reason names the first failed rule."""
    t = thresholds
    if metrics.address in t.excluded_tokens:
        return False, "excluded token"

    if not metrics.liquidity or metrics.liquidity < t.min_liquidity:
        return False, f"liquidity ${metrics.liquidity:,.0f} below ${t.min_liquidity:,.0f}"

    if (
        not metrics.market_cap
        or metrics.market_cap < t.min_market_cap
        or metrics.market_cap > t.max_market_cap
    ):
        return False, f"market cap ${metrics.market_cap:,.0f} outside range"

    if not metrics.price or metrics.price < t.min_price or metrics.price > t.max_price:
        return False, f"price {metrics.price} outside range"

    now = time.time() if now is None else now
    oldest_allowed = now - t.max_token_age_minutes * 60
    if metrics.last_trade_time < oldest_allowed:
        return False, "last trade too old"

    if not metrics.volume_24h or metrics.volume_24h < t.min_volume_24h:
        return False, f"24h volume ${metrics.volume_24h:,.0f} below ${t.min_volume_24h:,.0f}"

    if metrics.volume_24h / metrics.market_cap < t.min_volume_to_mc_ratio:
        return False, "volume to market cap ratio too low"

    if (
        metrics.price_change_24h is not None
        and abs(metrics.price_change_24h) > t.max_price_change_24h_pct
    ):
        return False, f"24h price change {metrics.price_change_24h:.0f}% too extreme"

    name = (metrics.name or "").lower()
    symbol = (metrics.symbol or "").lower()
    for word in t.suspicious_names:
        if word in name or word in symbol:
            return False, f"suspicious name ({word})"

    return True, ""


def passes_snipe_filters(
    metrics: TokenMetrics,
    thresholds: FilterThresholds,
    now: Optional[float] = None,
) -> bool:
    passed, _ = evaluate_snipe_filters(metrics, thresholds, now)
    return passed


def passes_realtime_filters(
    candidate: PoolCandidate,
    thresholds: FilterThresholds,
    quote_mint: str = WSOL_MINT,
) -> Tuple[bool, str]:
    """Cheap pre-filter applied to a freshly detected pool before enrichment."""
    if not candidate.address or not candidate.base_mint or not candidate.quote_mint:
        return False, "incomplete pool data"
    if candidate.quote_mint != quote_mint:
        return False, f"quote mint {candidate.quote_mint} is not {quote_mint}"
    if candidate.address in thresholds.excluded_tokens:
        return False, "excluded token"
    return True, ""
