"""Solana components: pool detection, filtering, safety checks and execution."""

from .filters import FilterThresholds, evaluate_snipe_filters, passes_realtime_filters, passes_snipe_filters
from .models import PoolCandidate, SafetyReport, SnipeRecord, SnipeStage, TokenMetrics

__all__ = [
    "FilterThresholds",
    "PoolCandidate",
    "SafetyReport",
    "SnipeRecord",
    "SnipeStage",
    "TokenMetrics",
    "evaluate_snipe_filters",
    "passes_realtime_filters",
    "passes_snipe_filters",
]
