"""Solana new-pool sniper bot."""

__version__ = "1.0.0"
