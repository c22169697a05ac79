"""Jupiter v6 quote and swap-transaction client."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import aiohttp

from ..utils.logger import setup_logger

logger = setup_logger(__name__)

JUPITER_QUOTE_URL = "https://quote-api.jup.ag/v6/quote"
JUPITER_SWAP_URL = "https://quote-api.jup.ag/v6/swap"


class SwapApiError(Exception):
    """Jupiter could not build a swap transaction."""


@dataclass
class QuoteResult:
    """A Jupiter quote response, or the reason there is none."""

    ok: bool
    status: int = 0
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def out_amount(self) -> int:
        try:
            return int(self.data.get("outAmount") or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def price_impact_pct(self) -> float:
        """``priceImpactPct`` as reported by Jupiter, treated as a percentage."""
        try:
            return float(self.data.get("priceImpactPct") or 0.0)
        except (TypeError, ValueError):
            return 0.0

    @property
    def slippage_pct(self) -> float:
        try:
            return float(self.data.get("slippageBps") or 0) / 100
        except (TypeError, ValueError):
            return 0.0

    def describe_failure(self) -> str:
        if self.status:
            return str(self.status)
        return self.error or "no response"


class JupiterClient:
    """Request quotes and prebuilt swap transactions from Jupiter."""

    def __init__(self, config: Dict):
        self.jupiter_config = config.get("jupiter", {})
        self.quote_url = self.jupiter_config.get("quote_url", JUPITER_QUOTE_URL)
        self.swap_url = self.jupiter_config.get("swap_url", JUPITER_SWAP_URL)

    async def _get_json(self, url: str, params: Mapping[str, Any]) -> Tuple[int, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, params=params) as resp:
                if resp.status != 200:
                    return resp.status, None
                return resp.status, await resp.json(content_type=None)

    async def _post_json(self, url: str, payload: Mapping[str, Any]) -> Tuple[int, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=payload) as resp:
                if resp.status != 200:
                    return resp.status, await resp.text()
                return resp.status, await resp.json(content_type=None)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> QuoteResult:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount)),
            "slippageBps": str(int(slippage_bps)),
        }
        try:
            status, data = await self._get_json(self.quote_url, params)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning(f"Jupiter quote error {input_mint} -> {output_mint}: {exc}")
            return QuoteResult(ok=False, error=str(exc))

        if status != 200:
            return QuoteResult(ok=False, status=status, error=f"HTTP {status}")
        if not isinstance(data, Mapping):
            return QuoteResult(ok=False, status=status, error="empty quote response")
        return QuoteResult(ok=True, status=status, data=dict(data))

    async def build_swap_transaction(self, quote: QuoteResult, user_public_key: str) -> str:
        """Return the base64 serialized swap transaction for ``quote``."""
        payload = {
            "quoteResponse": quote.data,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": False,
        }
        try:
            status, data = await self._post_json(self.swap_url, payload)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise SwapApiError(f"Swap request failed: {exc}") from exc

        if status != 200:
            raise SwapApiError(f"Swap request failed: {status} {data}")
        swap_tx = data.get("swapTransaction") if isinstance(data, Mapping) else None
        if not swap_tx:
            raise SwapApiError("Swap response has no swapTransaction")
        return swap_tx
