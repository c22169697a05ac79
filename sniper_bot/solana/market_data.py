"""
Birdeye Market Data

Token lists, new listings, prices and per-token overviews from the Birdeye
public API, and enrichment of freshly detected pools into ``TokenMetrics``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from ..utils.logger import setup_logger
from .models import PoolCandidate, TokenMetrics

logger = setup_logger(__name__)


class BirdeyeClient:
    """Async client for the Birdeye ``/defi`` endpoints."""

    def __init__(self, config: Dict):
        self.market_config = config.get("market_data", {})
        self.api_key = self.market_config.get("api_key", "")
        self.base_url = self.market_config.get("base_url", "https://public-api.birdeye.so").rstrip("/")
        self.chain = self.market_config.get("chain", "solana")

    @property
    def headers(self) -> Dict[str, str]:
        return {"X-API-KEY": self.api_key, "x-chain": self.chain, "accept": "application/json"}

    async def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """GET ``path`` and return the ``data`` member of the response."""
        async with aiohttp.ClientSession(headers=self.headers) as session:
            async with session.get(f"{self.base_url}{path}", params=params) as resp:
                resp.raise_for_status()
                payload = await resp.json(content_type=None)
        if isinstance(payload, Mapping) and payload.get("success") is False:
            raise ValueError(f"Birdeye {path} failed: {payload.get('message')}")
        return payload.get("data") if isinstance(payload, Mapping) else None

    async def get_token_list(self) -> List[Dict[str, Any]]:
        data = await self._get("/defi/tokenlist", {"sort_by": "v24hUSD", "sort_type": "desc"})
        tokens = (data or {}).get("tokens") if isinstance(data, Mapping) else None
        return list(tokens or [])

    async def get_new_listings(self) -> List[Dict[str, Any]]:
        """Recently listed tokens; an empty list when the endpoint is unavailable."""
        try:
            data = await self._get("/defi/v2/tokens/new_listing")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning(f"New listings unavailable: {exc}")
            return []
        if isinstance(data, list):
            return data
        if isinstance(data, Mapping):
            return list(data.get("items") or [])
        return []

    async def get_price(self, mint: str) -> Optional[float]:
        data = await self._get("/defi/price", {"address": mint})
        value = (data or {}).get("value") if isinstance(data, Mapping) else None
        return float(value) if value is not None else None

    async def get_token_overview(self, mint: str) -> Dict[str, Any]:
        data = await self._get("/defi/token_overview", {"address": mint})
        return dict(data or {})

    async def get_token_metadata(self, mint: str) -> Dict[str, Any]:
        data = await self._get("/defi/v3/token/meta-data/single", {"address": mint})
        return dict(data or {})

    async def enrich(self, candidate: PoolCandidate) -> Optional[TokenMetrics]:
        """Fetch a market snapshot for a detected pool, or None on failure."""
        try:
            overview = await self.get_token_overview(candidate.address)
            if not overview.get("symbol") or not overview.get("name"):
                metadata = await self.get_token_metadata(candidate.address)
                if not overview.get("symbol"):
                    overview["symbol"] = metadata.get("symbol")
                if not overview.get("name"):
                    overview["name"] = metadata.get("name")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning(f"Market data lookup failed for {candidate.address}: {exc}")
            return None

        overview["address"] = candidate.address
        return TokenMetrics.from_birdeye(overview)
