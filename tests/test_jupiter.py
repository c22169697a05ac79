"""Tests for the Jupiter quote and swap client."""

from unittest.mock import AsyncMock

import aiohttp
import pytest

from sniper_bot.solana.jupiter import JupiterClient, QuoteResult, SwapApiError
from sniper_bot.solana.models import USDT_MINT, WSOL_MINT


@pytest.fixture
def client(config):
    return JupiterClient(config)


class TestQuoteResult:
    def test_fields(self):
        quote = QuoteResult(ok=True, status=200, data={"outAmount": "12345", "priceImpactPct": "1.5", "slippageBps": 250})
        assert quote.out_amount == 12345
        assert quote.price_impact_pct == 1.5
        assert quote.slippage_pct == 2.5

    def test_malformed_fields(self):
        quote = QuoteResult(ok=True, data={"outAmount": "lots", "priceImpactPct": "n/a"})
        assert quote.out_amount == 0
        assert quote.price_impact_pct == 0.0

    def test_describe_failure(self):
        assert QuoteResult(ok=False, status=400).describe_failure() == "400"
        assert QuoteResult(ok=False, error="timeout").describe_failure() == "timeout"


class TestGetQuote:
    @pytest.mark.asyncio
    async def test_success(self, client):
        client._get_json = AsyncMock(return_value=(200, {"outAmount": "500"}))

        quote = await client.get_quote(USDT_MINT, WSOL_MINT, 1_000_000, 500)

        assert quote.ok and quote.out_amount == 500
        _, params = client._get_json.await_args.args
        assert params == {
            "inputMint": USDT_MINT,
            "outputMint": WSOL_MINT,
            "amount": "1000000",
            "slippageBps": "500",
        }

    @pytest.mark.asyncio
    async def test_http_error(self, client):
        client._get_json = AsyncMock(return_value=(400, None))

        quote = await client.get_quote(USDT_MINT, WSOL_MINT, 1, 100)

        assert not quote.ok
        assert quote.status == 400

    @pytest.mark.asyncio
    async def test_network_error(self, client):
        client._get_json = AsyncMock(side_effect=aiohttp.ClientError("reset"))

        quote = await client.get_quote(USDT_MINT, WSOL_MINT, 1, 100)

        assert not quote.ok
        assert quote.describe_failure() == "reset"


class TestSwapTransaction:
    @pytest.mark.asyncio
    async def test_returns_transaction(self, client):
        client._post_json = AsyncMock(return_value=(200, {"swapTransaction": "AQID"}))
        quote = QuoteResult(ok=True, status=200, data={"outAmount": "1"})

        assert await client.build_swap_transaction(quote, "Wallet111") == "AQID"
        _, payload = client._post_json.await_args.args
        assert payload["userPublicKey"] == "Wallet111"
        assert payload["quoteResponse"] == {"outAmount": "1"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [(500, "server error"), (200, {}), (200, None)])
    async def test_failures_raise(self, client, response):
        client._post_json = AsyncMock(return_value=response)

        with pytest.raises(SwapApiError):
            await client.build_swap_transaction(QuoteResult(ok=True), "Wallet111")
