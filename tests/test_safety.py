"""Tests for the token safety checker."""

from unittest.mock import AsyncMock

import pytest

from factories import HOLDER_ACCOUNT, TOKEN_MINT, make_quote, mint_account
from sniper_bot.solana.jupiter import JupiterClient
from sniper_bot.solana.models import USDT_MINT
from sniper_bot.solana.safety import SafetyChecker


@pytest.fixture
def checker(config, rpc, jupiter):
    return SafetyChecker(config, rpc, jupiter)


class TestShortCircuit:
    @pytest.mark.asyncio
    async def test_all_checks_pass(self, checker):
        report = await checker.check_token(TOKEN_MINT)

        assert report.passed
        assert report.holder_ok is True
        assert list(report.results) == [
            "mint_authority", "freeze_authority", "supply", "honeypot", "holders",
        ]

    @pytest.mark.asyncio
    async def test_mint_authority_stops_everything(self, checker, rpc, jupiter):
        rpc.get_parsed_account_info = AsyncMock(
            return_value=mint_account(mint_authority="Auth1111111111111111111111111111111111111111")
        )

        report = await checker.check_token(TOKEN_MINT)

        assert not report.passed
        assert report.mint_authority_ok is False
        assert report.freeze_authority_ok is None
        assert report.supply_ok is None
        assert report.honeypot_ok is None
        assert report.holder_ok is None
        assert "Mint authority" in report.failure_reason
        jupiter.get_quote.assert_not_awaited()
        rpc.get_token_largest_accounts.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_freeze_authority_fails_second(self, checker, rpc, jupiter):
        rpc.get_parsed_account_info = AsyncMock(
            return_value=mint_account(freeze_authority="Frz11111111111111111111111111111111111111111")
        )

        report = await checker.check_token(TOKEN_MINT)

        assert report.mint_authority_ok is True
        assert report.freeze_authority_ok is False
        assert report.failed_check == "freeze_authority"
        jupiter.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mint_info_fetched_once(self, checker, rpc):
        await checker.check_token(TOKEN_MINT)

        rpc.get_parsed_account_info.assert_awaited_once_with(TOKEN_MINT)

    @pytest.mark.asyncio
    async def test_transport_error_fails_closed(self, checker, rpc, jupiter):
        rpc.get_parsed_account_info = AsyncMock(side_effect=ConnectionError("timeout"))

        report = await checker.check_token(TOKEN_MINT)

        assert not report.passed
        assert report.mint_authority_ok is False
        assert "timeout" in report.failure_reason
        jupiter.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_account(self, checker, rpc):
        rpc.get_parsed_account_info = AsyncMock(return_value=None)

        report = await checker.check_token(TOKEN_MINT)

        assert report.failure_reason == "Token account not found"


class TestSupply:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "supply,decimals",
        [
            ("100000000000000", 9),  # 100k tokens
            ("2000000000000000000000000", 9),  # 2e15 tokens
            ("1000000000000000", 5),
        ],
    )
    async def test_supply_rejections(self, checker, rpc, supply, decimals):
        rpc.get_parsed_account_info = AsyncMock(return_value=mint_account(supply=supply, decimals=decimals))

        report = await checker.check_token(TOKEN_MINT)

        assert report.supply_ok is False
        assert report.honeypot_ok is None


class TestHoneypot:
    @pytest.mark.asyncio
    async def test_zero_sell_output_fails(self, checker, jupiter):
        async def get_quote(input_mint, output_mint, amount, slippage_bps):
            if output_mint == USDT_MINT:
                return make_quote(0)
            return make_quote(1_000_000_000_000)

        jupiter.get_quote = AsyncMock(side_effect=get_quote)

        report = await checker.check_token(TOKEN_MINT)

        assert report.honeypot_ok is False
        assert "cannot sell" in report.failure_reason
        assert report.holder_ok is None

    @pytest.mark.asyncio
    async def test_sell_quote_uses_buy_output(self, checker, jupiter):
        await checker.check_token(TOKEN_MINT)

        sell_call = jupiter.get_quote.await_args_list[1]
        assert sell_call.args == (TOKEN_MINT, USDT_MINT, 1_000_000_000_000, 100)

    @pytest.mark.asyncio
    async def test_buy_quote_failure(self, checker, jupiter):
        jupiter.get_quote = AsyncMock(return_value=make_quote(ok=False, status=400))

        report = await checker.check_token(TOKEN_MINT)

        assert report.honeypot_ok is False
        assert report.failure_reason.startswith("Buy quote failed: 400")

    @pytest.mark.asyncio
    async def test_round_trip_impact_fails(self, checker, jupiter):
        async def get_quote(input_mint, output_mint, amount, slippage_bps):
            if output_mint == USDT_MINT:
                return make_quote(400_000)
            return make_quote(1_000_000_000_000)

        jupiter.get_quote = AsyncMock(side_effect=get_quote)

        report = await checker.check_token(TOKEN_MINT)

        assert report.honeypot_ok is False
        assert report.failure_reason.startswith("Round-trip price impact too high")

    @pytest.mark.asyncio
    async def test_low_recovery_fails(self, config, rpc, jupiter):
        config["safety"]["max_round_trip_impact_pct"] = 100.0
        checker = SafetyChecker(config, rpc, jupiter)

        async def get_quote(input_mint, output_mint, amount, slippage_bps):
            if output_mint == USDT_MINT:
                return make_quote(400_000)
            return make_quote(1_000_000_000_000)

        jupiter.get_quote = AsyncMock(side_effect=get_quote)

        report = await checker.check_token(TOKEN_MINT)

        assert report.honeypot_ok is False
        assert report.failure_reason.startswith("Low sell recovery: 40.00%")

    @pytest.mark.asyncio
    async def test_leg_price_impact_fails(self, checker, jupiter):
        async def get_quote(input_mint, output_mint, amount, slippage_bps):
            if output_mint == USDT_MINT:
                return make_quote(950_000, price_impact="25")
            return make_quote(1_000_000_000_000)

        jupiter.get_quote = AsyncMock(side_effect=get_quote)

        report = await checker.check_token(TOKEN_MINT)

        assert report.honeypot_ok is False
        assert "Quote price impact" in report.failure_reason

    @pytest.mark.asyncio
    async def test_sell_quote_http_400_with_real_client(self, config, rpc):
        jupiter = JupiterClient(config)
        responses = [
            (200, {"outAmount": "1000000000000", "priceImpactPct": "0.1", "slippageBps": 100}),
            (400, None),
        ]
        jupiter._get_json = AsyncMock(side_effect=responses)
        checker = SafetyChecker(config, rpc, jupiter)

        report = await checker.check_token(TOKEN_MINT)

        assert report.honeypot_ok is False
        assert report.failure_reason.startswith("Sell quote failed: 400")


class TestHolders:
    @pytest.mark.asyncio
    async def test_concentrated_holder_fails(self, checker, rpc):
        rpc.get_token_largest_accounts = AsyncMock(
            return_value=[{"address": HOLDER_ACCOUNT, "amount": "600000000000000000"}]
        )
        rpc.get_token_account_owners = AsyncMock(return_value={HOLDER_ACCOUNT: "Whale1111111111111111111111111111111111111"})

        report = await checker.check_token(TOKEN_MINT)

        assert report.holder_ok is False
        assert "60.00%" in report.failure_reason

    @pytest.mark.asyncio
    async def test_pool_vault_is_ignored(self, checker):
        report = await checker.check_token(TOKEN_MINT)

        assert report.holder_ok is True
        assert "2.00%" in report.results["holders"].details

    @pytest.mark.asyncio
    async def test_disabled_check_is_reported(self, config, rpc, jupiter):
        config["safety"]["holder_check_enabled"] = False
        checker = SafetyChecker(config, rpc, jupiter)

        report = await checker.check_token(TOKEN_MINT)

        assert report.passed
        assert report.results["holders"].details == "disabled by configuration"
        rpc.get_token_largest_accounts.assert_not_awaited()
