"""Shared fixtures for the sniper test suite."""

import copy
from unittest.mock import AsyncMock, Mock

import pytest
from solders.keypair import Keypair

from factories import HOLDER_ACCOUNT, POOL_VAULT, RAYDIUM_AUTHORITY, make_quote, mint_account
from sniper_bot.config import DEFAULT_CONFIG
from sniper_bot.solana.models import USDT_MINT


@pytest.fixture
def config(tmp_path):
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["portfolio"]["portfolio_file"] = str(tmp_path / "portfolio.json")
    cfg["portfolio"]["snipes_log_file"] = str(tmp_path / "snipes_log.json")
    cfg["market_data"]["api_key"] = "test-key"
    cfg["pool_monitor"]["enabled"] = False
    cfg["scanner"]["enabled"] = False
    return cfg


@pytest.fixture
def wallet():
    return Keypair()


@pytest.fixture
def rpc():
    client = Mock()
    client.get_parsed_account_info = AsyncMock(return_value=mint_account())
    client.get_token_largest_accounts = AsyncMock(
        return_value=[
            {"address": POOL_VAULT, "amount": "800000000000000000"},
            {"address": HOLDER_ACCOUNT, "amount": "20000000000000000"},
        ]
    )
    client.get_token_account_owners = AsyncMock(
        return_value={
            POOL_VAULT: RAYDIUM_AUTHORITY,
            HOLDER_ACCOUNT: "SomeWallet111111111111111111111111111111111",
        }
    )
    client.get_token_balance = AsyncMock(return_value=10.0)
    client.send_and_confirm = AsyncMock(return_value="5nNtjezQMYBHvgSQmoRmJPiXGsPAWmJPoGSa64xanqrau")
    client.get_parsed_transaction = AsyncMock(return_value=None)
    client.close = AsyncMock()
    return client


@pytest.fixture
def jupiter():
    """Quote mock routing honeypot buy, honeypot sell and execution quotes."""
    client = Mock()

    async def get_quote(input_mint, output_mint, amount, slippage_bps):
        if output_mint == USDT_MINT:
            return make_quote(970_000)  # honeypot sell leg
        if slippage_bps == 100:
            return make_quote(1_000_000_000_000)  # honeypot buy leg
        return make_quote(1_000_000_000_000, price_impact="1.2", slippage_bps=500)

    client.get_quote = AsyncMock(side_effect=get_quote)
    client.build_swap_transaction = AsyncMock(return_value="AQAAAA==")
    return client


@pytest.fixture
def notifier():
    client = Mock()
    client.send_message = AsyncMock(return_value=True)
    client.enabled = True
    return client
