"""Tests for configuration loading and validation."""

import base58
import pytest
from solders.keypair import Keypair

from factories import make_metrics
from sniper_bot.config import (
    ConfigError,
    load_config,
    load_wallet,
    parse_overrides,
    validate_config,
)
from sniper_bot.solana.filters import FilterThresholds, evaluate_snipe_filters


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config(None, env={})

        assert config["filters"]["min_liquidity"] == 3000.0
        assert config["execution"]["max_slippage_bps"] == 500
        assert config["pool_monitor"]["log_marker"] == "initialize2"

    def test_yaml_file_merged(self, tmp_path):
        path = tmp_path / "sniper.yaml"
        path.write_text("filters:\n  min_liquidity: 7500\nexecution:\n  dry_run: true\n")

        config = load_config(path, env={})

        assert config["filters"]["min_liquidity"] == 7500
        assert config["filters"]["max_market_cap"] == 10_000_000.0
        assert config["execution"]["dry_run"] is True

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml", env={})

    def test_environment_overrides(self, tmp_path):
        env = {
            "BIRDEYE_API_KEY": "abc",
            "SOLANA_RPC": "https://rpc.example.com",
            "DRY_RUN": "true",
            "SNIPE_AMOUNT_USDT": "2.5",
            "MIN_LIQUIDITY": "4000",
        }

        config = load_config(None, env=env)

        assert config["market_data"]["api_key"] == "abc"
        assert config["solana"]["rpc_url"] == "https://rpc.example.com"
        assert config["execution"]["dry_run"] is True
        assert config["execution"]["snipe_amount"] == 2.5
        assert config["filters"]["min_liquidity"] == 4000.0

    def test_invalid_environment_value(self):
        with pytest.raises(ConfigError):
            load_config(None, env={"SNIPE_AMOUNT_USDT": "lots"})

    def test_cli_overrides_win(self):
        overrides = parse_overrides(["filters.min_liquidity=9000", "pool_monitor.mode=account_change"])

        config = load_config(None, overrides=overrides, env={"MIN_LIQUIDITY": "4000"})

        assert config["filters"]["min_liquidity"] == 9000
        assert config["pool_monitor"]["mode"] == "account_change"


class TestParseOverrides:
    def test_types(self):
        overrides = parse_overrides(["a.flag=true", "a.count=3", "a.ratio=0.5", "b=text"])
        assert overrides == {"a": {"flag": True, "count": 3, "ratio": 0.5}, "b": "text"}

    def test_invalid_format(self):
        with pytest.raises(ConfigError):
            parse_overrides(["no-equals-sign"])


class TestValidation:
    def test_missing_credentials(self):
        config = load_config(None, env={})
        with pytest.raises(ConfigError) as excinfo:
            validate_config(config)
        assert "BIRDEYE_API_KEY" in str(excinfo.value)
        assert "PRIVATE_KEY_BASE58" in str(excinfo.value)

    def test_monitor_only_needs_no_credentials(self):
        validate_config(load_config(None, env={}), require_wallet=False, require_market_data=False)

    def test_unknown_monitor_mode(self):
        config = load_config(None, env={"BIRDEYE_API_KEY": "k", "PRIVATE_KEY_BASE58": "x"})
        config["pool_monitor"]["mode"] = "websocket"
        with pytest.raises(ConfigError):
            validate_config(config)


class TestWallet:
    def test_load_wallet(self):
        keypair = Keypair()
        config = {"wallet": {"private_key": base58.b58encode(bytes(keypair)).decode()}}

        assert load_wallet(config).pubkey() == keypair.pubkey()

    @pytest.mark.parametrize("secret", ["", "not-base58-0OIl", "3yZe7d"])
    def test_invalid_wallet(self, secret):
        with pytest.raises(ConfigError):
            load_wallet({"wallet": {"private_key": secret}})


class TestListSettings:
    def test_list_override_is_split_on_commas(self):
        overrides = parse_overrides(["filters.suspicious_names=pepe, wojak"])

        config = load_config(None, overrides=overrides, env={})

        assert config["filters"]["suspicious_names"] == ["pepe", "wojak"]
        thresholds = FilterThresholds.from_config(config)
        passed, _ = evaluate_snipe_filters(make_metrics(name="Alpha Token"), thresholds)
        assert passed

    def test_list_override_items_follow_default_type(self):
        overrides = parse_overrides(["safety.allowed_decimals=9", "filters.excluded_tokens=MintA"])

        assert overrides == {
            "safety": {"allowed_decimals": [9]},
            "filters": {"excluded_tokens": ["MintA"]},
        }

    def test_invalid_list_item(self):
        with pytest.raises(ConfigError):
            parse_overrides(["safety.allowed_decimals=nine"])

    def test_scalar_in_yaml_rejected(self, tmp_path):
        path = tmp_path / "sniper.yaml"
        path.write_text("safety:\n  allowed_decimals: 9\n")

        with pytest.raises(ConfigError):
            load_config(path, env={})
