"""
Configuration Loading

Builds the bot configuration from built-in defaults, an optional YAML file,
environment variables (``.env`` is honoured) and command-line overrides, in
that order of precedence. The result is a plain nested dict that every
component reads its own section from.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import base58
import yaml
from dotenv import find_dotenv, load_dotenv
from solders.keypair import Keypair

from .solana.filters import DEFAULT_EXCLUDED_TOKENS, DEFAULT_SUSPICIOUS_NAMES
from .solana.models import USDT_MINT, WSOL_MINT
from .solana.pool_layout import RAYDIUM_AMM_AUTHORITY, RAYDIUM_AMM_V4_PROGRAM_ID
from .utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config/sniper_config.yaml")


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


DEFAULT_CONFIG: Dict[str, Any] = {
    "solana": {
        "rpc_url": "https://api.mainnet-beta.solana.com",
        "ws_url": "",
        "commitment": "confirmed",
    },
    "wallet": {
        "private_key": "",
    },
    "pool_monitor": {
        "enabled": True,
        "mode": "logs",  # "logs" or "account_change"
        "program_id": RAYDIUM_AMM_V4_PROGRAM_ID,
        "log_marker": "initialize2",
        "log_commitment": "finalized",
        "account_commitment": "confirmed",
        "quote_mint": WSOL_MINT,
        "reconnect_interval": 5,
        "seen_maxsize": 100_000,
        "seen_ttl_seconds": 3600,
    },
    "scanner": {
        "enabled": True,
        "poll_interval_seconds": 30,
        "max_new_tokens_per_poll": 3,
        "seen_maxsize": 100_000,
        "seen_ttl_seconds": 86_400,
    },
    "market_data": {
        "api_key": "",
        "base_url": "https://public-api.birdeye.so",
        "chain": "solana",
        "price_request_delay": 0.5,
    },
    "filters": {
        "min_liquidity": 3000.0,
        "min_market_cap": 30_000.0,
        "max_market_cap": 10_000_000.0,
        "min_price": 0.000001,
        "max_price": 1000.0,
        "max_token_age_minutes": 60.0,
        "min_volume_24h": 5000.0,
        "min_volume_to_mc_ratio": 0.05,
        "max_price_change_24h_pct": 1000.0,
        "excluded_tokens": list(DEFAULT_EXCLUDED_TOKENS),
        "suspicious_names": list(DEFAULT_SUSPICIOUS_NAMES),
    },
    "safety": {
        "min_supply": 1_000_000,
        "max_supply": 1_000_000_000_000,
        "allowed_decimals": [6, 8, 9],
        "honeypot_stable_mint": USDT_MINT,
        "honeypot_test_amount": 1_000_000,
        "honeypot_slippage_bps": 100,
        "max_round_trip_impact_pct": 50.0,
        "min_recovery_pct": 50.0,
        "max_leg_price_impact_pct": 20.0,
        "holder_check_enabled": True,
        "max_top_holder_pct": 50.0,
        "excluded_holder_owners": [RAYDIUM_AMM_AUTHORITY],
    },
    "execution": {
        "dry_run": False,
        "snipe_amount": 1.0,
        "spend_mint": USDT_MINT,
        "spend_decimals": 6,
        "max_slippage_bps": 500,
        "max_price_impact_pct": 20.0,
        "max_quote_slippage_pct": 5.0,
        "check_balance": True,
        "default_token_decimals": 9,
    },
    "jupiter": {
        "quote_url": "https://quote-api.jup.ag/v6/quote",
        "swap_url": "https://quote-api.jup.ag/v6/swap",
    },
    "orchestrator": {
        "attempted_maxsize": 100_000,
        "attempted_ttl_seconds": 86_400,
    },
    "portfolio": {
        "portfolio_file": "portfolio.json",
        "snipes_log_file": "snipes_log.json",
    },
    "telegram": {
        "bot_token": "",
        "chat_id": "",
    },
    "logging": {
        "level": "INFO",
    },
}

# environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "SOLANA_RPC": ("solana", "rpc_url"),
    "SOLANA_WS": ("solana", "ws_url"),
    "PRIVATE_KEY_BASE58": ("wallet", "private_key"),
    "BIRDEYE_API_KEY": ("market_data", "api_key"),
    "TELEGRAM_BOT_TOKEN": ("telegram", "bot_token"),
    "TELEGRAM_CHAT_ID": ("telegram", "chat_id"),
    "DRY_RUN": ("execution", "dry_run"),
    "SNIPE_AMOUNT_USDT": ("execution", "snipe_amount"),
    "MAX_SLIPPAGE_BPS": ("execution", "max_slippage_bps"),
    "MIN_LIQUIDITY": ("filters", "min_liquidity"),
    "MIN_MARKET_CAP": ("filters", "min_market_cap"),
    "MAX_MARKET_CAP": ("filters", "max_market_cap"),
    "MONITOR_INTERVAL_SECONDS": ("scanner", "poll_interval_seconds"),
    "ENABLE_REALTIME_MONITORING": ("pool_monitor", "enabled"),
    "LOG_LEVEL": ("logging", "level"),
}


def merge_config(config: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overrides`` into ``config`` in place."""
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(config.get(key), dict):
            merge_config(config[key], value)
        else:
            config[key] = value
    return config


def _coerce(raw: str, current: Any) -> Any:
    """Convert an environment string to the type of the default it replaces."""
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(float(raw))
    if isinstance(current, float):
        return float(raw)
    return raw


def _default_for(keys: Iterable[str]) -> Any:
    current: Any = DEFAULT_CONFIG
    for k in keys:
        if not isinstance(current, Mapping) or k not in current:
            return None
        current = current[k]
    return current


def _split_list(raw: str, default: list) -> list:
    """Comma-separated string -> list typed like the items of ``default``."""
    items = [part.strip() for part in raw.split(",") if part.strip()]
    if default:
        return [_coerce(part, default[0]) for part in items]
    return items


def parse_overrides(items: Optional[Iterable[str]]) -> Dict[str, Any]:
    """Turn ``section.key=value`` strings into a nested override dict.

    Keys whose default is a list take a comma-separated value.
    """
    overrides: Dict[str, Any] = {}
    for item in items or []:
        if "=" not in item:
            raise ConfigError(f"Invalid override format: {item}")
        key, value = item.split("=", 1)
        keys = key.strip().split(".")
        default = _default_for(keys)

        parsed: Any = value
        if isinstance(default, list):
            try:
                parsed = _split_list(value, default)
            except ValueError as exc:
                raise ConfigError(f"Invalid list value for {key}: {value}") from exc
        elif value.lower() in ("true", "false"):
            parsed = value.lower() == "true"
        elif value.isdigit():
            parsed = int(value)
        elif value.replace(".", "", 1).isdigit():
            parsed = float(value)

        current = overrides
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = parsed
    return overrides


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> Dict[str, Any]:
    """Load the configuration once at start-up."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid configuration file {config_path}: {exc}") from exc
        if not isinstance(file_config, dict):
            raise ConfigError(f"Configuration file {config_path} must contain a mapping")
        merge_config(config, file_config)
        logger.info(f"Configuration loaded from {config_path}")
    elif path:
        raise ConfigError(f"Configuration file not found: {config_path}")

    if env is None:
        if use_dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    for var, (section, key) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            config[section][key] = _coerce(raw, config[section].get(key))
        except ValueError as exc:
            raise ConfigError(f"Invalid value for {var}: {raw}") from exc

    if overrides:
        merge_config(config, overrides)
    _check_list_settings(config)
    return config


def _check_list_settings(config: Dict[str, Any]) -> None:
    """Reject scalars where a list setting is expected."""
    for section, defaults in DEFAULT_CONFIG.items():
        if not isinstance(defaults, dict) or not isinstance(config.get(section), dict):
            continue
        for key, default in defaults.items():
            if not isinstance(default, list) or key not in config[section]:
                continue
            value = config[section][key]
            if isinstance(value, tuple):
                config[section][key] = list(value)
            elif not isinstance(value, list):
                raise ConfigError(f"{section}.{key} must be a list, got {value!r}")


def validate_config(
    config: Mapping[str, Any],
    require_wallet: bool = True,
    require_market_data: bool = True,
) -> None:
    """Raise :class:`ConfigError` when required credentials are missing."""
    missing = []
    if require_market_data and not config.get("market_data", {}).get("api_key"):
        missing.append("BIRDEYE_API_KEY (market_data.api_key)")
    if require_wallet and not config.get("wallet", {}).get("private_key"):
        missing.append("PRIVATE_KEY_BASE58 (wallet.private_key)")
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    mode = config.get("pool_monitor", {}).get("mode", "logs")
    if mode not in ("logs", "account_change"):
        raise ConfigError(f"Unknown pool_monitor.mode: {mode}")

    execution = config.get("execution", {})
    if float(execution.get("snipe_amount", 0)) <= 0:
        raise ConfigError("execution.snipe_amount must be positive")


def load_wallet(config: Mapping[str, Any]) -> Keypair:
    """Decode the base58 wallet secret from the configuration."""
    secret = config.get("wallet", {}).get("private_key")
    if not secret:
        raise ConfigError("Missing wallet private key")
    try:
        raw = base58.b58decode(secret.strip())
    except ValueError as exc:
        raise ConfigError(f"Invalid wallet private key: {exc}") from exc
    if len(raw) != 64:
        raise ConfigError(f"Invalid wallet private key: expected 64 bytes, got {len(raw)}")
    try:
        return Keypair.from_bytes(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid wallet private key: {exc}") from exc
