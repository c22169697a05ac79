"""
Raydium AMM v4 Layouts

Decoding helpers for the Raydium AMM v4 program: the ``initialize2``
instruction account schema and the ``LIQUIDITY_STATE_V4`` pool account.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import base58

RAYDIUM_AMM_V4_PROGRAM_ID = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
RAYDIUM_AMM_AUTHORITY = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"


class LayoutError(ValueError):
    """Raised when instruction or account data does not match the layout."""


# Instruction schemas keyed by the first data byte.
INITIALIZE2_DISCRIMINATOR = 1
INITIALIZE2_ACCOUNTS: Tuple[str, ...] = (
    "token_program",
    "associated_token_program",
    "system_program",
    "rent",
    "amm",
    "amm_authority",
    "amm_open_orders",
    "lp_mint",
    "coin_mint",
    "pc_mint",
    "coin_vault",
    "pc_vault",
    "target_orders",
    "amm_config",
    "create_fee_destination",
    "market_program",
    "market",
    "user_wallet",
    "user_token_coin",
    "user_token_pc",
    "user_lp_token",
)
INSTRUCTION_SCHEMAS: Dict[int, Tuple[str, Tuple[str, ...]]] = {
    INITIALIZE2_DISCRIMINATOR: ("initialize2", INITIALIZE2_ACCOUNTS),
}


@dataclass(frozen=True)
class DecodedInstruction:
    name: str
    accounts: Dict[str, str]


def decode_amm_instruction(instruction: Mapping[str, Any]) -> Optional[DecodedInstruction]:
    """Map a raw (unparsed) AMM instruction onto its named account schema.

    Returns ``None`` for instructions without a known schema.
    """
    data = instruction.get("data") or ""
    try:
        raw = base58.b58decode(data)
    except ValueError as exc:
        raise LayoutError(f"instruction data is not base58: {exc}") from exc
    if not raw:
        raise LayoutError("instruction data is empty")

    schema = INSTRUCTION_SCHEMAS.get(raw[0])
    if schema is None:
        return None
    name, account_names = schema

    accounts = list(instruction.get("accounts") or [])
    if len(accounts) < len(account_names):
        raise LayoutError(
            f"{name} expects {len(account_names)} accounts, got {len(accounts)}"
        )
    return DecodedInstruction(name=name, accounts=dict(zip(account_names, accounts)))


def _iter_instructions(transaction: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    message = (transaction.get("transaction") or {}).get("message") or {}
    for ix in message.get("instructions") or []:
        yield ix
    meta = transaction.get("meta") or {}
    for inner in meta.get("innerInstructions") or []:
        for ix in inner.get("instructions") or []:
            yield ix


def find_initialize2(
    transaction: Mapping[str, Any],
    program_id: str = RAYDIUM_AMM_V4_PROGRAM_ID,
) -> DecodedInstruction:
    """Locate and decode the ``initialize2`` instruction of a parsed transaction."""
    for ix in _iter_instructions(transaction):
        if ix.get("programId") != program_id:
            continue
        decoded = decode_amm_instruction(ix)
        if decoded is not None and decoded.name == "initialize2":
            return decoded
    raise LayoutError(f"no initialize2 instruction for program {program_id}")


# LIQUIDITY_STATE_V4: 32 u64 fields, 6 swap counters, then public keys.
_STATE_U64_FIELDS = (
    "status", "nonce", "max_order", "depth", "base_decimal", "quote_decimal",
    "state", "reset_flag", "min_size", "vol_max_cut_ratio", "amount_wave_ratio",
    "base_lot_size", "quote_lot_size", "min_price_multiplier",
    "max_price_multiplier", "system_decimal_value", "min_separate_numerator",
    "min_separate_denominator", "trade_fee_numerator", "trade_fee_denominator",
    "pnl_numerator", "pnl_denominator", "swap_fee_numerator",
    "swap_fee_denominator", "base_need_take_pnl", "quote_need_take_pnl",
    "quote_total_pnl", "base_total_pnl", "pool_open_time", "punish_pc_amount",
    "punish_coin_amount", "orderbook_to_init_time",
)
_STATE_PUBKEY_FIELDS = (
    "base_vault", "quote_vault", "base_mint", "quote_mint", "lp_mint",
    "open_orders", "market_id", "market_program_id", "target_orders",
    "withdraw_queue", "lp_vault", "owner",
)

LIQUIDITY_STATE_V4_SPAN = 752
_U64_BLOCK = struct.Struct("<32Q")
# swap_base_in u128, swap_quote_out u128, base2quote fee u64,
# swap_quote_in u128, swap_base_out u128, quote2base fee u64
_SWAP_COUNTERS_SIZE = 16 + 16 + 8 + 16 + 16 + 8
_PUBKEYS_OFFSET = _U64_BLOCK.size + _SWAP_COUNTERS_SIZE

POOL_OPEN_TIME_OFFSET = 8 * _STATE_U64_FIELDS.index("pool_open_time")
BASE_MINT_OFFSET = _PUBKEYS_OFFSET + 32 * _STATE_PUBKEY_FIELDS.index("base_mint")
QUOTE_MINT_OFFSET = _PUBKEYS_OFFSET + 32 * _STATE_PUBKEY_FIELDS.index("quote_mint")


@dataclass(frozen=True)
class LiquidityStateV4:
    status: int
    base_decimal: int
    quote_decimal: int
    pool_open_time: int  # unix seconds
    base_vault: str
    quote_vault: str
    base_mint: str
    quote_mint: str
    lp_mint: str
    open_orders: str
    market_id: str


def decode_liquidity_state_v4(data: bytes) -> LiquidityStateV4:
    """Decode a Raydium v4 pool account."""
    if len(data) != LIQUIDITY_STATE_V4_SPAN:
        raise LayoutError(
            f"pool account is {len(data)} bytes, expected {LIQUIDITY_STATE_V4_SPAN}"
        )
    numbers = dict(zip(_STATE_U64_FIELDS, _U64_BLOCK.unpack_from(data, 0)))

    keys = {}
    for index, name in enumerate(_STATE_PUBKEY_FIELDS):
        start = _PUBKEYS_OFFSET + 32 * index
        keys[name] = base58.b58encode(data[start:start + 32]).decode()

    return LiquidityStateV4(
        status=numbers["status"],
        base_decimal=numbers["base_decimal"],
        quote_decimal=numbers["quote_decimal"],
        pool_open_time=numbers["pool_open_time"],
        base_vault=keys["base_vault"],
        quote_vault=keys["quote_vault"],
        base_mint=keys["base_mint"],
        quote_mint=keys["quote_mint"],
        lp_mint=keys["lp_mint"],
        open_orders=keys["open_orders"],
        market_id=keys["market_id"],
    )
