"""
Solana RPC Client

Thin async wrapper around the Solana JSON-RPC HTTP endpoint, the websocket
subscription endpoint and transaction submission. Exposes only the
capabilities the sniper needs; everything else is left to the node.
"""

from __future__ import annotations

import itertools
import json
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

import aiohttp
import websockets
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.signature import Signature

from ..utils.logger import setup_logger

logger = setup_logger(__name__)


class RpcError(Exception):
    """JSON-RPC error response."""


class TransactionFailedError(Exception):
    """A submitted transaction was not confirmed or failed on-chain."""


def _derive_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url[len("https://"):]
    if http_url.startswith("http://"):
        return "ws://" + http_url[len("http://"):]
    return http_url


class SolanaRpc:
    """Solana node access: JSON-RPC queries, subscriptions and submission."""

    def __init__(self, config: Dict):
        self.config = config
        self.rpc_config = config.get("solana", {})

        self.http_url = self.rpc_config.get("rpc_url", "https://api.mainnet-beta.solana.com")
        self.ws_url = self.rpc_config.get("ws_url") or _derive_ws_url(self.http_url)
        self.commitment = self.rpc_config.get("commitment", "confirmed")

        self.client = AsyncClient(self.http_url, commitment=Confirmed)
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        await self.client.close()

    async def _rpc_call(self, method: str, params: Sequence[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        session = await self._get_session()
        async with session.post(self.http_url, json=payload) as resp:
            resp.raise_for_status()
            data = await resp.json(content_type=None)
        if data.get("error"):
            raise RpcError(f"{method} failed: {data['error']}")
        return data.get("result")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get_parsed_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return await self._rpc_call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": "confirmed",
                },
            ],
        )

    async def get_parsed_account_info(self, address: str) -> Optional[Dict[str, Any]]:
        """Return the ``value`` of a jsonParsed ``getAccountInfo`` call."""
        result = await self._rpc_call(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        return (result or {}).get("value")

    async def get_token_largest_accounts(self, mint: str) -> List[Dict[str, Any]]:
        result = await self._rpc_call(
            "getTokenLargestAccounts", [mint, {"commitment": self.commitment}]
        )
        return list((result or {}).get("value") or [])

    async def get_token_account_owners(self, accounts: Sequence[str]) -> Dict[str, str]:
        """Map token account address -> owning wallet."""
        if not accounts:
            return {}
        result = await self._rpc_call(
            "getMultipleAccounts",
            [list(accounts), {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        owners: Dict[str, str] = {}
        for address, account in zip(accounts, (result or {}).get("value") or []):
            if not account:
                continue
            data = account.get("data")
            if isinstance(data, Mapping):
                owner = data.get("parsed", {}).get("info", {}).get("owner")
                if owner:
                    owners[address] = owner
        return owners

    async def get_token_balance(self, owner: str, mint: str) -> float:
        """UI balance of ``mint`` summed over every token account of ``owner``."""
        result = await self._rpc_call(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        total = 0.0
        for account in (result or {}).get("value") or []:
            info = account.get("account", {}).get("data", {}).get("parsed", {}).get("info", {})
            amount = info.get("tokenAmount", {}).get("uiAmount")
            if amount:
                total += float(amount)
        return total

    async def get_latest_blockhash(self) -> Hash:
        resp = await self.client.get_latest_blockhash()
        return resp.value.blockhash

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    async def send_and_confirm(self, raw_transaction: bytes) -> str:
        """Submit a signed transaction and wait for ``confirmed`` commitment."""
        resp = await self.client.send_raw_transaction(
            raw_transaction,
            opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed),
        )
        signature: Signature = resp.value
        logger.info(f"📤 Transaction sent: {signature}")

        confirmation = await self.client.confirm_transaction(signature, commitment=Confirmed)
        statuses = confirmation.value or []
        status = statuses[0] if statuses else None
        if status is None:
            raise TransactionFailedError(f"Transaction {signature} was not confirmed")
        if status.err:
            raise TransactionFailedError(f"Transaction {signature} failed: {status.err}")
        return str(signature)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    async def _subscribe(
        self, method: str, params: Sequence[Any]
    ) -> AsyncIterator[Dict[str, Any]]:
        async with websockets.connect(self.ws_url, ping_interval=20, max_size=None) as ws:
            request = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
            await ws.send(json.dumps(request))
            logger.info(f"🔌 {method} sent to {self.ws_url}")

            async for raw in ws:
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid subscription message: {raw!r}")
                    continue
                if "error" in message:
                    raise RpcError(f"{method} failed: {message['error']}")
                if "result" in message and "params" not in message:
                    logger.info(f"✅ Subscription confirmed (id {message['result']})")
                    continue
                value = message.get("params", {}).get("result", {}).get("value")
                if value is not None:
                    yield value

    def logs_subscribe(
        self, program_id: str, commitment: str = "finalized"
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield ``{signature, err, logs}`` for transactions mentioning ``program_id``."""
        return self._subscribe(
            "logsSubscribe",
            [{"mentions": [program_id]}, {"commitment": commitment}],
        )

    def program_subscribe(
        self,
        program_id: str,
        filters: Sequence[Mapping[str, Any]],
        commitment: str = "confirmed",
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield ``{pubkey, account}`` for accounts owned by ``program_id``."""
        return self._subscribe(
            "programSubscribe",
            [
                program_id,
                {"encoding": "base64", "commitment": commitment, "filters": list(filters)},
            ],
        )
