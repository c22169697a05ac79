"""
Portfolio Store

Persists sniped positions to ``portfolio.json`` and every snipe to
``snipes_log.json``. All mutations go through a single writer task so
concurrent snipes cannot overwrite each other's updates.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .solana.models import SnipeRecord
from .utils.logger import LOG_DIR, setup_logger

logger = setup_logger(__name__, LOG_DIR / "portfolio.log")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def empty_portfolio() -> Dict[str, Any]:
    return {"tokens": [], "totalInvested": 0.0, "totalValue": 0.0, "lastUpdated": _now_iso()}


class PortfolioStore:
    """Single-writer store for the portfolio and snipe log files."""

    def __init__(self, config: Dict):
        self.portfolio_config = config.get("portfolio", {})
        self.portfolio_file = Path(self.portfolio_config.get("portfolio_file", "portfolio.json"))
        self.snipes_log_file = Path(self.portfolio_config.get("snipes_log_file", "snipes_log.json"))

        self._queue: Optional[asyncio.Queue] = None
        self._writer_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            with open(path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(f"Error reading {path}: {exc}")
            return default

    def load_portfolio(self) -> Dict[str, Any]:
        data = self._read_json(self.portfolio_file, None)
        if not isinstance(data, dict):
            return empty_portfolio()
        data.setdefault("tokens", [])
        data.setdefault("totalInvested", 0.0)
        data.setdefault("totalValue", 0.0)
        data.setdefault("lastUpdated", _now_iso())
        return data

    def load_snipes(self) -> List[Dict[str, Any]]:
        data = self._read_json(self.snipes_log_file, [])
        return data if isinstance(data, list) else []

    # ------------------------------------------------------------------
    # Writer task
    # ------------------------------------------------------------------
    async def start(self):
        if self._writer_task and not self._writer_task.done():
            return
        self._queue = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._writer_loop())

    async def stop(self):
        if not self._writer_task:
            return
        await self._queue.put(None)
        await self._writer_task
        self._writer_task = None
        self._queue = None

    async def _writer_loop(self):
        while True:
            job = await self._queue.get()
            if job is None:
                self._queue.task_done()
                break
            operation, args, future = job
            try:
                result = operation(*args)
            except Exception as exc:
                logger.error(f"Portfolio write failed: {exc}")
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    async def _submit(self, operation: Callable[..., Any], *args: Any) -> Any:
        if not self._writer_task or self._writer_task.done():
            await self.start()
        future = asyncio.get_running_loop().create_future()
        await self._queue.put((operation, args, future))
        return await future

    def _write_json(self, path: Path, data: Any) -> None:
        """Rewrite ``path`` whole through a temp file and an atomic rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def record_snipe(self, record: SnipeRecord) -> Dict[str, Any]:
        """Append ``record`` to the snipe log and the portfolio."""
        return await self._submit(self._apply_snipe, record)

    async def update_prices(self, prices: Mapping[str, Optional[float]]) -> Dict[str, Any]:
        """Re-mark positions at ``prices``; mints without a price keep their last mark."""
        return await self._submit(self._apply_prices, dict(prices))

    def _apply_snipe(self, record: SnipeRecord) -> Dict[str, Any]:
        snipes = self.load_snipes()
        snipes.append(record.to_dict())
        self._write_json(self.snipes_log_file, snipes)

        portfolio = self.load_portfolio()
        entry = record.to_portfolio_entry()
        portfolio["tokens"].append(entry)
        portfolio["totalInvested"] = float(portfolio["totalInvested"]) + record.amount_spent
        portfolio["totalValue"] = float(portfolio["totalValue"]) + entry["currentValue"]
        portfolio["lastUpdated"] = _now_iso()
        self._write_json(self.portfolio_file, portfolio)

        logger.info(
            f"📊 Added {record.symbol} to portfolio: {record.tokens_received:,.4f} tokens "
            f"for ${record.amount_spent:.2f}"
        )
        return portfolio

    def _apply_prices(self, prices: Dict[str, Optional[float]]) -> Dict[str, Any]:
        portfolio = self.load_portfolio()
        total_value = 0.0
        for entry in portfolio["tokens"]:
            price = prices.get(entry.get("mint"))
            if price is not None:
                tokens = float(entry.get("tokensReceived") or 0.0)
                invested = float(entry.get("amountUsdt") or 0.0)
                current_value = tokens * price
                profit_loss = current_value - invested
                entry["currentPrice"] = price
                entry["currentValue"] = current_value
                entry["profitLoss"] = profit_loss
                entry["profitLossPercent"] = (profit_loss / invested * 100) if invested else 0.0
            total_value += float(entry.get("currentValue") or 0.0)

        portfolio["totalValue"] = total_value
        portfolio["lastUpdated"] = _now_iso()
        self._write_json(self.portfolio_file, portfolio)
        return portfolio
