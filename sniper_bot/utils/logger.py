"""Logging helpers shared by every module of the bot."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

LOG_DIR = Path(os.getenv("SNIPER_LOG_DIR", Path(__file__).resolve().parents[2] / "logs"))

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str,
    log_file: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    to_console: bool = True,
) -> logging.Logger:
    """Return a logger writing to the console and optionally ``log_file``.

    Calling this more than once for the same name does not stack handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    if to_console and not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    ):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        existing = {
            getattr(h, "baseFilename", None)
            for h in logger.handlers
            if isinstance(h, logging.FileHandler)
        }
        if str(path.resolve()) not in existing:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def set_log_level(level: Union[str, int]) -> None:
    """Apply ``level`` to the root logger and every ``sniper_bot`` logger."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)
    for name, existing in logging.Logger.manager.loggerDict.items():
        if name.startswith("sniper_bot") and isinstance(existing, logging.Logger):
            existing.setLevel(level)
