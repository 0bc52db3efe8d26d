"""Centralised logging helpers for the catalog crawler."""

from __future__ import annotations

import logging
import os
from functools import cache
from logging.handlers import RotatingFileHandler

# Ensure dotenv-based settings are loaded even when logging is imported first.
from flowcore_catalog.config import env_loader

LOG_FOLDER = (
    os.environ.get("CATALOG_LOG_DIR")
    or os.environ.get("LOG_FOLDER")
    or "logs"
)
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3
ENABLE_FILE_LOGS = bool(env_loader.get_bool("ENABLE_FILE_LOGS"))

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_CONSOLE_LEVEL = logging.INFO

_CATEGORY_FILE_MAP: dict[str, str] = {
    "core": "crawler.log",
    "session": "session.log",
    "discovery": "discovery.log",
    "extract": "extract.log",
}


def _build_rotating_handler(filename: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename,
        maxBytes=DEFAULT_MAX_BYTES,
        backupCount=DEFAULT_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


@cache
def get_logger(category: str = "core") -> logging.Logger:
    """Return a configured logger for ``category``.

    Each functional area (session handshake, page discovery, field extraction)
    gets its own logger so a noisy heuristic can be silenced on its own. Output
    goes to the console by default; set ``ENABLE_FILE_LOGS=1`` to also write rotating
    files under ``LOG_FOLDER``.
    """

    category = category or "core"
    logger = logging.getLogger(f"CatalogCrawler.{category}")
    logger.setLevel(logging.DEBUG)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setLevel(_CONSOLE_LEVEL)
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(console_handler)

    if ENABLE_FILE_LOGS:
        os.makedirs(LOG_FOLDER, exist_ok=True)
        file_name = _CATEGORY_FILE_MAP.get(category, _CATEGORY_FILE_MAP["core"])
        logger.addHandler(_build_rotating_handler(os.path.join(LOG_FOLDER, file_name)))

    return logger


logger = get_logger("core")
session_logger = get_logger("session")
discovery_logger = get_logger("discovery")
extract_logger = get_logger("extract")

__all__ = [
    "discovery_logger",
    "extract_logger",
    "get_logger",
    "logger",
    "session_logger",
]
