"""
Loguru setup for the bot and the HTTP server.

Log lines regularly carry request URLs and headers from the GitHub crawl and
errors from the OpenAI SDK, so a patcher masks credentials in every message
before any sink sees it: GitHub tokens, OpenAI keys and Authorization values.
"""
from __future__ import annotations

import re
import sys
from pathlib import Path

from loguru import logger

from repobot.config import LoggingConfig

_SECRET_PATTERNS = [
    re.compile(r"(?i)(authorization[\"']?\s*[:=]\s*[\"']?(?:token|bearer)\s+)[^\s\"',}]+"),
    re.compile(r"\b(gh[pousr]_|github_pat_)[A-Za-z0-9_]{8,}"),
    re.compile(r"\b(sk-)[A-Za-z0-9_\-]{8,}"),
]

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def redact(text: str) -> str:
    """Replace credential values with '***', keeping their prefix."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: f"{m.group(1)}***", text)
    return text


def _redact_record(record: dict) -> None:
    record["message"] = redact(record["message"])


def setup_logger(config: LoggingConfig | None = None) -> None:
    """
    Configure loguru from the `logging` section of the settings.

    - Console: coloured, human-readable
    - File: rotating and compressed per `rotation` / `retention`
    Both sinks receive redacted messages.
    """
    config = config or LoggingConfig()
    logger.remove()
    logger.configure(patcher=_redact_record)

    logger.add(sys.stderr, level=config.level, format=CONSOLE_FORMAT, colorize=True)

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            config.file,
            level=config.level,
            format=FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            enqueue=True,
        )

    logger.info(f"[Logger] level={config.level} | file={config.file or '-'}")
