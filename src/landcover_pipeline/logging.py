"""Loguru sinks for the CLI: console output plus an optional per-run log file."""

from __future__ import annotations

import sys
import uuid
from typing import Optional

from loguru import logger

_TEXT_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> "
    "| {extra[run_id]} | {extra[year]:>4} | {message}"
)


def setup_logging(level: str = "INFO", fmt: str = "text", log_file: Optional[str] = None) -> None:
    """Replace loguru's sinks with a stderr sink and, optionally, a JSON-lines file.

    Year workers log from pool threads, so the file sink is enqueued.
    Records without a bound ``year`` show ``-`` in the text format.
    """
    logger.remove()
    level = level.upper()
    if fmt == "json":
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_TEXT_FORMAT)
    if log_file:
        logger.add(log_file, level="DEBUG", serialize=True, enqueue=True)


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


def bind_run_context(run_id: str) -> None:
    """Make *run_id* the default ``extra`` of every record in this process."""
    logger.configure(extra={"run_id": run_id, "year": "-"})
