"""Loguru sinks for CLI runs."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

SESSION_LOG_NAME = "session.log"

STDERR_FORMAT = (
    "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | "
    "<level>{message}</level>"
)


def configure_stderr(verbose: bool = False) -> None:
    """Replace loguru's default sink with a stderr sink for the CLI."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format=STDERR_FORMAT,
    )


def add_session_log(dump_dir: Path) -> int:
    """Log every step of a dump into ``<dump_dir>/session.log``.

    Returns:
        The sink id, to be passed to ``logger.remove`` when the dump ends.
    """
    dump_dir.mkdir(parents=True, exist_ok=True)
    return logger.add(
        str(dump_dir / SESSION_LOG_NAME),
        level="DEBUG",
        mode="w",
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
