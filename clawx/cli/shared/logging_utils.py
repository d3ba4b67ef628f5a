"""Loguru helpers for consistent console and file logging in CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from clawx.utils.helpers import get_logs_path

_SINK_IDS: dict[str, int] = {}


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_path = get_logs_path() / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return log_path


def configure_console_logging(level: str = "INFO") -> None:
    """Replace the default stderr sink with one at the requested level."""
    logger.remove()
    _SINK_IDS.clear()
    logger.add(sys.stderr, level=level.upper())
