"""
================================================================================
Logging Setup
================================================================================

Centralized Loguru configuration shared by the pytest session and the
test runner script.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


DEFAULT_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
)

_logger_initialized: bool = False


def init_logger(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    format_str: str = DEFAULT_LOG_FORMAT,
) -> None:
    """
    Initialize the global Loguru logger.

    Safe to call more than once; only the first call installs sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path of a rotating log file.
        rotation: Rotation policy for the file sink.
        retention: Retention policy for the file sink.
        format_str: Log format string.
    """
    global _logger_initialized

    if _logger_initialized:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=format_str,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level.upper(),
            format=format_str.replace("{level: <8}", "{level}"),
            rotation=rotation,
            retention=retention,
            compression="zip",
        )

    _logger_initialized = True
    logger.debug(f"Logger initialized with level: {level}")


def reset_logger() -> None:
    """Allow ``init_logger`` to reconfigure sinks again."""
    global _logger_initialized
    _logger_initialized = False


__all__ = [
    "init_logger",
    "reset_logger",
]
