# log_forensics/logging.py
"""
Logging setup using Loguru, friendly for concurrent analysis passes.

- Debug toggle (catalog matches, per-pass rule timings)
- Human-readable console formatting on stderr, stdout stays free for reports
- Optional rotating file sink for long-running deployments
"""
from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> "
    "| <level>{level: <8}</level> "
    "| <cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> "
    "- <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(*, debug: bool = False, log_file: Optional[str] = None) -> None:
    """Configure loguru logging sinks.

    Args:
        debug: Enable verbose debug logging.
        log_file: Also write plain-text logs to this path, rotated at 10 MB.
    """
    logger.remove()
    level = "DEBUG" if debug else "INFO"
    logger.add(
        sys.stderr, level=level, format=CONSOLE_FORMAT, enqueue=True, backtrace=debug, diagnose=debug
    )
    if log_file:
        logger.add(log_file, level=level, format=FILE_FORMAT, enqueue=True, rotation="10 MB")
