"""Loguru setup for message logs.

Every record carries a ``component`` extra; components bind it with
``get_logger`` or ``logger.bind(component=...)``. Records without one are
attributed to the package.
"""

import sys
from typing import Optional

from loguru import logger

from insight_system.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> "
    "<cyan>{extra[component]}</cyan> {message}"
)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Route loguru output according to settings.

    Args:
        level: Overrides settings.log_level
        fmt: Overrides settings.log_format ("console" or "json")
    """
    level = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()

    logger.remove()
    if fmt == "console" and sys.stderr.isatty():
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
    else:
        # one JSON record per line; stderr keeps CLI output on stdout clean
        logger.add(sys.stderr, format="{message}", level=level, serialize=True, diagnose=False)


def get_logger(component: str):
    return logger.bind(component=component)


logger.configure(extra={"component": "insight_system"})
configure_logging()

__all__ = ["logger", "get_logger", "configure_logging", "CONSOLE_FORMAT"]
