"""Centralized logging configuration using Loguru.

Usage:
    from lockbump.logging import logger
    logger.info("Message")

Environment Variables:
    LOCKBUMP_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
    LOCKBUMP_LOG_JSON: 0|1 (default: 0, human-readable)
    LOCKBUMP_LOG_FILE: path to log file (optional)
"""

import os
import sys

from loguru import logger

# Remove default handler
logger.remove()

_log_level = os.environ.get("LOCKBUMP_LOG_LEVEL", "INFO").upper()
_json_mode = os.environ.get("LOCKBUMP_LOG_JSON", "0") == "1"
_log_file = os.environ.get("LOCKBUMP_LOG_FILE")

_HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)

if _json_mode:
    logger.add(sys.stderr, level=_log_level, serialize=True)
else:
    logger.add(sys.stderr, level=_log_level, format=_HUMAN_FORMAT)

if _log_file:
    logger.add(_log_file, level="DEBUG", rotation="10 MB", serialize=_json_mode)


def configure_logging(level: str) -> None:
    """Reset the stderr sink to a new level (used by the CLI --verbose flag)."""
    logger.remove()
    if _json_mode:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, level=level.upper(), format=_HUMAN_FORMAT)
    if _log_file:
        logger.add(_log_file, level="DEBUG", rotation="10 MB", serialize=_json_mode)


__all__ = ["logger", "configure_logging"]
