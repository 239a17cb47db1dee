"""Centralized logging configuration for opsplanner.

The library modules only create loggers; handlers are installed once by
the application (the CLI) through setup_logging().

Usage:
    from opsplanner.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.debug("Only shown when OPSPLANNER_DEBUG=true")

Environment Variables:
    OPSPLANNER_DEBUG: Set to "true" to enable debug logging.
"""

import logging
import os
import sys
from typing import Optional

DEBUG_ENV_VAR = "OPSPLANNER_DEBUG"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handler: Optional[logging.Handler] = None


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled via environment variable."""
    return os.getenv(DEBUG_ENV_VAR, "false").lower() == "true"


def setup_logging(level: Optional[str] = None) -> None:
    """Set up logging for the opsplanner package.

    Args:
        level: Override the logging level name (e.g. "INFO"). If None, the
            OPSPLANNER_DEBUG environment variable decides between DEBUG
            and WARNING.
    """
    global _handler

    if level is not None:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = logging.DEBUG if is_debug_enabled() else logging.WARNING

    package_logger = logging.getLogger("opsplanner")

    if _handler is None:
        # stderr keeps machine-readable stdout output clean
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        package_logger.addHandler(_handler)

    _handler.setLevel(log_level)
    package_logger.setLevel(log_level)

    get_logger(__name__).debug("Logging configured at %s", logging.getLevelName(log_level))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name.

    Args:
        name: Name for the logger, typically __name__.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
