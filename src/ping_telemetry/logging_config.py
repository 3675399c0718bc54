"""Logging configuration for the ping telemetry collector."""

import logging
import os
import sys

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(level: str | None = None) -> int:
    """Configure process-wide logging to stderr.

    The level comes from the ``level`` argument, then the
    ``PING_TELEMETRY_LOG_LEVEL`` environment variable, then INFO. Unknown
    names fall back to INFO.

    Args:
        level: Optional level name such as "DEBUG" or "warning".

    Returns:
        The numeric level that was applied.
    """
    level_name = (level or os.getenv("PING_TELEMETRY_LOG_LEVEL", "INFO")).upper()
    log_level = _LEVELS.get(level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger(__name__).debug(
        "Logging configured: level=%s", logging.getLevelName(log_level)
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))
    return log_level
