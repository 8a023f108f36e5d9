"""Shared logging utilities for structured logging across the application.

This module provides a centralized logging configuration using structlog.
Logs are JSON-formatted by default; set ``LOG_FORMAT=console`` for
human-readable output during local development and ``LOG_LEVEL`` to change
verbosity.
"""

import logging
import os
import sys

import structlog

_configured = False


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the standard library root logger.

    Safe to call more than once; only the first call takes effect.

    Args:
        level: Log level name. Defaults to ``LOG_LEVEL`` or INFO.
        log_format: ``json`` or ``console``. Defaults to ``LOG_FORMAT`` or json.
    """
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt = (log_format or os.getenv("LOG_FORMAT", "json")).lower()

    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )
    _configured = True


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a configured structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module).

    Returns:
        Configured structlog logger instance ready for use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("video_processed", video_id="abc123", chunks=4)
    """
    configure_logging()
    return structlog.get_logger(name)
