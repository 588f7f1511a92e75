"""Structlog configuration helpers for structured logging."""

from __future__ import annotations

import logging

import structlog

DEFAULT_LOG_LEVEL = "INFO"


def configure_logging(level: str = DEFAULT_LOG_LEVEL, *, pretty: bool = False) -> None:
    """Configure structlog to emit JSON logs, or console output when *pretty*."""

    timestamper = structlog.processors.TimeStamper(fmt="iso")
    renderer = structlog.dev.ConsoleRenderer() if pretty else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
    # notion_client logs every request at DEBUG/INFO; keep it at warnings.
    logging.getLogger("notion_client").setLevel(logging.WARNING)
