"""Structured logging configuration.

The client is usually embedded in a host application. ``setup_logging()``
configures structlog for the client's own events; the stdlib root logger is
only touched when the host has not configured one.
"""

import logging
import sys
from typing import Any, cast

import structlog

from healthscore.config import Settings, get_settings


def _renderer(settings: Settings) -> list[Any]:
    if settings.is_development:
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: Settings | None = None, configure_stdlib: bool = True) -> None:
    """Configure structured logging for the client.

    Args:
        settings: Settings to read the environment from (default: cached settings)
        configure_stdlib: Attach a stdout handler to the root logger if it
            has none. Hosts that own logging pass False.
    """
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.app_debug else logging.INFO

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        *_renderer(settings),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Module-level loggers must follow later reconfiguration by the host
        cache_logger_on_first_use=False,
    )

    logging.getLogger("healthscore").setLevel(log_level)
    if configure_stdlib and not logging.getLogger().handlers:
        logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    # Relayer traffic is logged by the client itself
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
