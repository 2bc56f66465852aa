"""Observability helpers: structured logging via structlog.

Import `init_observability` and call it early in your FastAPI app to activate.
"""
from __future__ import annotations

import logging
from typing import Optional

import structlog

from settings import get_settings

__all__ = [
    "init_observability",
]

_HANDLER_NAME = "structlog-root"


def _setup_logging(log_format: str, log_level: str) -> None:
    """Configure structlog for structured logging (JSON or console)."""

    # Define shared processors
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Choose renderer based on format
    if log_format.lower() == "json":
        final_processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [final_processor],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Standard logging root logger; structlog renders, so no formatter here.
    # Only one handler even if init runs more than once (tests, reloads).
    root_logger = logging.getLogger()
    if not any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def init_observability(log_format: Optional[str] = None, log_level: Optional[str] = None) -> None:
    """Setup logging. Call once at process start."""
    settings = get_settings()
    _setup_logging(log_format or settings.log_format, log_level or settings.log_level)

    structlog.get_logger(__name__).info("Observability initialized")
