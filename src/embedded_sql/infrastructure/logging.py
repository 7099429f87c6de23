"""Structured logging configuration."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from embedded_sql.infrastructure.config import ObservabilityConfig


def add_library_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Tag every entry with the emitting library."""
    event_dict.setdefault("library", "embedded_sql")
    return event_dict


def setup_logging(observability: ObservabilityConfig | None = None) -> structlog.BoundLogger:
    """
    Set up structured logging with structlog.

    Args:
        observability: Log level and format; defaults to INFO/json.

    Returns:
        A logger bound to the library
    """
    observability = observability or ObservabilityConfig()
    level = getattr(logging, observability.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_library_context,
    ]

    if observability.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Per-request access lines duplicate the structured request events
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return structlog.get_logger("embedded_sql")


def get_logger(name: str | None = None, **context: Any) -> structlog.BoundLogger:
    """
    Get a bound logger instance.

    Args:
        name: Logger name (module name typically)
        **context: Initial context to bind to the logger
    """
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger
