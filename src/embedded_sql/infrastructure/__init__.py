"""Infrastructure layer - cross-cutting concerns."""

from embedded_sql.infrastructure.config import Config, get_config
from embedded_sql.infrastructure.container import (
    Container,
    build_container,
    get_container,
    reset_container,
)
from embedded_sql.infrastructure.logging import get_logger, setup_logging
from embedded_sql.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from embedded_sql.infrastructure.tracing import get_tracer, setup_tracing, trace_span

__all__ = [
    "Config",
    "get_config",
    "Container",
    "build_container",
    "get_container",
    "reset_container",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
