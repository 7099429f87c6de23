"""Prometheus metrics for embedded SQL databases."""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)


class MetricsRegistry:
    """Registry of all embedded SQL metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Lifecycle metrics
        self.databases_open = Gauge(
            "embedded_sql_databases_open",
            "Number of open databases",
            registry=self._registry,
        )

        self.statements_open = Gauge(
            "embedded_sql_statements_open",
            "Number of prepared statements not yet freed",
            registry=self._registry,
        )

        self.statements_prepared_total = Counter(
            "embedded_sql_statements_prepared_total",
            "Total number of statements compiled",
            ["kind"],  # query, insert, update, delete, ddl, transaction, other
            registry=self._registry,
        )

        # Query metrics
        self.queries_total = Counter(
            "embedded_sql_queries_total",
            "Total number of run/exec/each calls",
            ["operation", "status"],  # status: success, error
            registry=self._registry,
        )

        self.query_latency_seconds = Histogram(
            "embedded_sql_query_latency_seconds",
            "Latency of run/exec/each calls in seconds",
            ["operation"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
            registry=self._registry,
        )

        self.rows_returned_total = Counter(
            "embedded_sql_rows_returned_total",
            "Total rows produced by step()",
            registry=self._registry,
        )

        # Transient memory metrics
        self.transient_buffers_outstanding = Gauge(
            "embedded_sql_transient_buffers_outstanding",
            "Bound text/blob buffers not yet released",
            registry=self._registry,
        )

        self.transient_bytes_outstanding = Gauge(
            "embedded_sql_transient_bytes_outstanding",
            "Bytes held by bound text/blob buffers not yet released",
            registry=self._registry,
        )

        # Error metrics
        self.engine_errors_total = Counter(
            "embedded_sql_engine_errors_total",
            "Total non-success engine statuses",
            ["operation"],  # open, prepare, bind, step, reset, finalize, close, exec
            registry=self._registry,
        )

        self.info = Info(
            "embedded_sql",
            "Embedded SQL library information",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """The Prometheus registry the metrics are registered with."""
        return self._registry

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Read the current value of one sample, 0.0 if it was never recorded."""
        value = self._registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0


_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up the Prometheus scrape endpoint.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    if _metrics is None or registry is not None:
        _metrics = MetricsRegistry(registry)

    from embedded_sql import __version__
    _metrics.info.info({"version": __version__})

    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
