"""Prometheus metrics collection module."""

from typing import Any, Dict, List, Optional

from prometheus_client import Counter, Gauge, Histogram


class MetricsRegistry:
    """Registry for Prometheus metrics.

    Registration is idempotent by name so clients created more than once in a
    process share the same collectors.
    """

    def __init__(self):
        """Initialize metrics registry."""
        self._metrics = {}

    def register_counter(self, name: str, description: str, labels: List[str] = None) -> Counter:
        """Register a new counter metric."""
        if name in self._metrics:
            return self._metrics[name]

        counter = Counter(name, description, labels or [])
        self._metrics[name] = counter
        return counter

    def register_gauge(self, name: str, description: str, labels: List[str] = None) -> Gauge:
        """Register a new gauge metric."""
        if name in self._metrics:
            return self._metrics[name]

        gauge = Gauge(name, description, labels or [])
        self._metrics[name] = gauge
        return gauge

    def register_histogram(
        self, name: str, description: str, labels: List[str] = None
    ) -> Histogram:
        """Register a new histogram metric."""
        if name in self._metrics:
            return self._metrics[name]

        histogram = Histogram(name, description, labels or [])
        self._metrics[name] = histogram
        return histogram

    def get_metric(self, name: str) -> Any:
        """Get a registered metric by name."""
        return self._metrics.get(name)

    def increment_counter(
        self, name: str, labels: Optional[Dict[str, str]] = None, amount: float = 1
    ) -> None:
        counter = self._metrics[name]
        (counter.labels(**labels) if labels else counter).inc(amount)

    def observe_histogram(
        self, name: str, value: float, labels: Optional[Dict[str, str]] = None
    ) -> None:
        histogram = self._metrics[name]
        (histogram.labels(**labels) if labels else histogram).observe(value)

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        gauge = self._metrics[name]
        (gauge.labels(**labels) if labels else gauge).set(value)


# Global metrics registry
metrics = MetricsRegistry()

# Table client metrics
metrics.register_counter(
    "table_requests_total",
    "Total number of requests made to the table service",
    ["operation", "status"],
)
metrics.register_histogram(
    "table_request_duration_seconds", "Duration of table service requests", ["operation"]
)

# Cache metrics
metrics.register_gauge("post_cache_records", "Number of posts held in the cache")
metrics.register_counter("post_cache_pages", "Number of query pages drained into the cache")
metrics.register_counter(
    "post_cache_decode_failures", "Number of stored records skipped because they failed to decode"
)
metrics.register_counter(
    "post_cache_writes", "Number of write operations mirrored to the table", ["operation", "status"]
)


def start_metrics_server(port: int = 8000):
    """Start a Prometheus metrics server on the specified port.

    Args:
        port: Port number for metrics server
    """
    from prometheus_client import start_http_server

    start_http_server(port)
