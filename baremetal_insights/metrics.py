"""
Scan outcome metrics.

The poller is handed a MetricsSink instead of touching module-level
counters. NullMetrics discards everything; PrometheusMetrics keeps the
firmware_scan_total counter on its own registry so several pollers (or
tests) never share state.
"""

from __future__ import annotations

from typing import Optional, Protocol

from prometheus_client import CollectorRegistry, Counter, start_http_server


class MetricsSink(Protocol):
    def record_scan(self, node: str, success: bool) -> None:
        ...


class NullMetrics:
    def record_scan(self, node: str, success: bool) -> None:
        pass


class PrometheusMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.scan_total = Counter(
            "firmware_scan_total",
            "Total number of firmware scan operations",
            ["node", "status"],
            registry=self.registry,
        )

    def record_scan(self, node: str, success: bool) -> None:
        status = "success" if success else "error"
        self.scan_total.labels(node=node, status=status).inc()

    def serve(self, port: int, addr: str = "0.0.0.0") -> None:
        """Expose the registry on http://addr:port/metrics from a daemon thread."""
        start_http_server(port, addr=addr, registry=self.registry)
