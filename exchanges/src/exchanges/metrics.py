"""
Prometheus metrics for exchange requests.

The transport records one sample per outbound request: a counter labelled
with the outcome and a latency histogram.  Exposing the metrics over HTTP
is left to the host process (``prometheus_client.start_http_server``).
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

OUTCOME_OK = "ok"
OUTCOME_NETWORK_ERROR = "network_error"
OUTCOME_REJECTED = "rejected"
OUTCOME_UNEXPECTED = "unexpected"


class RequestMetrics:
    """Counters and histograms for one registry."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.requests = Counter(
            "exchange_requests_total",
            "Requests sent to an exchange, by outcome",
            labelnames=["exchange", "endpoint", "outcome"],
            registry=registry,
        )
        self.latency = Histogram(
            "exchange_request_seconds",
            "Exchange request latency in seconds",
            labelnames=["exchange", "endpoint"],
            registry=registry,
        )

    def observe(self, exchange: str, endpoint: str, outcome: str, seconds: float) -> None:
        self.requests.labels(exchange=exchange, endpoint=endpoint, outcome=outcome).inc()
        self.latency.labels(exchange=exchange, endpoint=endpoint).observe(seconds)


_default_metrics: Optional[RequestMetrics] = None


def get_default_metrics() -> RequestMetrics:
    """Metrics bound to the global registry, created on first use."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = RequestMetrics()
    return _default_metrics
