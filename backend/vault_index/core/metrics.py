"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "vidx_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "vidx_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("endpoint", "method"),
    registry=REGISTRY,
)

DOCUMENTS_INDEXED = Counter(
    "vidx_documents_indexed_total",
    "Documents processed by the index scheduler",
    labelnames=("status",),
    registry=REGISTRY,
)

INDEX_DURATION = Histogram(
    "vidx_index_duration_seconds",
    "Duration of a single document indexing pass",
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "vidx_index_records",
    "Number of vector records stored in the index",
    registry=REGISTRY,
)

QUEUE_LENGTH = Gauge(
    "vidx_queue_length",
    "Documents waiting in the index queue",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "DOCUMENTS_INDEXED",
    "INDEX_DURATION",
    "INDEX_SIZE",
    "QUEUE_LENGTH",
    "metrics_response",
]
