"""Prometheus metrics instrumentation."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

REGISTRY = CollectorRegistry()

SYNC_DOCUMENTS = Counter(
    "docsift_sync_documents_total",
    "Documents processed by sync, by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

SYNC_DURATION = Histogram(
    "docsift_sync_duration_seconds",
    "Duration of one source sync run",
    labelnames=("source",),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "docsift_search_latency_seconds",
    "Latency of hybrid search requests",
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "docsift_vector_index_size",
    "Number of vectors held by the vector index, stranded ones included",
    registry=REGISTRY,
)


def render_metrics() -> str:
    """Return the registry in Prometheus text exposition format."""
    return generate_latest(REGISTRY).decode("utf-8")


__all__ = [
    "REGISTRY",
    "SYNC_DOCUMENTS",
    "SYNC_DURATION",
    "SEARCH_LATENCY",
    "INDEX_SIZE",
    "render_metrics",
]
