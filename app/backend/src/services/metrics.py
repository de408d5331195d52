"""Prometheus metric definitions for object storage."""

from __future__ import annotations

from prometheus_client import Counter

minio_operations_total = Counter(
    "minio_operations_total",
    "Total object storage operations by outcome.",
    labelnames=["operation", "status"],
)

minio_url_refreshes_total = Counter(
    "minio_url_refreshes_total",
    "Signed URL refresh attempts by outcome.",
    labelnames=["outcome"],
)

__all__ = [
    "minio_operations_total",
    "minio_url_refreshes_total",
]
