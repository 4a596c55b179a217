"""Prometheus metrics for the node console.

Tracks Docker API call latency and node lifecycle operations. The console is
a short-lived process, so metrics are exported by writing the registry to a
node-exporter textfile (see ``write_metrics``) rather than served over HTTP.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

docker_api_duration = Histogram(
    "nexus_fleet_docker_api_seconds",
    "Duration of Docker API calls",
    ["operation", "status"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
    registry=REGISTRY,
)

node_operation_duration = Histogram(
    "nexus_fleet_node_operation_seconds",
    "Duration of node lifecycle operations",
    ["operation", "status"],
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300, float("inf")),
    registry=REGISTRY,
)

node_operation_errors = Counter(
    "nexus_fleet_node_operation_errors_total",
    "Total node operation errors",
    ["operation"],
    registry=REGISTRY,
)


@contextmanager
def timed(histogram: Histogram, operation: str) -> Iterator[None]:
    """Observe the duration of the enclosed block, labelled success/error."""
    start = time.monotonic()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        histogram.labels(operation=operation, status=status).observe(time.monotonic() - start)


def write_metrics(path: str) -> None:
    """Write all console metrics to ``path`` in Prometheus text format."""
    if not path:
        return
    try:
        write_to_textfile(path, REGISTRY)
    except OSError as e:
        logger.warning(f"Failed to write metrics to {path}: {e}")
