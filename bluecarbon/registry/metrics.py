# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Blue Carbon Registry

Metrics:
    1. bc_registry_operations_total (Counter)
    2. bc_registry_operation_duration_seconds (Histogram)
    3. bc_registry_transitions_total (Counter)
    4. bc_registry_transition_failures_total (Counter)
    5. bc_registry_exports_total (Counter)
    6. bc_registry_records (Gauge)
    7. bc_registry_client_cache_hits_total (Counter)
    8. bc_registry_client_cache_misses_total (Counter)

Exposed by the API at ``GET /metrics``.
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

registry_operations_total = Counter(
    "bc_registry_operations_total",
    "Total registry operations performed",
    labelnames=["operation", "result"],
)

registry_operation_duration_seconds = Histogram(
    "bc_registry_operation_duration_seconds",
    "Registry operation duration in seconds",
    labelnames=["operation"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

registry_transitions_total = Counter(
    "bc_registry_transitions_total",
    "Total successful status transitions",
    labelnames=["entity", "action"],
)

registry_transition_failures_total = Counter(
    "bc_registry_transition_failures_total",
    "Total rejected status transitions by reason",
    labelnames=["entity", "reason"],
)

registry_exports_total = Counter(
    "bc_registry_exports_total",
    "Total collection exports performed",
    labelnames=["collection", "format"],
)

registry_records = Gauge(
    "bc_registry_records",
    "Records per collection at last write",
    labelnames=["collection"],
)

client_cache_hits_total = Counter(
    "bc_registry_client_cache_hits_total",
    "Total RegistryClient cache hits",
)

client_cache_misses_total = Counter(
    "bc_registry_client_cache_misses_total",
    "Total RegistryClient cache misses",
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_operation(operation: str, result: str, duration_seconds: float) -> None:
    """Record a registry operation.

    Args:
        operation: Operation name (register_project, verify_mrv, ...).
        result: "success" or "error".
        duration_seconds: Operation duration in seconds.
    """
    registry_operations_total.labels(operation=operation, result=result).inc()
    registry_operation_duration_seconds.labels(operation=operation).observe(
        duration_seconds,
    )


def record_transition(entity: str, action: str) -> None:
    """Record a successful transition."""
    registry_transitions_total.labels(entity=entity, action=action).inc()


def record_transition_failure(entity: str, reason: str) -> None:
    """Record a rejected transition.

    Args:
        entity: Entity type (project, mrv_data, stakeholder).
        reason: Failure reason (not_found, forbidden, invalid_transition).
    """
    registry_transition_failures_total.labels(entity=entity, reason=reason).inc()


def record_export(collection: str, export_format: str) -> None:
    """Record a collection export."""
    registry_exports_total.labels(collection=collection, format=export_format).inc()


def update_record_count(collection: str, count: int) -> None:
    """Set the record gauge of a collection."""
    registry_records.labels(collection=collection).set(count)


def record_cache_hit() -> None:
    client_cache_hits_total.inc()


def record_cache_miss() -> None:
    client_cache_misses_total.inc()


__all__ = [
    "registry_operations_total",
    "registry_operation_duration_seconds",
    "registry_transitions_total",
    "registry_transition_failures_total",
    "registry_exports_total",
    "registry_records",
    "client_cache_hits_total",
    "client_cache_misses_total",
    "record_operation",
    "record_transition",
    "record_transition_failure",
    "record_export",
    "update_record_count",
    "record_cache_hit",
    "record_cache_miss",
]
