"""
Prometheus metrics collection for medallion-dw

Tracks per-entity load volume and duration, validation gate outcomes
and batch run results.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# =======================
# ENTITY LOAD METRICS
# =======================

rows_loaded_total = Counter(
    name="dw_rows_loaded_total",
    documentation="Total number of rows written per layer and entity",
    labelnames=["layer", "entity"],
    registry=REGISTRY,
)

entity_load_duration_seconds = Histogram(
    name="dw_entity_load_duration_seconds",
    documentation="Time spent transforming and loading one entity",
    labelnames=["layer", "entity"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

rows_deduplicated_total = Counter(
    name="dw_rows_deduplicated_total",
    documentation="Raw rows dropped by business-key deduplication",
    labelnames=["entity"],
    registry=REGISTRY,
)

# =======================
# VALIDATION GATE METRICS
# =======================

check_failures_total = Counter(
    name="dw_check_failures_total",
    documentation="Number of failing validation checks",
    labelnames=["check_name", "severity"],
    registry=REGISTRY,
)

check_offending_rows = Gauge(
    name="dw_check_offending_rows",
    documentation="Offending rows reported by the latest run of a check",
    labelnames=["check_name"],
    registry=REGISTRY,
)

# =======================
# BATCH METRICS
# =======================

batch_runs_total = Counter(
    name="dw_batch_runs_total",
    documentation="Total number of batch runs by terminal state",
    labelnames=["state"],
    registry=REGISTRY,
)

batch_duration_seconds = Histogram(
    name="dw_batch_duration_seconds",
    documentation="Wall-clock duration of a full batch run",
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """Increment a counter metric"""
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """Observe a value in a histogram metric"""
    if labels:
        histogram.labels(**labels).observe(value)
    else:
        histogram.observe(value)


def record_entity_load(
    layer: str,
    entity: str,
    row_count: int,
    duration_seconds: float,
    deduplicated: int = 0
) -> None:
    """
    Record the outcome of loading one entity.

    Args:
        layer: Target layer (silver, gold)
        entity: Entity name
        row_count: Rows written
        duration_seconds: Time spent on the entity
        deduplicated: Raw rows dropped by deduplication
    """
    increment_counter(rows_loaded_total, row_count, layer=layer, entity=entity)
    observe_histogram(entity_load_duration_seconds, duration_seconds, layer=layer, entity=entity)
    if deduplicated > 0:
        increment_counter(rows_deduplicated_total, deduplicated, entity=entity)


def record_check_result(check_name: str, severity: str, offending_count: int) -> None:
    """
    Record one validation check outcome.

    Args:
        check_name: Check name
        severity: "error" or "warning"
        offending_count: Number of offending rows (0 when the check passed)
    """
    check_offending_rows.labels(check_name=check_name).set(offending_count)
    if offending_count > 0:
        increment_counter(check_failures_total, 1, check_name=check_name, severity=severity)


def record_batch_run(state: str, duration_seconds: float | None) -> None:
    """
    Record a finished batch run.

    Args:
        state: Terminal state (published, failed)
        duration_seconds: Batch duration, if known
    """
    increment_counter(batch_runs_total, 1, state=state)
    if duration_seconds is not None:
        observe_histogram(batch_duration_seconds, duration_seconds)
