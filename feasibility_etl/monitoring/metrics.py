"""Prometheus metrics definitions for the feasibility ETL."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

SUPPLEMENTAL_FETCHES = Counter(
    "supplemental_fetches_total",
    "Total supplemental fetches by kind and outcome.",
    labelnames=("kind", "status"),
)

RECORDS_DROPPED = Counter(
    "records_dropped_total",
    "Total primary records removed because a dependent fetch failed.",
)

DROPPED_RATIO = Gauge(
    "supplemental_dropped_ratio",
    "Percentage of primary records dropped during the latest reconciliation.",
)

ROWS_WRITTEN = Counter(
    "rows_written_total",
    "Total rows written to the feasibility table by outcome.",
    labelnames=("status",),
)

STAGE_DURATION = Histogram(
    "pipeline_stage_duration_seconds",
    "Distribution of pipeline stage durations in seconds.",
    labelnames=("stage",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)


def record_supplemental_fetch(kind: str, status: str) -> None:
    """Increment the supplemental fetch counter with the supplied labels."""

    SUPPLEMENTAL_FETCHES.labels(kind=kind, status=status).inc()


def record_dropped(count: int, ratio: float) -> None:
    """Record how many primary records reconciliation removed."""

    if count > 0:
        RECORDS_DROPPED.inc(count)
    DROPPED_RATIO.set(max(ratio, 0.0))


def record_row_written(status: str) -> None:
    """Increment the row counter for a ``success`` or ``error`` write."""

    ROWS_WRITTEN.labels(status=status).inc()


def observe_stage_duration(stage: str, duration_seconds: float) -> None:
    """Record a stage duration in seconds."""

    STAGE_DURATION.labels(stage=stage).observe(max(duration_seconds, 0.0))
