"""Derived-metric stage: estimates in seconds, timespent totals and deltas."""

from __future__ import annotations

import json

from ..exceptions import TransformationError
from ..schemas.records import ESTIMATE_FIELDS, DerivedRecord, LinkedRecord, PrimaryRecord
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"stage": "transform"})

SECONDS_PER_HOUR = 3600


def linked_timespent(links: dict[str, LinkedRecord]) -> float:
    """Sum the worklog totals of every linked record that has a worklog."""

    return float(sum(link.worklog.total for link in links.values() if link.worklog is not None))


def feasibility_estimate_transform(record: PrimaryRecord) -> float:
    """Convert the estimate fields of ``record`` from hours to seconds in place.

    Missing estimates count as zero hours and are stored as ``0``.

    Returns:
        The total estimate in seconds.

    Raises:
        TransformationError: If the estimates were already converted.
    """

    if record.estimate_unit != "hours":
        raise TransformationError(f"Estimates of {record.key} are already in seconds")

    total = 0.0
    for name in ESTIMATE_FIELDS:
        seconds = float(getattr(record, name) or 0) * SECONDS_PER_HOUR
        setattr(record, name, seconds)
        total += seconds

    record.estimate_unit = "seconds"
    return total


def percent_difference(value1: float, value2: float) -> float:
    """Percent difference of two values relative to their mean."""

    return (value1 - value2) / ((value1 + value2) / 2) * 100


def compute_delta(estimated: float | None, actual: float | None) -> tuple[float | None, float | None]:
    """Return ``(delta, delta_percentage)`` of estimate versus linked timespent.

    Both are ``None`` when either side is zero or unset.
    """

    if not estimated or not actual:
        return None, None
    return estimated - actual, percent_difference(estimated, actual)


def derive_record(record: PrimaryRecord) -> DerivedRecord:
    """Compute the derived metrics of one surviving record.

    Linked timespent is computed first, then the estimate conversion, and the
    delta last since it reads the converted estimate total. Works on a copy so
    ``record`` keeps its estimates in hours.
    """

    working = record.model_copy(deep=True)

    linked_total = linked_timespent(working.links)
    estimate_total = feasibility_estimate_transform(working)
    delta, delta_percentage = compute_delta(estimate_total, linked_total)

    links_json = None
    if working.links:
        links_json = json.dumps(
            {key: link.model_dump(mode="json") for key, link in working.links.items()}
        )
    worklog_json = None
    if working.worklog is not None:
        worklog_json = json.dumps(working.worklog.model_dump(mode="json"))

    return DerivedRecord(
        key=working.key,
        summary=working.summary,
        reviewer=working.reviewer,
        reporter=working.reporter,
        project=working.project,
        created=working.created,
        resolution_date=working.resolution_date,
        **{name: getattr(working, name) for name in ESTIMATE_FIELDS},
        links=links_json,
        worklog=worklog_json,
        feasibility_timespent=working.worklog.total if working.worklog is not None else None,
        linked_timespent=linked_total,
        feasibility_estimate_total=estimate_total,
        delta=delta,
        delta_percentage=delta_percentage,
    )


def transform_records(records: dict[str, PrimaryRecord]) -> list[DerivedRecord]:
    """Derive one :class:`DerivedRecord` per surviving primary record."""

    derived = [derive_record(record) for record in records.values()]
    logger.info("Derived metrics for %d records", len(derived))
    return derived
