"""Merge supplemental results into the record graph and gate on the dropped ratio."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from ..exceptions import ThresholdExceededError
from ..monitoring.metrics import record_dropped
from ..schemas.records import (
    FetchFailure,
    FetchOutcome,
    PrimaryRecord,
    ReconciliationResult,
    WorkingSet,
    WorklogAggregate,
    WorklogEntry,
)
from ..utils.logging import setup_logger
from .fetcher import REVIEWER_FIELD

logger = setup_logger(__name__, context={"stage": "reconcile"})


def parse_worklog(worklogs: list[dict[str, Any]]) -> WorklogAggregate | None:
    """Reduce Jira worklog entries to author, seconds and id plus their total.

    Returns ``None`` for an empty worklog.
    """

    if not worklogs:
        return None

    entries: list[WorklogEntry] = []
    total = 0.0
    for item in worklogs:
        seconds = item.get("timeSpentSeconds") or 0
        author = item.get("author")
        entry = WorklogEntry(
            author=author.get("name") if isinstance(author, dict) else None,
            timespent=seconds,
            id=str(item.get("id")),
        )
        entries.append(entry)
        total += entry.timespent

    return WorklogAggregate(worklog=entries, total=total)


def percent_change_abs(old_value: int, new_value: int) -> float:
    """Absolute percentage change from ``old_value`` to ``new_value``."""

    if old_value == 0:
        raise ValueError("percent change from zero is undefined")
    return abs((new_value - old_value) / abs(old_value) * 100)


def _issue_details(payload: dict[str, Any]) -> dict[str, Any]:
    """Extract the linked-issue detail fields from a full issue document."""

    fields = payload.get("fields") or {}

    def _name(value: Any) -> str | None:
        return value.get("name") if isinstance(value, dict) else None

    project = fields.get("project")
    details = {
        "summary": fields.get("summary"),
        "status": _name(fields.get("status")),
        "issuetype": _name(fields.get("issuetype")),
        "reviewer": _name(fields.get(REVIEWER_FIELD)),
        "reporter": _name(fields.get("reporter")),
        "project": project.get("key") if isinstance(project, dict) else None,
        "created": fields.get("created"),
        "resolution": _name(fields.get("resolution")),
        "resolution_date": fields.get("resolutiondate"),
    }
    # Fields the detail document does not carry keep their ingestion value.
    return {name: value for name, value in details.items() if value is not None}


def _apply_success(records: dict[str, PrimaryRecord], outcome: FetchOutcome) -> None:
    """Attach a successful payload to its record.

    Raises:
        ValidationError: If the payload holds values the record cannot accept.
    """

    descriptor = outcome.descriptor
    payload = outcome.payload or {}

    primary = records.get(descriptor.top_level_key())
    if primary is None:
        logger.warning("Dropping supplemental result for unknown record %s", descriptor.top_level_key())
        return

    if descriptor.grandparent is None:
        if descriptor.kind == "worklog":
            primary.worklog = parse_worklog(payload.get("worklogs") or [])
        else:
            logger.warning("Ignoring issue detail fetched for primary record %s", descriptor.key)
        return

    linked = primary.links.get(descriptor.key)
    if linked is None:
        logger.warning(
            "Dropping supplemental result for unknown linked record %s under %s",
            descriptor.key,
            descriptor.grandparent,
        )
        return

    if descriptor.kind == "worklog":
        linked.worklog = parse_worklog(payload.get("worklogs") or [])
    else:
        merged = linked.model_dump()
        merged.update(_issue_details(payload))
        primary.links[descriptor.key] = type(linked).model_validate(merged)


def _invalid_payload(outcome: FetchOutcome, exc: ValidationError) -> FetchOutcome:
    return FetchOutcome(
        descriptor=outcome.descriptor,
        uri=outcome.uri,
        failure=FetchFailure(
            uri=outcome.uri or outcome.descriptor.key,
            message=f"Invalid {outcome.descriptor.kind} payload: {exc.error_count()} validation error(s)",
        ),
    )


def merge_outcomes(
    records: dict[str, PrimaryRecord],
    outcomes: list[FetchOutcome],
) -> tuple[list[FetchOutcome], set[str]]:
    """Merge successful outcomes into ``records`` in place.

    Results are routed by descriptor identity, so completion order does not
    matter. A payload that fails validation is turned into a failure.

    Returns:
        The failing outcomes and the top-level keys they invalidate.
    """

    failures: list[FetchOutcome] = []
    invalid_keys: set[str] = set()

    for outcome in outcomes:
        if outcome.succeeded:
            try:
                _apply_success(records, outcome)
                continue
            except ValidationError as exc:
                logger.warning(
                    "Rejecting %s payload for %s: %s",
                    outcome.descriptor.kind,
                    outcome.descriptor.key,
                    exc,
                )
                outcome = _invalid_payload(outcome, exc)
        failures.append(outcome)
        invalid_keys.add(outcome.descriptor.top_level_key())

    return failures, invalid_keys


def reconcile(
    working_set: WorkingSet,
    outcomes: list[FetchOutcome],
    *,
    threshold: float,
) -> ReconciliationResult:
    """Merge outcomes, drop invalidated records and enforce the dropped-ratio gate.

    Search hits rejected while building the working set count as dropped
    records. The input working set is left untouched.

    Raises:
        ThresholdExceededError: If failures removed ``threshold`` percent or more
            of the primary records.
    """

    records = {key: record.model_copy(deep=True) for key, record in working_set.records.items()}
    rejected_keys = {outcome.descriptor.key for outcome in working_set.rejected}
    original_count = len(records) + len(rejected_keys)

    merge_failures, invalid_keys = merge_outcomes(records, outcomes)
    failures = [*working_set.rejected, *merge_failures]

    invalid = sorted(key for key in invalid_keys if key in records)
    for key in invalid:
        del records[key]
    removed = sorted(rejected_keys.union(invalid))

    dropped_ratio = 0.0
    if failures and original_count:
        dropped_ratio = percent_change_abs(original_count, len(records))

    record_dropped(len(removed), dropped_ratio)

    if failures:
        logger.warning(
            "%d supplemental requests failed; dropped %d of %d records (%.2f%%)",
            len(failures),
            len(removed),
            original_count,
            dropped_ratio,
        )
        if dropped_ratio >= threshold:
            raise ThresholdExceededError(dropped_ratio, threshold, failures)

    return ReconciliationResult(
        records=records,
        failures=failures,
        removed_keys=removed,
        original_count=original_count,
        dropped_ratio=dropped_ratio,
    )
