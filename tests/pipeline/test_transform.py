"""Tests for the derived-metric transforms."""

from __future__ import annotations

import json

import pytest

from feasibility_etl.exceptions import TransformationError
from feasibility_etl.pipeline.transform import (
    compute_delta,
    derive_record,
    feasibility_estimate_transform,
    linked_timespent,
    percent_difference,
    transform_records,
)
from feasibility_etl.schemas.records import (
    LinkedRecord,
    PrimaryRecord,
    WorklogAggregate,
    WorklogEntry,
)


def _aggregate(*seconds: float) -> WorklogAggregate:
    return WorklogAggregate(
        worklog=[
            WorklogEntry(author="dev", timespent=value, id=str(index))
            for index, value in enumerate(seconds)
        ],
        total=sum(seconds),
    )


def _record(**overrides) -> PrimaryRecord:
    values = {"key": "FEAS-1", "summary": "Review"}
    values.update(overrides)
    return PrimaryRecord(**values)


def test_estimate_transform_converts_hours_and_defaults_missing() -> None:
    """Hours become seconds; missing estimates become zero."""

    record = _record(design_estimate=1.5, qa_estimate=None)

    total = feasibility_estimate_transform(record)

    assert record.design_estimate == pytest.approx(5400)
    assert record.qa_estimate == 0
    assert record.development_estimate == 0
    assert record.estimate_unit == "seconds"
    assert total == pytest.approx(5400)


def test_estimate_transform_is_not_applied_twice() -> None:
    record = _record(design_estimate=2)
    feasibility_estimate_transform(record)

    with pytest.raises(TransformationError):
        feasibility_estimate_transform(record)

    assert record.design_estimate == pytest.approx(7200)


def test_linked_timespent_skips_links_without_worklog() -> None:
    links = {
        "DEV-1": LinkedRecord(key="DEV-1", worklog=_aggregate(1800, 1800)),
        "DEV-2": LinkedRecord(key="DEV-2"),
        "DEV-3": LinkedRecord(key="DEV-3", worklog=_aggregate(600)),
    }

    assert linked_timespent(links) == pytest.approx(4200)
    assert linked_timespent({}) == 0


def test_compute_delta() -> None:
    delta, percentage = compute_delta(7200, 3600)

    assert delta == pytest.approx(3600)
    assert percentage == pytest.approx(66.6667, rel=1e-4)
    assert percent_difference(3600, 7200) == pytest.approx(-66.6667, rel=1e-4)


@pytest.mark.parametrize(("estimated", "actual"), [(7200, 0), (0, 3600), (None, 3600), (7200, None)])
def test_compute_delta_undefined_when_either_side_is_zero(estimated, actual) -> None:
    assert compute_delta(estimated, actual) == (None, None)


def test_derive_record_computes_metrics() -> None:
    """Derived metrics use converted estimates and linked worklog totals."""

    record = _record(
        design_estimate=1,
        development_estimate=1,
        worklog=_aggregate(900),
        links={"DEV-1": LinkedRecord(key="DEV-1", status="Closed", worklog=_aggregate(3600))},
    )

    derived = derive_record(record)

    assert derived.design_estimate == pytest.approx(3600)
    assert derived.feasibility_estimate_total == pytest.approx(7200)
    assert derived.linked_timespent == pytest.approx(3600)
    assert derived.delta == pytest.approx(3600)
    assert derived.delta_percentage == pytest.approx(66.6667, rel=1e-4)
    assert derived.feasibility_timespent == pytest.approx(900)

    links = json.loads(derived.links)
    assert links["DEV-1"]["status"] == "Closed"
    assert links["DEV-1"]["worklog"]["total"] == 3600
    assert json.loads(derived.worklog)["total"] == 900


def test_derive_record_without_links_or_worklog() -> None:
    derived = derive_record(_record(design_estimate=1))

    assert derived.links is None
    assert derived.worklog is None
    assert derived.feasibility_timespent is None
    assert derived.linked_timespent == 0
    assert derived.delta is None
    assert derived.delta_percentage is None


def test_derive_record_leaves_input_in_hours() -> None:
    record = _record(design_estimate=1.5)

    derive_record(record)
    derived = derive_record(record)

    assert record.estimate_unit == "hours"
    assert record.design_estimate == pytest.approx(1.5)
    assert derived.design_estimate == pytest.approx(5400)


def test_transform_records_returns_one_per_record() -> None:
    records = {key: _record(key=key) for key in ("FEAS-1", "FEAS-2")}

    derived = transform_records(records)

    assert [item.key for item in derived] == ["FEAS-1", "FEAS-2"]
