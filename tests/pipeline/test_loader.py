"""Tests for the load stage against SQLite."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import Engine, create_engine, func, inspect, select

from feasibility_etl.exceptions import PersistenceConnectionError
from feasibility_etl.models.feasibility import FeasibilityReview
from feasibility_etl.pipeline.loader import TABLE, build_row, load_records
from feasibility_etl.schemas.records import DerivedRecord
from feasibility_etl.utils.transcript import RunTranscript


def _derived(key: str, **overrides) -> DerivedRecord:
    values = {
        "key": key,
        "summary": f"Review {key}",
        "reviewer": "reviewer",
        "project": "FEAS",
        "design_estimate": 3600.0,
        "feasibility_estimate_total": 3600.0,
        "linked_timespent": 1800.0,
        "delta": 1800.0,
        "delta_percentage": 66.67,
    }
    values.update(overrides)
    return DerivedRecord(**values)


def _row_count(engine: Engine) -> int:
    with engine.connect() as connection:
        return connection.execute(select(func.count()).select_from(TABLE)).scalar_one()


def test_build_row_covers_every_column() -> None:
    """Rows carry exactly the columns of the feasibility table."""

    row = build_row(_derived("FEAS-1", links='{"DEV-1": {}}'))

    assert set(row) == {column.name for column in FeasibilityReview.__table__.columns}
    assert len(row) == 20
    assert row["reviewer_name"] == "reviewer"
    assert row["issue_links"] == '{"DEV-1": {}}'
    assert row["issue_links_timespent"] == 1800.0


@pytest.mark.asyncio
async def test_load_records_creates_table_and_writes_rows(sqlite_engine: Engine) -> None:
    result = await load_records([_derived("FEAS-1"), _derived("FEAS-2")], sqlite_engine)

    assert sorted(result.written) == ["FEAS-1", "FEAS-2"]
    assert result.succeeded
    assert inspect(sqlite_engine).has_table("v_feasibility")
    with sqlite_engine.connect() as connection:
        stored = connection.execute(
            select(TABLE.c.design_estimate, TABLE.c.delta).where(TABLE.c.key == "FEAS-1")
        ).one()
    assert stored.design_estimate == pytest.approx(3600.0)
    assert stored.delta == pytest.approx(1800.0)


@pytest.mark.asyncio
async def test_failing_row_does_not_affect_others(sqlite_engine: Engine) -> None:
    """A duplicate key fails its own insert while the rest are written."""

    await load_records([_derived("FEAS-1")], sqlite_engine)

    result = await load_records(
        [_derived("FEAS-1"), _derived("FEAS-2"), _derived("FEAS-3")], sqlite_engine
    )

    assert sorted(result.written) == ["FEAS-2", "FEAS-3"]
    assert [failure.key for failure in result.failures] == ["FEAS-1"]
    assert not result.succeeded
    assert _row_count(sqlite_engine) == 3


@pytest.mark.asyncio
async def test_truncate_replaces_existing_rows(sqlite_engine: Engine) -> None:
    await load_records([_derived("FEAS-1"), _derived("FEAS-2")], sqlite_engine)

    result = await load_records([_derived("FEAS-1")], sqlite_engine, truncate=True)

    assert result.written == ["FEAS-1"]
    assert _row_count(sqlite_engine) == 1


@pytest.mark.asyncio
async def test_empty_input_still_opens_sink(sqlite_engine: Engine) -> None:
    result = await load_records([], sqlite_engine)

    assert result.written == []
    assert inspect(sqlite_engine).has_table("v_feasibility")


@pytest.mark.asyncio
async def test_unreachable_database_raises_connection_error(tmp_path: Path) -> None:
    """Nothing is written when the sink cannot be opened."""

    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nested' / 'db.sqlite'}")
    try:
        with pytest.raises(PersistenceConnectionError):
            await load_records([_derived("FEAS-1")], engine)
    finally:
        engine.dispose()


@pytest.mark.asyncio
async def test_writes_are_recorded_in_transcript(sqlite_engine: Engine, tmp_path: Path) -> None:
    transcript = RunTranscript(tmp_path / "10-25-2016.txt")
    await load_records([_derived("FEAS-1")], sqlite_engine)

    await load_records(
        [_derived("FEAS-1"), _derived("FEAS-2")], sqlite_engine, transcript=transcript
    )

    content = transcript.path.read_text()
    assert "query: INSERT INTO v_feasibility (FEAS-2)\nsuccess: true" in content
    assert "query: INSERT INTO v_feasibility (FEAS-1)\nsuccess: false\nerror: " in content
