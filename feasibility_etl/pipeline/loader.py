"""Load stage: write derived records to the feasibility table."""

from __future__ import annotations

import asyncio
from typing import Any

from sqlalchemy import Engine, delete, insert
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import PersistenceConnectionError, RowWriteError
from ..models.base import ensure_schema
from ..models.feasibility import FeasibilityReview
from ..monitoring.metrics import record_row_written
from ..schemas.records import DerivedRecord, LoadResult, RowFailure
from ..utils.logging import setup_logger
from ..utils.transcript import RunTranscript

logger = setup_logger(__name__, context={"stage": "load"})

TABLE = FeasibilityReview.__table__


def build_row(record: DerivedRecord) -> dict[str, Any]:
    """Map a derived record onto the 20 columns of the feasibility table."""

    return {
        "key": record.key,
        "summary": record.summary,
        "reviewer_name": record.reviewer,
        "reporter_name": record.reporter,
        "project_name": record.project,
        "created": record.created,
        "resolution_date": record.resolution_date,
        "design_estimate": record.design_estimate,
        "development_estimate": record.development_estimate,
        "development_pad_estimate": record.development_pad_estimate,
        "pe_estimate": record.pe_estimate,
        "pm_estimate": record.pm_estimate,
        "qa_estimate": record.qa_estimate,
        "issue_links": record.links,
        "worklog": record.worklog,
        "feasibility_timespent": record.feasibility_timespent,
        "issue_links_timespent": record.linked_timespent,
        "feasibility_estimate_total": record.feasibility_estimate_total,
        "delta": record.delta,
        "delta_percentage": record.delta_percentage,
    }


def open_sink(engine: Engine, *, truncate: bool = False) -> None:
    """Verify the database is reachable and the table exists.

    Raises:
        PersistenceConnectionError: If no connection can be established.
    """

    try:
        with engine.begin() as connection:
            ensure_schema(connection)
            if truncate:
                connection.execute(delete(TABLE))
    except SQLAlchemyError as exc:
        raise PersistenceConnectionError(f"Unable to open persistence session: {exc}") from exc


def _write_row(engine: Engine, row: dict[str, Any], transcript: RunTranscript | None) -> str:
    """Insert one row on its own pooled connection and transaction."""

    key = row["key"]
    try:
        with engine.begin() as connection:
            connection.execute(insert(TABLE), row)
    except SQLAlchemyError as exc:
        detail = str(getattr(exc, "orig", None) or exc)
        if transcript is not None:
            transcript.record_write(TABLE.name, key, error=detail)
        raise RowWriteError(key, detail) from exc

    if transcript is not None:
        transcript.record_write(TABLE.name, key)
    return key


async def load_records(
    records: list[DerivedRecord],
    engine: Engine,
    *,
    truncate: bool = False,
    transcript: RunTranscript | None = None,
) -> LoadResult:
    """Write every record concurrently; a failing row does not affect the others.

    Raises:
        PersistenceConnectionError: If the sink cannot be opened. Nothing is
            written in that case.
    """

    await asyncio.to_thread(open_sink, engine, truncate=truncate)

    rows = [build_row(record) for record in records]
    results = await asyncio.gather(
        *(asyncio.to_thread(_write_row, engine, row, transcript) for row in rows),
        return_exceptions=True,
    )

    result = LoadResult()
    for outcome in results:
        if isinstance(outcome, RowWriteError):
            record_row_written("error")
            logger.error("%s", outcome, extra={"status": "error"})
            result.failures.append(RowFailure(key=outcome.key, message=outcome.detail))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            record_row_written("success")
            result.written.append(outcome)

    logger.info(
        "Wrote %d rows to %s (%d failed)",
        len(result.written),
        TABLE.name,
        len(result.failures),
    )
    return result
