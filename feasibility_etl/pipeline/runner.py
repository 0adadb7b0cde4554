"""Run the five ETL stages in sequence."""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from sqlalchemy import Engine

from ..adapters.jira_api import JiraApiClient
from ..models.base import create_engine_from_settings
from ..monitoring.metrics import observe_stage_duration
from ..schemas.records import PipelineResult
from ..utils.config import GlobalSettings
from ..utils.logging import log_stage_outcome, setup_logger
from ..utils.transcript import RunTranscript
from .executor import execute_descriptors
from .fetcher import fetch_primary_records
from .loader import load_records
from .reconcile import reconcile
from .transform import transform_records

logger = setup_logger(__name__, context={"stage": "pipeline"})


@asynccontextmanager
async def _stage(name: str, run_id: str) -> AsyncIterator[None]:
    """Time a stage and log its outcome; exceptions propagate unchanged."""

    started = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception as exc:
        status = "error"
        log_stage_outcome(
            logger,
            name,
            status,
            int((time.perf_counter() - started) * 1000),
            run_id=run_id,
            error=type(exc).__name__,
        )
        raise
    finally:
        elapsed = time.perf_counter() - started
        observe_stage_duration(name, elapsed)
        if status == "success":
            log_stage_outcome(logger, name, status, int(elapsed * 1000), run_id=run_id)


async def run_pipeline(
    settings: GlobalSettings,
    *,
    engine: Engine | None = None,
    transcript: RunTranscript | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PipelineResult:
    """Fetch, enrich, reconcile, transform and load feasibility reviews.

    Settings are expected to have passed ``ensure_runtime_configuration``.
    Fatal errors (``TransportError``, ``ProtocolError``,
    ``ThresholdExceededError``, ``PersistenceConnectionError``) stop the run
    between stages and propagate to the caller.
    """

    run_id = uuid.uuid4().hex[:12]
    owns_engine = engine is None
    if engine is None:
        engine = create_engine_from_settings(settings)

    client = JiraApiClient(
        settings.jira_api_endpoint or "",
        username=settings.username or "",
        password=settings.password or "",
        api_version=settings.jira_api_version,
        timeout=settings.request_timeout,
        transcript=transcript,
        transport=transport,
    )

    try:
        async with client:
            async with _stage("fetch", run_id):
                working_set = await fetch_primary_records(
                    client,
                    settings.jira_api_jql or "",
                    link_type_id=settings.feasibility_link_type_id,
                    max_results=settings.max_results,
                )

            async with _stage("supplemental", run_id):
                outcomes = await execute_descriptors(
                    client,
                    working_set.pending,
                    concurrency=settings.supplemental_concurrency,
                )

        async with _stage("reconcile", run_id):
            reconciled = reconcile(
                working_set,
                outcomes,
                threshold=settings.supplemental_threshold_percentage,
            )

        async with _stage("transform", run_id):
            derived = transform_records(reconciled.records)

        async with _stage("load", run_id):
            load_result = await load_records(
                derived,
                engine,
                truncate=settings.truncate_before_load,
                transcript=transcript,
            )
    finally:
        if owns_engine:
            engine.dispose()

    return PipelineResult(
        run_id=run_id,
        fetched=reconciled.original_count,
        supplemental_requests=len(outcomes),
        supplemental_failures=len(reconciled.failures),
        dropped=len(reconciled.removed_keys),
        dropped_ratio=reconciled.dropped_ratio,
        derived=len(derived),
        load=load_result,
    )
