"""Supplemental fetch stage: run pending descriptors through a bounded worker pool."""

from __future__ import annotations

import asyncio
from typing import Any

from ..adapters.jira_api import JiraApiClient
from ..exceptions import SubFetchFailure
from ..monitoring.metrics import record_supplemental_fetch
from ..schemas.records import FetchDescriptor, FetchFailure, FetchOutcome
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"stage": "supplemental"})

DEFAULT_CONCURRENCY = 5


async def execute_descriptor(client: JiraApiClient, descriptor: FetchDescriptor) -> FetchOutcome:
    """Execute one descriptor against the endpoint selected by its kind.

    Failures are returned as data, never raised. Unexpected errors from the
    HTTP stack are reported without a status code.
    """

    if descriptor.kind == "worklog":
        uri = client.worklog_uri(descriptor.key)
    else:
        uri = client.issue_uri(descriptor.key)

    try:
        payload: dict[str, Any]
        if descriptor.kind == "worklog":
            payload = await client.fetch_worklog(descriptor.key)
        else:
            payload = await client.fetch_issue(descriptor.key)
    except SubFetchFailure as exc:
        failure = FetchFailure(uri=exc.uri, status=exc.status_code, message=str(exc))
    except Exception as exc:
        failure = FetchFailure(uri=uri, message=f"{type(exc).__name__}: {exc}")
    else:
        record_supplemental_fetch(descriptor.kind, "success")
        return FetchOutcome(descriptor=descriptor, uri=uri, payload=payload)

    record_supplemental_fetch(descriptor.kind, "error")
    logger.warning(
        "Supplemental %s fetch for %s failed: %s",
        descriptor.kind,
        descriptor.key,
        failure.message,
        extra={"status": "error"},
    )
    return FetchOutcome(descriptor=descriptor, uri=uri, failure=failure)


async def execute_descriptors(
    client: JiraApiClient,
    descriptors: list[FetchDescriptor],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[FetchOutcome]:
    """Execute every descriptor with at most ``concurrency`` requests in flight.

    A fixed pool of worker tasks drains a queue of descriptors; a slot frees up
    as soon as a worker finishes its current fetch. Outcomes are returned in
    completion order, which callers must not rely on.
    """

    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    if not descriptors:
        return []

    queue: asyncio.Queue[FetchDescriptor] = asyncio.Queue()
    for descriptor in descriptors:
        queue.put_nowait(descriptor)

    outcomes: list[FetchOutcome] = []

    async def _worker() -> None:
        while True:
            try:
                descriptor = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            outcomes.append(await execute_descriptor(client, descriptor))

    pool_size = min(concurrency, len(descriptors))
    await asyncio.gather(*(_worker() for _ in range(pool_size)))

    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    logger.info(
        "Executed %d supplemental requests with %d workers (%d failed)",
        len(outcomes),
        pool_size,
        failed,
    )
    return outcomes
