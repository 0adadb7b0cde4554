"""Primary fetch stage: run the search and build the initial working set."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from ..adapters.jira_api import JiraApiClient
from ..schemas.records import (
    FetchDescriptor,
    FetchFailure,
    FetchOutcome,
    LinkedRecord,
    PrimaryRecord,
    WorkingSet,
)
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"stage": "fetch"})

REVIEWER_FIELD = "customfield_12501"

# Jira custom field id for each estimate (values are in hours).
ESTIMATE_FIELD_IDS: dict[str, str] = {
    "design_estimate": "customfield_14604",
    "development_estimate": "customfield_14600",
    "development_pad_estimate": "customfield_14607",
    "pe_estimate": "customfield_14603",
    "pm_estimate": "customfield_14602",
    "qa_estimate": "customfield_14601",
}


def _name(value: Any) -> str | None:
    """Return ``value["name"]`` for Jira user/resolution objects that may be null."""

    if isinstance(value, dict):
        return value.get("name")
    return None


def _project_key(fields: dict[str, Any]) -> str | None:
    project = fields.get("project")
    if isinstance(project, dict):
        return project.get("key")
    return None


def build_primary_record(issue: dict[str, Any]) -> PrimaryRecord:
    """Populate a :class:`PrimaryRecord` from the direct fields of a search hit."""

    fields = issue.get("fields") or {}
    estimates = {name: fields.get(field_id) for name, field_id in ESTIMATE_FIELD_IDS.items()}
    return PrimaryRecord(
        key=issue["key"],
        summary=fields.get("summary"),
        reviewer=_name(fields.get(REVIEWER_FIELD)),
        reporter=_name(fields.get("reporter")),
        project=_project_key(fields),
        created=fields.get("created"),
        resolution_date=fields.get("resolutiondate"),
        **estimates,
    )


def build_linked_stub(details: dict[str, Any]) -> LinkedRecord:
    """Build the linked record stub from the issue embedded in a link."""

    fields = details.get("fields") or {}
    return LinkedRecord(
        key=details.get("key"),
        summary=fields.get("summary"),
        status=_name(fields.get("status")),
        issuetype=_name(fields.get("issuetype")),
    )


def is_feasibility_link(link: dict[str, Any], link_type_id: str) -> bool:
    link_type = link.get("type") or {}
    return str(link_type.get("id")) == link_type_id


def _reject(key: str, uri: str, exc: ValidationError) -> FetchOutcome:
    return FetchOutcome(
        descriptor=FetchDescriptor(kind="issue", key=key),
        failure=FetchFailure(
            uri=uri,
            message=f"Invalid issue fields: {exc.error_count()} validation error(s)",
        ),
    )


def build_working_set(
    issues: list[dict[str, Any]],
    link_type_id: str,
    *,
    issue_uri: Callable[[str], str] | None = None,
) -> WorkingSet:
    """Turn raw search hits into primary records and their pending fetches.

    Every primary record gets one worklog fetch. Each feasibility link adds a
    linked record stub plus a worklog fetch and an issue fetch, both carrying
    the primary key as grandparent. Other link types are discarded.

    A hit whose fields fail validation is kept out of the records and listed in
    ``rejected`` under ``issue_uri(key)``.
    """

    records: dict[str, PrimaryRecord] = {}
    pending: list[FetchDescriptor] = []
    rejected: list[FetchOutcome] = []

    for issue in issues:
        key = issue.get("key")
        if not isinstance(key, str) or not key:
            logger.warning("Skipping search hit without an issue key")
            continue
        if key in records or any(outcome.descriptor.key == key for outcome in rejected):
            logger.warning("Duplicate issue %s in search results; keeping the first", key)
            continue

        try:
            record = build_primary_record(issue)
            descriptors = [FetchDescriptor(kind="worklog", key=key)]
            for link in (issue.get("fields") or {}).get("issuelinks") or []:
                if not is_feasibility_link(link, link_type_id):
                    continue
                details = link.get("outwardIssue") or link.get("inwardIssue")
                if not details:
                    continue
                linked = build_linked_stub(details)
                record.links[linked.key] = linked
                descriptors.append(FetchDescriptor(kind="worklog", key=linked.key, grandparent=key))
                descriptors.append(FetchDescriptor(kind="issue", key=linked.key, grandparent=key))
        except ValidationError as exc:
            logger.warning("Rejecting issue %s with invalid fields: %s", key, exc)
            rejected.append(_reject(key, issue_uri(key) if issue_uri else key, exc))
            continue

        records[key] = record
        pending.extend(descriptors)

    return WorkingSet(records=records, pending=pending, rejected=rejected)


async def fetch_primary_records(
    client: JiraApiClient,
    jql: str,
    *,
    link_type_id: str,
    max_results: int | None = None,
) -> WorkingSet:
    """Run the search query and return the initial working set.

    Raises:
        TransportError: If the search endpoint cannot be reached.
        ProtocolError: If the search endpoint answers with a non-success status.
    """

    issues = await client.search(jql, max_results)
    working_set = build_working_set(issues, link_type_id, issue_uri=client.issue_uri)
    logger.info(
        "Fetched %d feasibility reviews, queued %d supplemental requests",
        len(working_set.records),
        len(working_set.pending),
    )
    return working_set
