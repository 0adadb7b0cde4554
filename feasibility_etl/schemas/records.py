"""Pydantic schemas for the feasibility record graph and pipeline values."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FetchKind = Literal["worklog", "issue"]

ESTIMATE_FIELDS: tuple[str, ...] = (
    "design_estimate",
    "development_estimate",
    "development_pad_estimate",
    "pe_estimate",
    "pm_estimate",
    "qa_estimate",
)

_TIMESTAMP_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")


def parse_jira_timestamp(value: Any) -> Any:
    """Parse Jira's ``2016-10-25T10:01:02.000-0500`` style timestamps.

    Values that are not strings are returned untouched for pydantic to handle.
    """

    if not isinstance(value, str):
        return value
    if value == "":
        return None
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return datetime.fromisoformat(value)


class WorklogEntry(BaseModel):
    """One time-tracking entry of an issue."""

    model_config = ConfigDict(frozen=True)

    author: str | None = Field(None, description="Name of the user who logged the time")
    timespent: float = Field(..., ge=0, description="Time spent in seconds")
    unit: Literal["seconds"] = "seconds"
    id: str = Field(..., description="Worklog entry id")


class WorklogAggregate(BaseModel):
    """Ordered worklog entries of an issue together with their summed duration."""

    worklog: list[WorklogEntry] = Field(default_factory=list)
    total: float = Field(0.0, ge=0, description="Sum of all entries in seconds")


class LinkedRecord(BaseModel):
    """An issue linked to a feasibility review through the feasibility relation."""

    key: str
    summary: str | None = None
    status: str | None = None
    issuetype: str | None = None
    reviewer: str | None = None
    reporter: str | None = None
    project: str | None = None
    created: datetime | None = None
    resolution: str | None = None
    resolution_date: datetime | None = None
    worklog: WorklogAggregate | None = None

    @field_validator("created", "resolution_date", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        return parse_jira_timestamp(value)


class PrimaryRecord(BaseModel):
    """A feasibility review issue returned by the search query."""

    key: str
    summary: str | None = None
    reviewer: str | None = None
    reporter: str | None = None
    project: str | None = None
    created: datetime | None = None
    resolution_date: datetime | None = None

    design_estimate: float | None = None
    development_estimate: float | None = None
    development_pad_estimate: float | None = None
    pe_estimate: float | None = None
    pm_estimate: float | None = None
    qa_estimate: float | None = None
    estimate_unit: Literal["hours", "seconds"] = "hours"

    links: dict[str, LinkedRecord] = Field(default_factory=dict)
    worklog: WorklogAggregate | None = None

    @field_validator("created", "resolution_date", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        return parse_jira_timestamp(value)


class FetchDescriptor(BaseModel):
    """Immutable description of one supplemental fetch.

    ``grandparent`` is set only when ``key`` names a linked record; its absence
    means the result attaches directly to the primary record ``key``.
    """

    model_config = ConfigDict(frozen=True)

    kind: FetchKind
    key: str
    grandparent: str | None = None

    def top_level_key(self) -> str:
        """Return the key of the primary record this fetch belongs to.

        The deletion unit is always the top-level record: a failure anywhere
        below a primary record invalidates the primary record as a whole.
        """

        return self.grandparent or self.key


class FetchFailure(BaseModel):
    """Why a supplemental fetch failed."""

    model_config = ConfigDict(frozen=True)

    uri: str
    status: int | None = None
    message: str


class FetchOutcome(BaseModel):
    """Result of executing a :class:`FetchDescriptor`: a payload XOR a failure."""

    model_config = ConfigDict(frozen=True)

    descriptor: FetchDescriptor
    uri: str | None = Field(None, description="Endpoint the descriptor was executed against")
    payload: dict[str, Any] | None = None
    failure: FetchFailure | None = None

    @model_validator(mode="after")
    def _exactly_one_branch(self) -> FetchOutcome:
        if (self.payload is None) == (self.failure is None):
            raise ValueError("FetchOutcome requires exactly one of payload or failure")
        return self

    @property
    def succeeded(self) -> bool:
        return self.failure is None


class WorkingSet(BaseModel):
    """Primary records built by the search stage plus the fetches they still need.

    ``rejected`` holds search hits whose fields could not be parsed; they count
    as dropped records during reconciliation.
    """

    records: dict[str, PrimaryRecord] = Field(default_factory=dict)
    pending: list[FetchDescriptor] = Field(default_factory=list)
    rejected: list[FetchOutcome] = Field(default_factory=list)


class ReconciliationResult(BaseModel):
    """Surviving records after merging supplemental data and dropping failures."""

    records: dict[str, PrimaryRecord] = Field(default_factory=dict)
    failures: list[FetchOutcome] = Field(default_factory=list)
    removed_keys: list[str] = Field(default_factory=list)
    original_count: int = 0
    dropped_ratio: float = 0.0


class DerivedRecord(BaseModel):
    """A surviving feasibility review with derived metrics, ready for persistence."""

    key: str
    summary: str | None = None
    reviewer: str | None = None
    reporter: str | None = None
    project: str | None = None
    created: datetime | None = None
    resolution_date: datetime | None = None

    design_estimate: float = 0.0
    development_estimate: float = 0.0
    development_pad_estimate: float = 0.0
    pe_estimate: float = 0.0
    pm_estimate: float = 0.0
    qa_estimate: float = 0.0

    links: str | None = Field(None, description="JSON encoded linked records")
    worklog: str | None = Field(None, description="JSON encoded worklog aggregate")

    feasibility_timespent: float | None = None
    linked_timespent: float = 0.0
    feasibility_estimate_total: float = 0.0
    delta: float | None = None
    delta_percentage: float | None = None


class RowFailure(BaseModel):
    """A row that could not be written."""

    key: str
    message: str


class LoadResult(BaseModel):
    """Outcome of the load stage."""

    written: list[str] = Field(default_factory=list)
    failures: list[RowFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


class PipelineResult(BaseModel):
    """Summary of a completed pipeline run."""

    run_id: str
    fetched: int
    supplemental_requests: int
    supplemental_failures: int
    dropped: int
    dropped_ratio: float
    derived: int
    load: LoadResult
