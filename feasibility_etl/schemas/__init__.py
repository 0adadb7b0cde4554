"""Schemas package initialization."""
from .records import (
    ESTIMATE_FIELDS,
    DerivedRecord,
    FetchDescriptor,
    FetchFailure,
    FetchOutcome,
    LinkedRecord,
    LoadResult,
    PipelineResult,
    PrimaryRecord,
    ReconciliationResult,
    RowFailure,
    WorkingSet,
    WorklogAggregate,
    WorklogEntry,
)

__all__ = [
    "ESTIMATE_FIELDS",
    "DerivedRecord",
    "FetchDescriptor",
    "FetchFailure",
    "FetchOutcome",
    "LinkedRecord",
    "LoadResult",
    "PipelineResult",
    "PrimaryRecord",
    "ReconciliationResult",
    "RowFailure",
    "WorkingSet",
    "WorklogAggregate",
    "WorklogEntry",
]
