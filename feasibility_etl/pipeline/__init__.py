"""The feasibility ETL stages."""

from .executor import execute_descriptors
from .fetcher import build_working_set, fetch_primary_records
from .loader import load_records
from .reconcile import merge_outcomes, parse_worklog, reconcile
from .runner import run_pipeline
from .transform import derive_record, transform_records

__all__ = [
    "build_working_set",
    "derive_record",
    "execute_descriptors",
    "fetch_primary_records",
    "load_records",
    "merge_outcomes",
    "parse_worklog",
    "reconcile",
    "run_pipeline",
    "transform_records",
]
