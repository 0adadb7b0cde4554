"""Persistence models for the feasibility ETL."""

from .base import Base, create_engine_from_settings, ensure_schema, get_engine, reset_engine
from .feasibility import FeasibilityReview

__all__ = [
    "Base",
    "FeasibilityReview",
    "create_engine_from_settings",
    "ensure_schema",
    "get_engine",
    "reset_engine",
]
