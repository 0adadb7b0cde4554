"""Synthetic data fixtures package for testing."""

from __future__ import annotations

from . import jira_fixtures

__all__ = [
    "jira_fixtures",
]
