"""Pytest configuration - no path manipulation, rely on proper package installation."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy import Engine, create_engine

from feasibility_etl.models.base import reset_engine
from feasibility_etl.utils.config import GlobalSettings, get_settings
from tests.fixtures.synthetic.jira_fixtures import BASE_URL


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep FEASIBILITY_* variables from the host environment out of the tests."""

    for name in list(os.environ):
        if name.startswith("FEASIBILITY_"):
            monkeypatch.delenv(name, raising=False)

    get_settings(reload=True)
    yield
    reset_engine()
    get_settings(reload=True)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """SQLite database living in the test's temporary directory."""

    return f"sqlite:///{tmp_path / 'feasibility.sqlite'}"


@pytest.fixture
def sqlite_engine(database_url: str) -> Iterator[Engine]:
    """Engine configured the way the loader expects for SQLite."""

    engine = create_engine(database_url, connect_args={"check_same_thread": False})
    yield engine
    engine.dispose()


@pytest.fixture
def etl_settings(tmp_path: Path, database_url: str) -> GlobalSettings:
    """Complete runtime settings pointing at the fake Jira and a temp database."""

    return GlobalSettings(
        jira_api_endpoint=BASE_URL,
        jira_api_jql="project = FEAS AND issuetype = 'Feasibility Review'",
        username="etl",
        password="secret",
        database_url=database_url,
        supplemental_threshold_percentage=50,
        log_dir=tmp_path / "logs",
    )
