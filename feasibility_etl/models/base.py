"""SQLAlchemy base declarations and engine helpers."""

from __future__ import annotations

from importlib import import_module
from typing import Any

from sqlalchemy import Connection, Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase

from ..exceptions import PersistenceConnectionError
from ..utils.config import GlobalSettings, get_settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


_ENGINE: Engine | None = None
_MODELS_IMPORTED = False


def _load_models() -> None:
    """Import model modules so metadata is aware of mapped classes."""

    global _MODELS_IMPORTED
    if _MODELS_IMPORTED:
        return

    import_module("feasibility_etl.models.feasibility")
    _MODELS_IMPORTED = True


def create_engine_from_settings(settings: GlobalSettings | None = None) -> Engine:
    """Instantiate the SQLAlchemy engine using the configured database URL.

    Concurrent inserts each check out their own pooled connection, so the pool
    settings bound how many rows are written at the same time.

    Raises:
        PersistenceConnectionError: If the URL names an unknown dialect or a
            driver that is not installed.
    """

    settings = settings or get_settings()
    database_url = settings.database_url or "sqlite:///./feasibility.db"

    connect_args: dict[str, object] = {}
    pool_kwargs: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    else:
        pool_config = settings.database
        pool_kwargs = {
            "pool_size": pool_config.pool_size,
            "max_overflow": pool_config.max_overflow,
            "pool_timeout": pool_config.timeout,
            "pool_pre_ping": pool_config.pre_ping,
        }
        if pool_config.recycle_seconds > 0:
            pool_kwargs["pool_recycle"] = pool_config.recycle_seconds

    try:
        return create_engine(
            database_url,
            echo=False,
            connect_args=connect_args,
            **pool_kwargs,
        )
    except (SQLAlchemyError, ImportError) as exc:
        raise PersistenceConnectionError(
            f"Unable to create database engine for the configured URL: {exc}"
        ) from exc


def get_engine() -> Engine:
    """Return (and lazily initialize) the shared SQLAlchemy engine."""

    global _ENGINE
    if _ENGINE is None:
        _ENGINE = create_engine_from_settings()
    return _ENGINE


def ensure_schema(connection: Connection) -> None:
    """Create the feasibility table on ``connection`` if it does not exist yet."""

    _load_models()
    Base.metadata.create_all(bind=connection)


def reset_engine() -> None:
    """Dispose the cached engine (useful for testing)."""

    global _ENGINE
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
