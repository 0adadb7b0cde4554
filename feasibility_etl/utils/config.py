"""Configuration loader and settings helpers for the feasibility ETL."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError


logger = logging.getLogger(__name__)


def load_yaml_config(config_path: str | Path) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If file not found or invalid YAML
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return config


class DatabasePoolSettings(BaseModel):
    """Connection pooling configuration for the SQLAlchemy engine."""

    model_config = ConfigDict(extra="forbid")

    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    timeout: float = Field(default=30.0, gt=0)
    recycle_seconds: int = Field(default=1800, ge=0)
    pre_ping: bool = True


class GlobalSettings(BaseSettings):
    """Global application settings sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FEASIBILITY_",
        env_nested_delimiter="__",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"
    verbose: bool = False

    jira_api_endpoint: str | None = None
    jira_api_version: str = "2"
    jira_api_jql: str | None = None
    max_results: int | None = Field(default=None, ge=1)
    username: str | None = None
    password: str | None = None
    request_timeout: float = Field(default=30.0, gt=0)

    supplemental_concurrency: int = Field(default=5, ge=1)
    supplemental_threshold_percentage: float = Field(default=10.0, ge=0)
    # Jira issue link type id of the "feasibility review" relation.
    feasibility_link_type_id: str = "10211"

    database_url: str | None = None
    database: DatabasePoolSettings = DatabasePoolSettings()
    truncate_before_load: bool = False

    log_dir: Path = Path("logs")
    transcript_retention_days: int = Field(default=3, ge=1)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        """Ensure log level values are uppercase for logging config."""

        return value.upper()

    @field_validator("jira_api_endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return value.rstrip("/")

    @field_validator("feasibility_link_type_id", "jira_api_version", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        """YAML and environment sources may hand these over as integers."""

        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("log_dir", mode="before")
    @classmethod
    def _expand_paths(cls, value: Any) -> Any:
        """Allow string paths and expand user markers."""

        if isinstance(value, str):
            return Path(value).expanduser()
        return value


def _deep_merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries without mutating the inputs."""

    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> GlobalSettings:
    """Build settings layering a YAML file, the environment and explicit overrides.

    Precedence, lowest first: YAML file, environment (and ``.env`` files),
    ``overrides`` (typically CLI options). ``None`` overrides are ignored.
    """

    file_values: dict[str, Any] = {}
    if config_path is not None:
        file_values = load_yaml_config(config_path)

    try:
        env_values = GlobalSettings().model_dump(exclude_unset=True)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Configuration validation failed: {exc}") from exc

    explicit = {key: value for key, value in (overrides or {}).items() if value is not None}

    merged = _deep_merge_dicts(_deep_merge_dicts(file_values, env_values), explicit)

    try:
        return GlobalSettings.model_validate(merged)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Configuration validation failed: {exc}") from exc


def ensure_runtime_configuration(settings: GlobalSettings | None = None) -> GlobalSettings:
    """Validate that every value the pipeline needs before it starts is present."""

    settings = settings or get_settings()

    missing: list[str] = []
    if not settings.username or not settings.password:
        missing.append("credentials (username/password)")
    if not settings.jira_api_endpoint:
        missing.append("jira_api_endpoint")
    if not settings.jira_api_jql:
        missing.append("jira_api_jql")
    if not settings.database_url:
        missing.append("database_url")

    if missing:
        raise ConfigurationError(
            "Missing required configuration: "
            f"{', '.join(missing)}. Provide them via config file, FEASIBILITY_* "
            "environment variables or command line options."
        )

    return settings


@lru_cache(maxsize=1)
def _get_settings_cached() -> GlobalSettings:
    return GlobalSettings()


def get_settings(*, reload: bool = False) -> GlobalSettings:
    """Return cached settings, optionally forcing a reload."""

    if reload:
        _get_settings_cached.cache_clear()
    return _get_settings_cached()
