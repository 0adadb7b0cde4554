"""Utilities package initialization."""
from .config import (
    DatabasePoolSettings,
    GlobalSettings,
    ensure_runtime_configuration,
    get_settings,
    load_settings,
    load_yaml_config,
)
from .logging import configure_logging, log_stage_outcome, setup_logger
from .transcript import RunTranscript, prune_transcripts, transcript_path

__all__ = [
    "DatabasePoolSettings",
    "GlobalSettings",
    "ensure_runtime_configuration",
    "get_settings",
    "load_settings",
    "load_yaml_config",
    "configure_logging",
    "log_stage_outcome",
    "setup_logger",
    "RunTranscript",
    "prune_transcripts",
    "transcript_path",
]
