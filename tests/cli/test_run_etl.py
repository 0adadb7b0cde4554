"""Tests for the feasibility ETL command line entry point."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import yaml
from click.testing import CliRunner

from feasibility_etl.cli import run_etl
from feasibility_etl.cli.run_etl import main, print_summary
from feasibility_etl.exceptions import ThresholdExceededError
from feasibility_etl.schemas.records import LoadResult, PipelineResult, RowFailure


def _result(**overrides) -> PipelineResult:
    values = {
        "run_id": "abc123",
        "fetched": 3,
        "supplemental_requests": 5,
        "supplemental_failures": 1,
        "dropped": 1,
        "dropped_ratio": 33.333,
        "derived": 2,
        "load": LoadResult(written=["FEAS-B", "FEAS-C"]),
    }
    values.update(overrides)
    return PipelineResult(**values)


def _required_options(tmp_path: Path) -> list[str]:
    return [
        "--endpoint",
        "https://jira.example.com",
        "--jql",
        "project = FEAS",
        "--username",
        "etl",
        "--password",
        "secret",
        "--database-url",
        f"sqlite:///{tmp_path / 'feasibility.sqlite'}",
    ]


@pytest.fixture
def log_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    directory = tmp_path / "logs"
    monkeypatch.setenv("FEASIBILITY_LOG_DIR", str(directory))
    return directory


class TestPrintSummary:
    """Test suite for print_summary function."""

    def test_reports_counts(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_summary(_result())

        output = capsys.readouterr().out
        assert "FEASIBILITY ETL SUMMARY" in output
        assert "Reviews fetched:         3" in output
        assert "Reviews dropped:         1 (33.33%)" in output
        assert "Rows written:            2" in output
        assert "Failed rows" not in output

    def test_lists_failed_rows(self, capsys: pytest.CaptureFixture[str]) -> None:
        load = LoadResult(written=["FEAS-C"], failures=[RowFailure(key="FEAS-B", message="duplicate")])

        print_summary(_result(load=load))

        output = capsys.readouterr().out
        assert "Failed rows:" in output
        assert "FEAS-B: duplicate" in output


class TestMain:
    """Test suite for the click command."""

    def test_missing_configuration_exits_with_error(self, log_dir: Path) -> None:
        runner = CliRunner()

        result = runner.invoke(main, ["--endpoint", "https://jira.example.com"])

        assert result.exit_code == 1
        assert "credentials (username/password)" in result.output

    def test_runs_pipeline_with_cli_settings(
        self, tmp_path: Path, log_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        pipeline = AsyncMock(return_value=_result())
        monkeypatch.setattr(run_etl, "run_pipeline", pipeline)
        runner = CliRunner()

        result = runner.invoke(
            main, [*_required_options(tmp_path), "--concurrency", "3", "--threshold", "25"]
        )

        assert result.exit_code == 0, result.output
        assert "Rows written:            2" in result.output
        settings = pipeline.await_args.args[0]
        assert settings.supplemental_concurrency == 3
        assert settings.supplemental_threshold_percentage == pytest.approx(25.0)
        assert settings.username == "etl"
        assert pipeline.await_args.kwargs["transcript"].path.parent == log_dir
        assert log_dir.is_dir()

    def test_config_file_supplies_settings(
        self, tmp_path: Path, log_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_path = tmp_path / "etl.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "jira_api_endpoint": "https://jira.example.com",
                    "jira_api_jql": "project = FEAS",
                    "username": "etl",
                    "password": "secret",
                    "database_url": f"sqlite:///{tmp_path / 'feasibility.sqlite'}",
                    "supplemental_concurrency": 2,
                }
            )
        )
        pipeline = AsyncMock(return_value=_result())
        monkeypatch.setattr(run_etl, "run_pipeline", pipeline)

        result = CliRunner().invoke(main, ["--config", str(config_path), "--concurrency", "4"])

        assert result.exit_code == 0, result.output
        settings = pipeline.await_args.args[0]
        assert settings.jira_api_jql == "project = FEAS"
        assert settings.supplemental_concurrency == 4

    def test_fatal_pipeline_error_exits_with_error(
        self, tmp_path: Path, log_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        error = ThresholdExceededError(50.0, 10.0, [])
        monkeypatch.setattr(run_etl, "run_pipeline", AsyncMock(side_effect=error))

        result = CliRunner().invoke(main, _required_options(tmp_path))

        assert result.exit_code == 1
        assert "Excessive supplemental data requests failed" in result.output
