"""Command line entry point for the feasibility ETL."""

from __future__ import annotations

import asyncio
from typing import Any

import click

from feasibility_etl.exceptions import ConfigurationError, FeasibilityEtlError
from feasibility_etl.pipeline.runner import run_pipeline
from feasibility_etl.schemas.records import PipelineResult
from feasibility_etl.utils.config import GlobalSettings, ensure_runtime_configuration, load_settings
from feasibility_etl.utils.logging import configure_logging
from feasibility_etl.utils.transcript import RunTranscript, prune_transcripts


def print_summary(result: PipelineResult) -> None:
    """Print a short report of a finished run."""

    click.echo("\n" + "=" * 60)
    click.echo("FEASIBILITY ETL SUMMARY")
    click.echo("=" * 60)
    click.echo(f"  Run ID:                  {result.run_id}")
    click.echo(f"  Reviews fetched:         {result.fetched}")
    click.echo(f"  Supplemental requests:   {result.supplemental_requests}")
    click.echo(f"  Supplemental failures:   {result.supplemental_failures}")
    click.echo(f"  Reviews dropped:         {result.dropped} ({result.dropped_ratio:.2f}%)")
    click.echo(f"  Rows written:            {len(result.load.written)}")
    click.echo(f"  Row failures:            {len(result.load.failures)}")

    if result.load.failures:
        click.echo("\n  Failed rows:")
        for failure in result.load.failures:
            click.echo(f"    • {failure.key}: {failure.message}")

    click.echo("=" * 60 + "\n")


def _build_settings(config_path: str | None, overrides: dict[str, Any]) -> GlobalSettings:
    settings = load_settings(config_path, overrides)
    return ensure_runtime_configuration(settings)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML file with settings (environment and options take precedence)",
)
@click.option("--endpoint", default=None, help="Jira base URL, e.g. https://jira.example.com")
@click.option("--api-version", default=None, help="Jira REST API version (default 2)")
@click.option("--jql", default=None, help="JQL selecting the feasibility reviews")
@click.option("--max-results", type=int, default=None, help="Cap on search results")
@click.option("--username", default=None, help="Jira username (or FEASIBILITY_USERNAME)")
@click.option("--password", default=None, help="Jira password (or FEASIBILITY_PASSWORD)")
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum concurrent supplemental requests (default 5)",
)
@click.option(
    "--threshold",
    type=click.FloatRange(min=0),
    default=None,
    help="Abort when this percentage of reviews or more is dropped",
)
@click.option("--database-url", default=None, help="SQLAlchemy database URL")
@click.option(
    "--truncate/--no-truncate",
    default=None,
    help="Delete existing rows before loading",
)
@click.option("--verbose", is_flag=True, default=None, help="Echo every request and insert")
def main(
    config_path: str | None,
    endpoint: str | None,
    api_version: str | None,
    jql: str | None,
    max_results: int | None,
    username: str | None,
    password: str | None,
    concurrency: int | None,
    threshold: float | None,
    database_url: str | None,
    truncate: bool | None,
    verbose: bool | None,
) -> None:
    """
    Load Jira feasibility reviews, their worklogs and linked issues into the
    feasibility reporting table.

    Examples:

        # Everything from the environment (FEASIBILITY_*)
        feasibility-etl

        # Settings file plus credentials on the command line
        feasibility-etl --config etl.yaml --username etl --password secret

        # Stricter failure gate, verbose transcript on the console
        feasibility-etl --threshold 5 --verbose
    """
    overrides: dict[str, Any] = {
        "jira_api_endpoint": endpoint,
        "jira_api_version": api_version,
        "jira_api_jql": jql,
        "max_results": max_results,
        "username": username,
        "password": password,
        "supplemental_concurrency": concurrency,
        "supplemental_threshold_percentage": threshold,
        "database_url": database_url,
        "truncate_before_load": truncate,
        "verbose": verbose or None,
    }

    try:
        settings = _build_settings(config_path, overrides)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    configure_logging("DEBUG" if settings.verbose else settings.log_level, force=True)

    prune_transcripts(settings.log_dir, settings.transcript_retention_days)
    with RunTranscript.for_today(settings.log_dir, echo=settings.verbose) as transcript:
        try:
            result = asyncio.run(run_pipeline(settings, transcript=transcript))
        except FeasibilityEtlError as e:
            click.echo(f"\nError: {e}", err=True)
            raise click.Abort()

    print_summary(result)


if __name__ == "__main__":
    main()
