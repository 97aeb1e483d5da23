"""
CLI interface for Release Retention.

Provides command-line access to the retention analysis.
"""

import logging
import sys
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from release_retention.config.loader import (
    ConfigError,
    RetentionConfig,
    load_retention_config,
    parse_aggregate,
)
from release_retention.core.errors import ErrorKind, RetentionError
from release_retention.core.retention import DeploymentAggregate, sort_for_display
from release_retention.core.service import RetentionService
from release_retention.demo.seed_demo_data import write_demo_data
from release_retention.logging_config import configure_logging
from release_retention.storage.models import RetentionResult
from release_retention.storage.providers import get_data_provider

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

DEFAULT_CONFIG_PATH = "retention.yaml"

_ERROR_TITLES = {
    ErrorKind.INVALID_ARGUMENT: "Invalid argument",
    ErrorKind.NO_DATA: "Invalid or incomplete data",
    ErrorKind.FETCH_FAILURE: "Data source error",
}


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Release Retention CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Release Retention - Use --help to see available commands")


@app.command()
def init(
    directory: str = typer.Argument(".", help="Directory to write demo data into"),
    keep_count: int = typer.Option(1, "--keep-count", "-k", min=1, help="Releases to keep per environment")
):
    """Write a demo configuration and demo data files."""
    try:
        config_path = write_demo_data(directory, keep_count=keep_count)
        console.print(f"[green]✓[/] Demo data written to {config_path}")
        sys.exit(EXIT_CODE_PASS)
    except OSError as e:
        console.print(f"[red]Error writing demo data:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("check-config")
def check_config(
    config_path: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to retention config")
):
    """Validate the configuration and, in local mode, the data files."""
    try:
        config = load_retention_config(config_path)
    except (FileNotFoundError, ConfigError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Configuration is valid ({config.data_source_name})")

    if config.use_local_data:
        missing = config.data_files.missing_files()
        if missing:
            console.print("[red]Missing required data files:[/]")
            for name, path in missing.items():
                console.print(f"  - {name}: {path}")
            console.print("Please ensure all data files are present before running retention.")
            sys.exit(EXIT_CODE_FAIL)
        console.print("[green]✓[/] All required data files found")

    sys.exit(EXIT_CODE_PASS)


@app.command()
def run(
    config_path: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to retention config"),
    keep_count: Optional[int] = typer.Option(
        None,
        "--keep-count",
        "-k",
        help="Override the number of releases to keep per environment"
    ),
    aggregate: Optional[str] = typer.Option(
        None,
        "--aggregate",
        "-a",
        help="Deployment time used for ranking: earliest or latest"
    ),
    log_level: str = typer.Option("warning", "--log-level", "-l", help="Log level for diagnostics")
):
    """
    Show which releases to keep for every project and environment.

    This is a read-only operation: nothing is deleted, the output only
    lists the releases the retention rule would keep.
    """
    configure_logging(log_level)

    try:
        config = load_retention_config(config_path)
        selected_aggregate = parse_aggregate(aggregate) if aggregate else config.aggregate
    except (FileNotFoundError, ConfigError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    effective_keep_count = keep_count if keep_count is not None else config.keep_count
    _log_startup(config, effective_keep_count, selected_aggregate)

    try:
        provider = get_data_provider(config)
    except ConfigError as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    try:
        results = RetentionService(provider).get_releases_to_keep(
            effective_keep_count, selected_aggregate
        )
    except RetentionError as e:
        console.print(f"[red]{_ERROR_TITLES[e.kind]}:[/] {e.message}")
        sys.exit(EXIT_CODE_FAIL)
    finally:
        provider.close()

    if not results:
        console.print("[bold yellow]No releases found to keep based on the current configuration.[/]")
        sys.exit(EXIT_CODE_PASS)

    _display_results(sort_for_display(results), effective_keep_count)
    sys.exit(EXIT_CODE_PASS)


def _log_startup(config: RetentionConfig, keep_count: int, aggregate: DeploymentAggregate) -> None:
    logger.info("Data Source: %s", config.data_source_name)
    logger.info("Keep Count: %d", keep_count)
    logger.info("Deployment aggregate: %s", aggregate.value)
    if config.use_local_data:
        for name, path in config.data_files.paths().items():
            logger.info("%s: %s", name.capitalize(), path)
    else:
        logger.info("API Base URL: %s", config.devops_deploy.api_base_url)
        logger.info("API Key Header: %s", config.devops_deploy.api_key_header)
        logger.info("Space ID: %s", config.devops_deploy.space_id)


def _display_results(results: List[RetentionResult], keep_count: int) -> None:
    """Display releases to keep as a table grouped by project and environment."""
    table = Table(title=f"Releases to keep (top {keep_count} per environment)")
    table.add_column("Project")
    table.add_column("Environment")
    table.add_column("Release")
    table.add_column("Version")
    table.add_column("Last Deployed")

    for result in results:
        table.add_row(
            result.project_name,
            result.environment_name,
            result.release_id,
            result.version,
            result.last_deployed_at.strftime("%Y-%m-%d %H:%M:%S")
        )

    console.print(table)
    console.print(f"\n{len(results)} release(s) to keep")


if __name__ == "__main__":
    app()
