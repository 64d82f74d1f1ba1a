from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import click
import schedule
from rich.console import Console
from rich.table import Table

from models.pipeline_config import ETLBatchConfig
from models.structured_record import Schema, StructuredRecord
from services.dataset_store import DatasetStore
from services.model_store import ModelStore
from services.pipeline_service import PipelineService
from services.plugins import default_registry
from services.statistics_service import StatisticsService
from utils.config import AppConfig, load_config
from utils.errors import PipelineConfigError, WorkflowFailedError
from utils.logger import configure_logging


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    datasets: DatasetStore
    stats: StatisticsService
    pipelines: PipelineService
    console: Console


def build_context(env_file: str, quiet: bool = False) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level, console=not quiet)

    datasets = DatasetStore(config.db_path)
    models = ModelStore(config.model_dir)
    stats = StatisticsService(config.stats_file)
    pipelines = PipelineService(datasets, models, default_registry(), stats)
    return AppContext(
        config=config,
        datasets=datasets,
        stats=stats,
        pipelines=pipelines,
        console=Console(),
    )


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.option("--quiet", is_flag=True, default=False, help="Only log to the log file")
@click.pass_context
def cli(ctx: click.Context, env_file: str, quiet: bool) -> None:
    """Train and apply logistic regression spam models through batch pipelines."""

    try:
        ctx.obj = build_context(env_file, quiet)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("plugins")
@click.pass_obj
def list_plugins(app: AppContext) -> None:
    """List the plugins pipelines can use."""

    table = Table(title="Available plugins")
    table.add_column("Type")
    table.add_column("Name")
    for plugin_type, name in app.pipelines.registry.available():
        table.add_row(plugin_type, name)
    app.console.print(table)


@cli.command("write-input")
@click.argument("dataset")
@click.argument("records_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--truncate/--append", default=False, help="Clear the dataset before writing")
@click.pass_obj
def write_input(app: AppContext, dataset: str, records_file: Path, truncate: bool) -> None:
    """Write records from a JSON file ({"schema": ..., "records": [...]}) into DATASET."""

    records = _load_records(records_file)
    if truncate:
        app.datasets.truncate(dataset)
    written = app.datasets.write(dataset, records)
    app.console.print(f"Wrote {written} record(s) to [bold]{dataset}[/bold].")


@cli.command("run")
@click.argument("pipeline_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--app", "app_name", default=None, help="Application name (defaults to the file name)")
@click.option(
    "--timeout", type=click.IntRange(min=1), default=None, help="Seconds to wait for the workflow to finish"
)
@click.pass_obj
def run_pipeline(app: AppContext, pipeline_file: Path, app_name: Optional[str], timeout: Optional[int]) -> None:
    """Deploy the pipeline in PIPELINE_FILE and run it once."""

    name = app_name or pipeline_file.stem
    counts = _perform_run(app, pipeline_file, name, app.config.workflow_timeout if timeout is None else timeout)
    app.console.print(_build_run_table(name, counts))


@cli.command("read-output")
@click.argument("dataset")
@click.pass_obj
def read_output(app: AppContext, dataset: str) -> None:
    """Print the records stored in DATASET."""

    records = app.datasets.read(dataset)
    if not records:
        app.console.print(f"[yellow]Dataset {dataset} is empty.[/yellow]")
        return

    columns = records[0].schema.field_names
    table = Table(title=f"Records in {dataset}")
    for column in columns:
        table.add_column(column)
    for record in records:
        table.add_row(*("-" if record.get(column) is None else str(record.get(column)) for column in columns))
    app.console.print(table)


@cli.command("stats")
@click.pass_obj
def stats(app: AppContext) -> None:
    """Display workflow run statistics."""

    snapshot = app.stats.snapshot()
    if not snapshot:
        app.console.print("No stats recorded yet.")
        return

    table = Table(title="Global stats")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Workflow runs", str(snapshot.get("runs", 0)))
    statuses = snapshot.get("statuses", {})
    if statuses:
        table.add_row("Statuses", ", ".join(f"{status}: {count}" for status, count in statuses.items()))
    app.console.print(table)

    apps = snapshot.get("apps", {})
    if apps:
        app_table = Table(title="Per-application stats")
        app_table.add_column("Application")
        app_table.add_column("Runs")
        app_table.add_column("Last status")
        app_table.add_column("Records out")
        for name, data in apps.items():
            last_run = data.get("last_run", {})
            records_out = ", ".join(f"{stage}: {count}" for stage, count in last_run.get("records_out", {}).items())
            app_table.add_row(name, str(data.get("runs", 0)), last_run.get("status", "-"), records_out or "-")
        app.console.print(app_table)


@cli.command("schedule")
@click.argument("pipeline_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--app", "app_name", default=None, help="Application name (defaults to the file name)")
@click.option("--interval", type=int, default=15, show_default=True, help="Interval in minutes")
@click.pass_obj
def schedule_pipeline(app: AppContext, pipeline_file: Path, app_name: Optional[str], interval: int) -> None:
    """Run the pipeline in PIPELINE_FILE on an interval using the schedule library."""

    name = app_name or pipeline_file.stem

    def job() -> None:
        try:
            counts = _perform_run(app, pipeline_file, name, app.config.workflow_timeout)
        except click.ClickException as exc:
            app.console.print(f"[scheduler] [red]{exc.message}[/red]")
            return
        summary = ", ".join(f"{stage}: {count}" for stage, count in counts.items())
        app.console.print(f"[scheduler] {name} completed ({summary}).")

    schedule.every(interval).minutes.do(job)

    app.console.print(f"Scheduling '{name}' every {interval} minute(s). Press Ctrl+C to stop.")
    try:
        while True:
            schedule.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        app.console.print("Scheduler stopped.")


def _load_records(records_file: Path) -> List[StructuredRecord]:
    try:
        payload = json.loads(records_file.read_text(encoding="utf-8"))
        schema = Schema.from_dict(payload["schema"])
        return [StructuredRecord.of(schema, **values) for values in payload.get("records", [])]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise click.ClickException(f"Invalid records file {records_file}: {exc}") from exc


def _perform_run(app: AppContext, pipeline_file: Path, app_name: str, timeout: int) -> Dict[str, int]:
    try:
        config = ETLBatchConfig.from_dict(json.loads(pipeline_file.read_text(encoding="utf-8")))
        manager = app.pipelines.deploy(app_name, config)
        return manager.get_workflow_manager().run_once(timeout)
    except (json.JSONDecodeError, KeyError) as exc:
        raise click.ClickException(f"Invalid pipeline file {pipeline_file}: {exc}") from exc
    except PipelineConfigError as exc:
        raise click.ClickException(f"Invalid pipeline: {exc}") from exc
    except (WorkflowFailedError, TimeoutError) as exc:
        LOGGER.error("Run of %s did not complete: %s", app_name, exc)
        raise click.ClickException(str(exc)) from exc


def _build_run_table(app_name: str, counts: Dict[str, int]) -> Table:
    table = Table(title=f"Run of {app_name}")
    table.add_column("Stage")
    table.add_column("Records out")
    for stage, count in counts.items():
        table.add_row(stage, str(count))
    return table


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
