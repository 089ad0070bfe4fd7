"""fieldsync report command."""

import logging
from typing import Optional

import click

from fieldsync import FieldSync, FieldSyncError

from .main import build_config, main, set_log_level

logger = logging.getLogger("fieldsync")


@main.command()
@click.option(
    "--db-url",
    envvar="DATABASE_URL",
    help="Database URL",
    metavar="URL",
)
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to fieldsync.yaml config file",
    metavar="PATH",
)
@click.option(
    "--period",
    default="week",
    help="today, week, YYYY-MM or YYYY-MM-DD",
    metavar="PERIOD",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    help="Print the full report as JSON",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default="WARNING",
    help="Logging level",
)
def report(db_url: Optional[str], config: Optional[str], period: str, as_json: bool, log_level: str) -> None:
    """Print per-driver work time and efficiency for a period."""
    set_log_level(log_level)
    cfg = build_config(db_url, config)
    fieldsync = FieldSync.from_config(cfg)

    try:
        result = fieldsync.report(period)
    except FieldSyncError as e:
        raise click.ClickException(str(e))
    finally:
        fieldsync.close()

    if as_json:
        click.echo(result.model_dump_json(by_alias=True, indent=2))
        return

    click.echo(f"Report {result.period} ({result.start} - {result.end})")
    if not result.workers:
        click.echo("No active drivers.")
        return
    for w in result.workers:
        click.echo(
            f"  {w.name:<20} tasks {w.tasks_count:>3}  work {w.work_minutes:>5} min  "
            f"delay {w.delay_minutes:>4} min  efficiency {w.efficiency:>3}%"
        )
