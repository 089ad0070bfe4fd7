"""fieldsync rollover command."""

import asyncio
import logging
import sys
from typing import Optional

import click

from fieldsync import FieldSync, RolloverJob

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
    "--once",
    is_flag=True,
    help="Run a single pass now, ignoring the time window",
)
@click.option(
    "--poll-interval",
    type=float,
    default=300.0,
    help="How often the loop checks the time window",
    metavar="SECONDS",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default="INFO",
    help="Logging level",
)
def rollover(db_url: Optional[str], config: Optional[str], once: bool, poll_interval: float, log_level: str) -> None:
    """Pause unfinished work at shift end and move open tasks to tomorrow.

    Without --once, runs as a long-lived job that fires once per day inside
    the configured window (17:00-19:00 local time by default).
    """
    set_log_level(log_level)
    cfg = build_config(db_url, config)
    fieldsync = FieldSync.from_config(cfg)
    job = fieldsync.rollover_job(poll_interval_seconds=poll_interval)

    try:
        if once:
            result = job.run_once()
            click.echo(f"Paused: {len(result.paused)}  Migrated: {len(result.migrated)}  Failed: {len(result.failed)}")
            if result.failed:
                sys.exit(1)
            return

        logger.info(
            f"Rollover window {cfg.rollover_window_start_hour}:00-{cfg.rollover_window_end_hour}:59 ({cfg.timezone})"
        )
        asyncio.run(_run_job(job))
    finally:
        fieldsync.close()


async def _run_job(job: RolloverJob) -> None:
    try:
        await job.run()
    except Exception as e:
        logger.error(f"Rollover job error: {e}", exc_info=True)
        sys.exit(1)
