"""fieldsync init command."""

import logging
from typing import Optional

import click
from sqlalchemy import inspect

from fieldsync.db import create_store_engine, init_database

from .main import build_config, main, set_log_level

logger = logging.getLogger("fieldsync")

TABLES = ["workers", "tasks", "task_participants", "task_events", "notifications"]


@main.command(name="init")
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
    "--force",
    is_flag=True,
    help="Run schema creation even if tables exist",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default="INFO",
    help="Logging level",
)
def init_cmd(db_url: Optional[str], config: Optional[str], force: bool, log_level: str) -> None:
    """Initialize the fieldsync database.

    Creates the missing tables. If the task tables already exist, nothing is
    done unless --force is given.
    """
    set_log_level(log_level)
    cfg = build_config(db_url, config)

    try:
        engine = create_store_engine(cfg.database_url)
        existing = set(inspect(engine).get_table_names())
        engine.dispose()

        if "tasks" in existing and not force:
            click.secho("⚠️  The 'tasks' table already exists", fg="yellow")
            click.echo("Database is already initialized.")
            click.echo("To create any missing tables, run: fieldsync init --force")
            return

        logger.info("Initializing fieldsync database...")
        init_database(cfg.database_url).dispose()
        click.secho("✅ Database initialized successfully", fg="green")
        click.echo(f"   Tables: {', '.join(TABLES)}")

    except Exception as e:
        raise click.ClickException(f"Database error: {e}")
