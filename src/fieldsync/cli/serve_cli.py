"""fieldsync serve command."""

import logging
from typing import Optional

import click
import uvicorn

from fieldsync import FieldSync
from fieldsync.api import create_app

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
    "--host",
    default="127.0.0.1",
    help="Interface to bind",
    metavar="HOST",
)
@click.option(
    "--port",
    type=int,
    default=8000,
    help="Port to listen on",
    metavar="PORT",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default="INFO",
    help="Logging level",
)
def serve(db_url: Optional[str], config: Optional[str], host: str, port: int, log_level: str) -> None:
    """Run the fieldsync HTTP API.

    Configuration priority: CLI flags > config file > environment variables > defaults.
    """
    set_log_level(log_level)
    cfg = build_config(db_url, config)

    fieldsync = FieldSync.from_config(cfg)
    app = create_app(fieldsync)

    logger.info(f"Starting fieldsync API on {host}:{port} (timezone {cfg.timezone})")
    try:
        uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
    finally:
        fieldsync.close()
