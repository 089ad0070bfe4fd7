"""fieldsync CLI main entrypoint."""

import logging
import os
from typing import Optional

import click
import yaml

from fieldsync import Config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("fieldsync")

# Config file keys for the optional Config fields
_CONFIG_KEYS = {
    "timezone": "timezone",
    "default_work_start": "shift.start",
    "default_work_end": "shift.end",
    "daily_overhead_minutes": "reports.daily_overhead_minutes",
    "standard_day_minutes": "reports.standard_day_minutes",
    "rollover_window_start_hour": "rollover.window_start_hour",
    "rollover_window_end_hour": "rollover.window_end_hour",
    "push_app_id": "push.app_id",
    "push_api_key": "push.api_key",
    "push_url": "push.url",
    "public_origin": "server.public_origin",
}


def load_config_file(config_path: str) -> dict:
    """Load YAML configuration file."""
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
            return config or {}
    except FileNotFoundError as e:
        raise click.ClickException(f"Config file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise click.ClickException(f"Invalid YAML in config file: {e}") from e


def get_config_value(cli_value, config_dict: dict, config_key: str, default=None):
    """Get config value with priority: CLI flag > config file > default.

    Args:
        cli_value: Value from CLI flag (if provided)
        config_dict: Configuration dictionary from config file
        config_key: Dot-separated key path in config dict (e.g., "database.url")
        default: Default value if not found

    Example:
        db_url = get_config_value(cli_db_url, config_data, "database.url")
    """
    if cli_value is not None:
        return cli_value

    current = config_dict
    for key in config_key.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default

    return current if current is not None else default


def build_config(db_url: Optional[str], config_path: Optional[str], **overrides) -> Config:
    """Build a Config. Priority: CLI flags > config file > environment > defaults."""
    config_data: dict = {}
    if config_path:
        config_data = load_config_file(config_path)
        logger.info(f"Loaded config from {config_path}")

    final_db_url = get_config_value(db_url, config_data, "database.url", os.environ.get("DATABASE_URL"))
    if not final_db_url:
        raise click.ClickException("DATABASE_URL not provided. Use --db-url flag or DATABASE_URL env var")

    config_kwargs: dict = {"database_url": final_db_url}
    for field_name, key in _CONFIG_KEYS.items():
        value = get_config_value(overrides.get(field_name), config_data, key)
        if value is not None:
            config_kwargs[field_name] = value

    try:
        return Config(**config_kwargs)
    except TypeError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


def set_log_level(log_level: str) -> None:
    logging.getLogger("fieldsync").setLevel(log_level)


@click.group()
@click.version_option(package_name="fieldsync")
def main() -> None:
    """fieldsync: task lifecycle and synchronization for field work."""
    pass


# Import commands to register them with the main group
from . import init_cli, report_cli, rollover_cli, serve_cli  # noqa: E402, F401
