"""Configuration for fieldsync."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """Server-side fieldsync configuration."""

    database_url: str
    """Database URL (SQLAlchemy format, e.g. postgresql+psycopg://...)."""

    timezone: str = "Europe/Warsaw"
    """Local timezone used for task dates, shift windows and the rollover job."""

    default_work_start: str = "07:00"
    """Shift start (HH:MM) for workers without their own window."""

    default_work_end: str = "15:00"
    """Shift end (HH:MM) for workers without their own window."""

    daily_overhead_minutes: int = 20
    """Daily allowance subtracted from the efficiency target."""

    standard_day_minutes: int = 480
    """Nominal working day used for multi-day efficiency targets."""

    rollover_window_start_hour: int = 17
    """First local hour in which the daily rollover may run."""

    rollover_window_end_hour: int = 19
    """Last local hour in which the daily rollover may run."""

    push_app_id: Optional[str] = None
    """OneSignal application id (push disabled when unset)."""

    push_api_key: Optional[str] = None
    """OneSignal REST API key."""

    push_url: str = "https://onesignal.com/api/v1/notifications"
    """Push provider endpoint."""

    push_timeout_seconds: float = 10.0
    """Timeout for a single push request."""

    public_origin: Optional[str] = None
    """Public URL of the web app, used for push deep links."""


@dataclass
class ClientConfig:
    """Field client (mobile side) configuration."""

    base_url: str
    """Base URL of the fieldsync API."""

    actor_id: int
    """Id of the worker using this client."""

    queue_path: str = "fieldsync_queue.json"
    """Durable storage for pending actions."""

    cache_path: str = "fieldsync_tasks.json"
    """Durable storage for the date-keyed task cache."""

    max_attempts: int = 3
    """Attempts before a queued action is dropped as a sync failure."""

    drain_interval_seconds: float = 30.0
    """How often the queue retries pending actions (seconds)."""

    request_timeout_seconds: float = 15.0
    """Timeout for a single API call."""
