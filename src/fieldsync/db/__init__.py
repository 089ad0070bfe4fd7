"""fieldsync database module."""

from .migrations import create_store_engine, init_database
from .models import Notification, Task, TaskEvent, TaskParticipant, Worker

__all__ = [
    "Task",
    "TaskEvent",
    "TaskParticipant",
    "Notification",
    "Worker",
    "init_database",
    "create_store_engine",
]
