"""fieldsync field client: offline action queue, task cache and worker session."""

from .actions import ACTION_NAMES, OptimisticChange, QueuedAction
from .api import RemoteTaskApi
from .cache import TaskCache
from .queue import ActionQueue
from .session import FieldClient
from .storage import JsonFileStore

__all__ = [
    "ACTION_NAMES",
    "ActionQueue",
    "FieldClient",
    "JsonFileStore",
    "OptimisticChange",
    "QueuedAction",
    "RemoteTaskApi",
    "TaskCache",
]
