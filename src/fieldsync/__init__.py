"""fieldsync: task lifecycle and synchronization engine for field work."""

from .accounting import Report, TimeAccountingEngine
from .config import ClientConfig, Config
from .core import FieldSync
from .exceptions import (
    AuthorizationError,
    FieldSyncError,
    InvalidTransition,
    SyncFailure,
    TaskNotFound,
    TaskValidationError,
    TransientSyncFailure,
    WorkerNotFound,
)
from .participants import ParticipantLedger
from .rollover import RolloverJob
from .state_machine import TaskStateMachine
from .states import SubStatus, TaskStatus, TaskType, WorkerRole
from .store import TaskStore

__version__ = "0.1.0"
__all__ = [
    "Config",
    "ClientConfig",
    "FieldSync",
    "TaskStore",
    "TaskStateMachine",
    "ParticipantLedger",
    "TimeAccountingEngine",
    "Report",
    "RolloverJob",
    "TaskStatus",
    "TaskType",
    "SubStatus",
    "WorkerRole",
    "FieldSyncError",
    "TaskValidationError",
    "AuthorizationError",
    "TaskNotFound",
    "WorkerNotFound",
    "InvalidTransition",
    "TransientSyncFailure",
    "SyncFailure",
]
