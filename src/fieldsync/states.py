"""Task states, event vocabularies and the allowed status transitions."""

from enum import Enum


class TaskStatus(str, Enum):
    """Shared status of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskType(str, Enum):
    TRANSPORT = "transport"
    UNLOADING = "unloading"
    LOADING = "loading"
    OTHER = "other"


class Priority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class WorkerRole(str, Enum):
    DRIVER = "driver"
    DISPATCHER = "dispatcher"
    ADMIN = "admin"


class EventKind(str, Enum):
    NOTE = "note"
    DELAY = "delay"
    PROBLEM = "problem"
    STATUS_CHANGE = "status_change"


class DelayReason(str, Enum):
    NO_ACCESS = "no_access"
    WAITING = "waiting"
    TRAFFIC = "traffic"
    EQUIPMENT = "equipment"
    WEATHER = "weather"
    BREAK = "break"
    OTHER = "other"


class SubStatus(str, Enum):
    """A participant's personal progress on a (possibly shared) task."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class Transition(str, Enum):
    """What a status_change event records."""

    STARTED = "started"
    RESUMED = "resumed"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESET = "reset"
    PART_PAUSED = "part_paused"
    PART_COMPLETED = "part_completed"
    JOINED = "joined"
    AUTO_PAUSED = "auto_paused"


# Valid shared-status transitions
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.PAUSED, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.PAUSED: {TaskStatus.IN_PROGRESS, TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}

# Transitions that open a shared work session / close one (stored values)
SESSION_OPENERS = {Transition.STARTED.value, Transition.RESUMED.value}
SESSION_CLOSERS = {
    Transition.PAUSED.value,
    Transition.AUTO_PAUSED.value,
    Transition.COMPLETED.value,
    Transition.CANCELLED.value,
}

# Events that only describe one participant's own progress
PERSONAL_TRANSITIONS = {Transition.PART_PAUSED.value, Transition.PART_COMPLETED.value, Transition.JOINED.value}

STATUS_ORDER = {
    TaskStatus.IN_PROGRESS.value: 1,
    TaskStatus.PENDING.value: 2,
    TaskStatus.PAUSED.value: 3,
    TaskStatus.COMPLETED.value: 4,
    TaskStatus.CANCELLED.value: 5,
}

PRIORITY_ORDER = {Priority.HIGH.value: 1, Priority.NORMAL.value: 2, Priority.LOW.value: 3}

STATUS_LABELS = {
    TaskStatus.PENDING: "pending",
    TaskStatus.IN_PROGRESS: "started",
    TaskStatus.PAUSED: "paused",
    TaskStatus.COMPLETED: "completed",
    TaskStatus.CANCELLED: "cancelled",
}

DELAY_LABELS = {
    DelayReason.NO_ACCESS: "No access",
    DelayReason.WAITING: "Waiting",
    DelayReason.TRAFFIC: "Traffic",
    DelayReason.EQUIPMENT: "Equipment problem",
    DelayReason.WEATHER: "Weather",
    DelayReason.BREAK: "Break",
    DelayReason.OTHER: "Other",
}


def is_terminal(status: str) -> bool:
    """Check if a status cannot change anymore."""
    return status in (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)


def can_transition(current: str, target: str) -> bool:
    """Check whether ``current -> target`` is an allowed shared-status change."""
    return TaskStatus(target) in VALID_TRANSITIONS[TaskStatus(current)]
