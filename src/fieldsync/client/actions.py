"""Queued client actions and their optimistic local effects."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

UPDATE_TASK_STATUS = "update_task_status"
JOIN_TASK = "join_task"
CREATE_TASK_LOG = "create_task_log"
CREATE_TASK = "create_task"
MARK_NOTIFICATION_READ = "mark_notification_read"
DELETE_READ_NOTIFICATIONS = "delete_read_notifications"

ACTION_NAMES = frozenset(
    {
        UPDATE_TASK_STATUS,
        JOIN_TASK,
        CREATE_TASK_LOG,
        CREATE_TASK,
        MARK_NOTIFICATION_READ,
        DELETE_READ_NOTIFICATIONS,
    }
)

# Payload keys the remote call reads for each action
REQUIRED_KEYS: dict[str, tuple[str, ...]] = {
    UPDATE_TASK_STATUS: ("taskId", "status", "actorId"),
    JOIN_TASK: ("taskId", "actorId"),
    CREATE_TASK_LOG: ("taskId", "actorId", "logType"),
    CREATE_TASK: ("description", "scheduledDate"),
    MARK_NOTIFICATION_READ: ("notificationId",),
    DELETE_READ_NOTIFICATIONS: ("userId",),
}


class QueuedAction(BaseModel):
    """A mutating operation waiting to reach the server."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    payload: dict[str, Any]
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempt_count: int = 0


@dataclass(frozen=True)
class OptimisticChange:
    """
    Local effect of an action: ``apply`` runs at enqueue time, ``revert``
    undoes it and is only called by whoever handles a sync failure.
    """

    apply: Callable[[], Any]
    revert: Optional[Callable[[], Any]] = None

    @classmethod
    def none(cls) -> "OptimisticChange":
        return cls(apply=lambda: None)
