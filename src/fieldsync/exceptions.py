"""Custom exceptions for fieldsync."""


class FieldSyncError(Exception):
    """Base exception for fieldsync."""


class TaskValidationError(FieldSyncError):
    """Request is missing a required field or carries an invalid value."""


class AuthorizationError(FieldSyncError):
    """Actor is not allowed to perform the action on the task."""


class TaskNotFound(FieldSyncError):
    """Task not found in database."""


class WorkerNotFound(FieldSyncError):
    """Worker not found in database."""


class InvalidTransition(FieldSyncError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, task_id: object, from_status: str, to_status: str):
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition for task {task_id}: {from_status} -> {to_status}")


class TransientSyncFailure(FieldSyncError):
    """Remote call failed (network or non-success response); safe to retry."""


class SyncFailure(FieldSyncError):
    """Queued action was dropped after exhausting its attempts."""

    def __init__(self, action_id: str, action_name: str, attempts: int):
        self.action_id = action_id
        self.action_name = action_name
        self.attempts = attempts
        super().__init__(f"Synchronization failed for {action_name} ({action_id}) after {attempts} attempts")
