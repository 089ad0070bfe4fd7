"""Task state machine: validates and applies status-change requests."""

import logging
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from .db import Task, TaskEvent, Worker
from .exceptions import AuthorizationError, InvalidTransition, TaskValidationError, WorkerNotFound
from .notifications import Notifier
from .participants import ParticipantLedger
from .schemas import TransitionResult, WorkerRef
from .states import (
    STATUS_LABELS,
    EventKind,
    SubStatus,
    TaskStatus,
    Transition,
    WorkerRole,
    can_transition,
    is_terminal,
)
from .store import TaskStore

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = {WorkerRole.DISPATCHER.value, WorkerRole.ADMIN.value}

# Personal sub-status reported by a participant asking for each shared status
_PERSONAL_TARGET = {
    TaskStatus.PAUSED: SubStatus.PAUSED,
    TaskStatus.COMPLETED: SubStatus.COMPLETED,
}


@dataclass
class _Outcome:
    result: TransitionResult
    event: Optional[TaskEvent] = None
    notify_message: Optional[str] = None
    recipients: list[int] = field(default_factory=list)


class TaskStateMachine:
    """
    Applies ``(task_id, target_status, actor_id)`` requests against the task store.

    Status changes on tasks shared by several participants are recorded per
    participant first; the shared status only moves once every participant
    reached an equivalent state. Repeated requests are accepted as no-ops so
    that clients may retry them freely.

    Example:
        machine = TaskStateMachine(store, ledger, notifier)
        result = machine.transition(task_id, TaskStatus.COMPLETED, actor_id=7)
        if result.partial:
            ...
    """

    def __init__(self, store: TaskStore, ledger: ParticipantLedger, notifier: Notifier):
        self.store = store
        self.ledger = ledger
        self.notifier = notifier

    def transition(self, task_id: UUID, target: str, actor_id: int) -> TransitionResult:
        try:
            target_status = TaskStatus(target)
        except ValueError:
            raise TaskValidationError(f"Unknown status '{target}'")

        try:
            actor = self.store.get_worker(actor_id)
        except WorkerNotFound:
            raise AuthorizationError(f"Unknown actor {actor_id}")
        if not actor.active:
            raise AuthorizationError(f"Worker {actor_id} is not active")

        with self.store.lock_task(task_id) as (session, task):
            members = self.ledger.member_ids(session, task)
            self._authorize(task, actor, target_status, members)
            outcome = self._decide(session, task, actor, target_status, members)

            if outcome.event is not None:
                self.store.append_event(session, outcome.event)
                session.add(task)
                session.commit()
                outcome.recipients = self.notifier.task_watchers(task, actor.id)

        if outcome.event is None:
            logger.debug(f"Task {task_id}: {target_status.value} by {actor_id} is a no-op")
            return outcome.result

        logger.info(
            f"Task {task_id}: {outcome.event.transition} by worker {actor_id}"
            f"{' (partial)' if outcome.result.partial else ''}"
        )
        if outcome.notify_message:
            self.notifier.notify(outcome.recipients, "status_change", "Status change", outcome.notify_message, task_id)
        return outcome.result

    def _authorize(self, task: Task, actor: Worker, target: TaskStatus, members: list[int]) -> None:
        privileged = actor.role in PRIVILEGED_ROLES
        if target in (TaskStatus.PENDING, TaskStatus.CANCELLED):
            if privileged or task.created_by == actor.id:
                return
            raise AuthorizationError(f"Worker {actor.id} may not set task {task.id} to {target.value}")

        if privileged or actor.id in members:
            return
        if target == TaskStatus.IN_PROGRESS and task.primary_assignee_id is None:
            return
        raise AuthorizationError(f"Worker {actor.id} does not participate in task {task.id}")

    def _decide(
        self, session: Session, task: Task, actor: Worker, target: TaskStatus, members: list[int]
    ) -> _Outcome:
        current = TaskStatus(task.status)

        if current == target:
            return _Outcome(TransitionResult(noop=True, status=current.value, message=f"Task already {current.value}"))
        if is_terminal(current) or not can_transition(current, target):
            raise InvalidTransition(task.id, current.value, target.value)

        if target in _PERSONAL_TARGET and actor.id in members and self._is_shared(task, members):
            outcome = self._decide_shared(session, task, actor, target, members)
            if outcome is not None:
                return outcome

        return self._apply(task, actor, current, target, members)

    def _is_shared(self, task: Task, members: list[int]) -> bool:
        # Unassigned task nobody joined: whoever acts is the only worker
        if task.primary_assignee_id is None and not members:
            return False
        return len(members) > 1

    def _decide_shared(
        self, session: Session, task: Task, actor: Worker, target: TaskStatus, members: list[int]
    ) -> Optional[_Outcome]:
        """Record a personal pause/completion; None when the actor is the last one and the task should move."""
        reported = _PERSONAL_TARGET[target]
        latest = self.store.latest_sub_statuses(session, task.id)
        personal = {m: latest.get(m, SubStatus.ACTIVE) for m in members}

        if personal[actor.id] == reported:
            return _Outcome(TransitionResult(noop=True, status=task.status, message=f"Part already {reported.value}"))
        personal[actor.id] = reported

        if target == TaskStatus.COMPLETED:
            everyone_done = all(s == SubStatus.COMPLETED for s in personal.values())
        else:
            everyone_done = all(s != SubStatus.ACTIVE for s in personal.values())
        if everyone_done:
            return None

        still_working_ids = [m for m in members if m != actor.id and personal[m] == SubStatus.ACTIVE]
        names = self.store.worker_names(set(still_working_ids))
        still_working = [WorkerRef(id=m, name=names.get(m, "")) for m in still_working_ids]

        verb = "completed" if target == TaskStatus.COMPLETED else "paused"
        message = f"{actor.name} {verb} their part"
        if still_working:
            message += f"; still working: {', '.join(w.name for w in still_working)}"

        event = TaskEvent(
            task_id=task.id,
            actor_id=actor.id,
            kind=EventKind.STATUS_CHANGE.value,
            transition=(Transition.PART_COMPLETED if target == TaskStatus.COMPLETED else Transition.PART_PAUSED).value,
            sub_status=reported.value,
            message=message,
            occurred_at=self.store.now(),
        )
        return _Outcome(
            TransitionResult(partial=True, status=task.status, message=message, still_working=still_working),
            event=event,
            notify_message=f'"{task.description}" - {message}',
        )

    def _apply(
        self, task: Task, actor: Worker, current: TaskStatus, target: TaskStatus, members: list[int]
    ) -> _Outcome:
        now = self.store.now()
        shared = self._is_shared(task, members)
        sub_status: Optional[SubStatus] = None

        if target == TaskStatus.IN_PROGRESS:
            if current == TaskStatus.PAUSED:
                transition, message = Transition.RESUMED, "Resumed"
            else:
                transition, message = Transition.STARTED, "Started"
                if task.started_at is None:
                    task.started_at = now
            if task.primary_assignee_id is None:
                task.primary_assignee_id = actor.id
            if actor.id == task.primary_assignee_id or actor.id in members:
                sub_status = SubStatus.ACTIVE
        elif target == TaskStatus.PAUSED:
            transition, message = Transition.PAUSED, "Task paused"
            task.paused_at = now
            if actor.id in members:
                sub_status = SubStatus.PAUSED
        elif target == TaskStatus.COMPLETED:
            transition, message = Transition.COMPLETED, "Task completed"
            if shared:
                message += f" (last: {actor.name})"
            task.completed_at = now
            if actor.id in members:
                sub_status = SubStatus.COMPLETED
        elif target == TaskStatus.CANCELLED:
            transition, message = Transition.CANCELLED, "Task cancelled"
        else:
            transition, message = Transition.RESET, "Moved back to pending"

        task.status = target.value
        event = TaskEvent(
            task_id=task.id,
            actor_id=actor.id,
            kind=EventKind.STATUS_CHANGE.value,
            transition=transition.value,
            sub_status=sub_status.value if sub_status else None,
            message=message,
            occurred_at=now,
        )
        return _Outcome(
            TransitionResult(status=target.value, message=message),
            event=event,
            notify_message=f'"{task.description}" - {STATUS_LABELS[target]}',
        )
