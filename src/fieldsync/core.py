"""Core fieldsync functionality: the server-side facade over store, state machine and ledger."""

import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from .accounting import Report, TimeAccountingEngine
from .config import Config
from .db import Task, TaskEvent, Worker
from .exceptions import AuthorizationError, TaskValidationError, WorkerNotFound
from .notifications import Notifier, NullPushSender, OneSignalPushSender, PushSender
from .participants import ParticipantLedger
from .rollover import RolloverJob
from .schemas import (
    EventView,
    LogCreate,
    NotificationList,
    NotificationView,
    Participants,
    TaskCreate,
    TaskDetail,
    TaskView,
    TransitionResult,
)
from .state_machine import TaskStateMachine
from .states import DELAY_LABELS, DelayReason, EventKind, WorkerRole
from .store import TaskStore

logger = logging.getLogger(__name__)

MANAGER_ROLES = (WorkerRole.DISPATCHER.value, WorkerRole.ADMIN.value)


class FieldSync:
    """
    Server-side entry point wiring the task store to its collaborators.

    Example:
        fs = FieldSync.from_config(Config(database_url="postgresql+psycopg://..."))
        task = fs.create_task(TaskCreate(description="Pallets to hall B", scheduled_date=date.today()), created_by=1)
        fs.change_status(task.id, "in_progress", actor_id=2)
    """

    def __init__(self, store: TaskStore, push: Optional[PushSender] = None):
        self.store = store
        self.push = push or NullPushSender()
        self.notifier = Notifier(store, self.push)
        self.ledger = ParticipantLedger(store)
        self.state_machine = TaskStateMachine(store, self.ledger, self.notifier)
        self.accounting = TimeAccountingEngine(store)

    @classmethod
    def from_config(cls, config: Config) -> "FieldSync":
        """Build a FieldSync with OneSignal push when credentials are configured."""
        store = TaskStore(config)
        push: PushSender
        if config.push_app_id and config.push_api_key:
            push = OneSignalPushSender(config)
        else:
            logger.info("Push not configured, notifications are stored in-app only")
            push = NullPushSender()
        return cls(store, push)

    @property
    def config(self) -> Config:
        return self.store.config

    def close(self) -> None:
        if isinstance(self.push, OneSignalPushSender):
            self.push.close()
        self.store.close()

    def rollover_job(self, poll_interval_seconds: float = 300.0) -> RolloverJob:
        return RolloverJob(self.store, poll_interval_seconds=poll_interval_seconds)

    def _active_actor(self, actor_id: int) -> Worker:
        try:
            actor = self.store.get_worker(actor_id)
        except WorkerNotFound:
            raise AuthorizationError(f"Unknown actor {actor_id}")
        if not actor.active:
            raise AuthorizationError(f"Worker {actor_id} is not active")
        return actor

    def _manager(self, actor_id: int) -> Worker:
        actor = self._active_actor(actor_id)
        if actor.role not in MANAGER_ROLES:
            raise AuthorizationError(f"Worker {actor_id} may not manage tasks")
        return actor

    # ---- tasks ----

    def create_task(self, data: TaskCreate, created_by: int) -> Task:
        """
        Create a task and notify the workers who may pick it up.

        Container workers are notified when containers are given (everyone if
        any container is open to all), otherwise the assignee, otherwise all
        active drivers.

        A repeated ``client_action_id`` returns the task created the first time.
        """
        creator = self._manager(created_by)
        existing = self.store.task_for_action(data.client_action_id)
        if existing is not None:
            logger.info(f"Task {existing.id} already created by action {data.client_action_id}")
            return existing

        if data.assigned_to is not None:
            try:
                self.store.get_worker(data.assigned_to)
            except WorkerNotFound:
                raise TaskValidationError(f"Assignee {data.assigned_to} does not exist")

        containers = [c.model_dump() for c in data.containers] if data.containers else None
        with self.store.session() as session:
            task = Task(
                task_type=data.task_type.value,
                description=data.description,
                material=data.material,
                location_from=data.location_from,
                location_to=data.location_to,
                department=data.department,
                notes=data.notes,
                containers=containers,
                priority=data.priority.value,
                scheduled_date=data.scheduled_date,
                scheduled_time=data.scheduled_time,
                sort_order=self.store.next_sort_order(session, data.scheduled_date),
                primary_assignee_id=data.assigned_to,
                created_by=creator.id,
                client_action_id=data.client_action_id,
                created_at=self.store.now(),
            )
            session.add(task)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = self.store.task_for_action(data.client_action_id)
                if existing is None:
                    raise
                return existing
            session.refresh(task)

        logger.info(f"Task {task.id} created by worker {creator.id} for {task.scheduled_date}")
        self.notifier.notify(
            self._new_task_recipients(data),
            "new_task",
            "New task",
            f"New task: {task.description}",
            task.id,
        )
        return task

    def _new_task_recipients(self, data: TaskCreate) -> list[int]:
        notify_all = False
        recipients: list[int] = []
        if data.containers:
            for container in data.containers:
                if container.worker_id is None:
                    notify_all = True
                else:
                    recipients.append(container.worker_id)
        elif data.assigned_to is not None:
            recipients.append(data.assigned_to)
        else:
            notify_all = True

        if notify_all:
            return [w.id for w in self.store.list_workers(role=WorkerRole.DRIVER)]
        return recipients

    def get_task(self, task_id: UUID) -> TaskDetail:
        return self.store.task_detail(task_id)

    def list_tasks(
        self,
        scheduled_date: Optional[date] = None,
        status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> list[TaskView]:
        return self.store.list_tasks(scheduled_date, status, user_id)

    def change_status(self, task_id: UUID, status: str, actor_id: int) -> TransitionResult:
        return self.state_machine.transition(task_id, status, actor_id)

    def join(self, task_id: UUID, actor_id: int) -> bool:
        return self.ledger.join(task_id, actor_id)

    def participants(self, task_id: UUID) -> Participants:
        return self.ledger.list_participants(task_id)

    def reorder(self, task_ids: list[UUID], actor_id: int, reason: Optional[str] = None) -> None:
        """Persist a manual ordering; a reason is kept as a note on the first task."""
        actor = self._manager(actor_id)
        self.store.reorder(task_ids)
        if reason and task_ids:
            with self.store.session() as session:
                self.store.append_event(
                    session,
                    TaskEvent(
                        task_id=task_ids[0],
                        actor_id=actor.id,
                        kind=EventKind.NOTE.value,
                        message=f"Order changed by {actor.name}: {reason}",
                        occurred_at=self.store.now(),
                    ),
                )
                session.commit()
        logger.info(f"Worker {actor.id} reordered {len(task_ids)} tasks")

    # ---- logs ----

    def add_log(self, task_id: UUID, log: LogCreate) -> TaskEvent:
        """
        Append a note, delay or problem to a task's log.

        Status changes go through change_status. Delays and problems notify
        the task creator (or every admin when the task has no creator).
        A repeated ``client_action_id`` returns the event logged the first time
        without logging or notifying again.
        """
        if log.log_type == EventKind.STATUS_CHANGE:
            raise TaskValidationError("Status changes must go through the status endpoint")
        if log.log_type in (EventKind.NOTE, EventKind.PROBLEM) and not log.message:
            raise TaskValidationError(f"A {log.log_type.value} needs a message")
        if log.log_type == EventKind.DELAY and log.delay_reason is None:
            raise TaskValidationError("A delay needs a reason")

        actor = self._active_actor(log.actor_id)
        task = self.store.get_task(task_id)

        existing = self.store.event_for_action(log.client_action_id)
        if existing is not None:
            logger.info(f"Task {task.id}: action {log.client_action_id} already logged")
            return existing

        event = TaskEvent(
            task_id=task.id,
            actor_id=actor.id,
            kind=log.log_type.value,
            message=log.message,
            delay_reason=log.delay_reason.value if log.delay_reason else None,
            delay_minutes=log.delay_minutes if log.log_type == EventKind.DELAY else None,
            occurred_at=self.store.now(),
            client_action_id=log.client_action_id,
        )
        with self.store.session() as session:
            self.store.append_event(session, event)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = self.store.event_for_action(log.client_action_id)
                if existing is None:
                    raise
                return existing
            session.refresh(event)

        logger.info(f"Task {task.id}: {event.kind} logged by worker {actor.id}")
        if log.log_type == EventKind.DELAY:
            reason = DELAY_LABELS[DelayReason(event.delay_reason)]
            self.notifier.notify(
                self.notifier.task_watchers(task, actor.id, include_assignee=False),
                EventKind.DELAY.value,
                "Delay",
                f"{actor.name}: {reason} ({event.delay_minutes or 0} min)",
                task.id,
            )
        elif log.log_type == EventKind.PROBLEM:
            self.notifier.notify(
                self.notifier.task_watchers(task, actor.id, include_assignee=False),
                EventKind.PROBLEM.value,
                "Problem",
                f"{actor.name}: {event.message}",
                task.id,
            )
        return event

    def list_logs(self, task_id: UUID) -> list[EventView]:
        """Task log, newest first."""
        return self.store.task_detail(task_id).events

    # ---- notifications ----

    def notifications(self, user_id: int, limit: int = 50) -> NotificationList:
        rows, unread = self.store.list_notifications(user_id, limit)
        return NotificationList(
            notifications=[NotificationView.model_validate(n) for n in rows],
            unread_count=unread,
        )

    def mark_notification_read(self, notification_id: int) -> None:
        self.store.mark_notification_read(notification_id)

    def mark_all_notifications_read(self, user_id: int) -> None:
        self.store.mark_all_notifications_read(user_id)

    def delete_read_notifications(self, user_id: int) -> None:
        self.store.delete_read_notifications(user_id)

    # ---- reports ----

    def report(self, period: str = "week", now: Optional[datetime] = None) -> Report:
        return self.accounting.report(period, now)
