"""Task store: the single source of truth for tasks, participants, events and notifications."""

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy import delete, func
from sqlmodel import Session, SQLModel, select

from .config import Config
from .db import Notification, Task, TaskEvent, TaskParticipant, Worker, create_store_engine
from .exceptions import TaskNotFound, WorkerNotFound
from .schemas import EventView, TaskDetail, TaskView, WorkerRef
from .states import PERSONAL_TRANSITIONS, PRIORITY_ORDER, STATUS_ORDER, EventKind, SubStatus, WorkerRole
from .timeutil import local_now, parse_hhmm

logger = logging.getLogger(__name__)

# Process-local task mutexes; tasks sharing a stripe are serialized together
LOCK_STRIPES = 64


class TaskStore:
    """
    Relational task store backed by SQLModel.

    Example:
        store = TaskStore(Config(database_url="postgresql+psycopg://..."))
        task = store.get_task(task_id)
    """

    def __init__(self, config: Config):
        self.config = config
        self.engine = create_store_engine(config.database_url)
        SQLModel.metadata.create_all(self.engine)

        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def close(self) -> None:
        self.engine.dispose()

    def session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def now(self) -> datetime:
        return local_now(self.config.timezone)

    def today(self) -> date:
        return self.now().date()

    @contextmanager
    def lock_task(self, task_id: UUID) -> Iterator[tuple[Session, Task]]:
        """
        Serialize read-decide-write on one task.

        Holds one of a fixed set of process-local mutexes (picked by task id)
        and locks the row with SELECT ... FOR UPDATE so concurrent requests
        from several processes are serialized by the database as well. The
        caller commits and must not lock another task inside the block.
        """
        lock = self._locks[hash(str(task_id)) % LOCK_STRIPES]
        with lock:
            with self.session() as session:
                statement = select(Task).where(Task.id == task_id).with_for_update()
                task = session.exec(statement).first()
                if task is None:
                    raise TaskNotFound(f"Task {task_id} not found")
                yield session, task

    # ---- workers ----

    def add_worker(
        self,
        name: str,
        role: WorkerRole = WorkerRole.DRIVER,
        work_start: Optional[time] = None,
        work_end: Optional[time] = None,
        active: bool = True,
    ) -> Worker:
        worker = Worker(name=name, role=WorkerRole(role).value, work_start=work_start, work_end=work_end, active=active)
        with self.session() as session:
            session.add(worker)
            session.commit()
            session.refresh(worker)
        return worker

    def get_worker(self, worker_id: int) -> Worker:
        with self.session() as session:
            worker = session.get(Worker, worker_id)
        if worker is None:
            raise WorkerNotFound(f"Worker {worker_id} not found")
        return worker

    def list_workers(self, role: Optional[WorkerRole] = None, active_only: bool = True) -> list[Worker]:
        with self.session() as session:
            statement = select(Worker)
            if role is not None:
                statement = statement.where(Worker.role == WorkerRole(role).value)
            if active_only:
                statement = statement.where(Worker.active == True)  # noqa: E712
            return list(session.exec(statement.order_by(Worker.id)).all())

    def worker_names(self, worker_ids: set[int]) -> dict[int, str]:
        if not worker_ids:
            return {}
        with self.session() as session:
            rows = session.exec(select(Worker).where(Worker.id.in_(list(worker_ids)))).all()  # pyrefly: ignore
        return {w.id: w.name for w in rows}

    def shift_for(self, worker: Optional[Worker]) -> tuple[time, time]:
        """Return the worker's shift window, falling back to the configured default."""
        start = worker.work_start if worker and worker.work_start else parse_hhmm(self.config.default_work_start)
        end = worker.work_end if worker and worker.work_end else parse_hhmm(self.config.default_work_end)
        return start, end

    # ---- tasks ----

    def add_task(self, task: Task) -> Task:
        with self.session() as session:
            session.add(task)
            session.commit()
            session.refresh(task)
        return task

    def get_task(self, task_id: UUID) -> Task:
        with self.session() as session:
            task = session.get(Task, task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task

    def task_for_action(self, client_action_id: Optional[str]) -> Optional[Task]:
        """The task a client action already created, if any."""
        if client_action_id is None:
            return None
        with self.session() as session:
            return session.exec(select(Task).where(Task.client_action_id == client_action_id)).first()

    def next_sort_order(self, session: Session, scheduled_date: date) -> int:
        statement = select(func.max(Task.sort_order)).where(Task.scheduled_date == scheduled_date)
        current = session.exec(statement).first()
        return (current or 0) + 1

    def list_tasks(
        self,
        scheduled_date: Optional[date] = None,
        status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> list[TaskView]:
        """
        List tasks with denormalized participant info.

        Args:
            scheduled_date: Filter by scheduled date
            status: Filter by status ("all" or None for every status)
            user_id: When given, include that user's personal sub-status flags

        Returns:
            Tasks ordered by status, priority, manual sort order and time
        """
        with self.session() as session:
            statement = select(Task)
            if scheduled_date is not None:
                statement = statement.where(Task.scheduled_date == scheduled_date)
            if status and status != "all":
                statement = statement.where(Task.status == status)
            tasks = list(session.exec(statement).all())

            task_ids = [t.id for t in tasks]
            participants = self._participants_by_task(session, task_ids)
            sub_statuses = self._latest_sub_statuses(session, task_ids, user_id) if user_id is not None else {}

        tasks.sort(
            key=lambda t: (
                STATUS_ORDER.get(t.status, 9),
                PRIORITY_ORDER.get(t.priority, 9),
                t.sort_order,
                t.scheduled_time or time.min,
            )
        )

        ids = {w for members in participants.values() for w in members}
        ids |= {t.primary_assignee_id for t in tasks if t.primary_assignee_id}
        ids |= {t.created_by for t in tasks if t.created_by}
        names = self.worker_names(ids)

        views = []
        for task in tasks:
            view = self._to_view(task, participants.get(task.id, []), names)
            if user_id is not None:
                personal = sub_statuses.get((task.id, user_id))
                view.has_completed = personal == SubStatus.COMPLETED
                view.has_paused = personal == SubStatus.PAUSED
            views.append(view)
        return views

    def task_detail(self, task_id: UUID) -> TaskDetail:
        task = self.get_task(task_id)
        with self.session() as session:
            joined = self._participants_by_task(session, [task_id]).get(task_id, [])
        events = self.list_events(task_id)
        ids = set(joined) | {e.actor_id for e in events if e.actor_id}
        ids |= {i for i in (task.primary_assignee_id, task.created_by) if i}
        names = self.worker_names(ids)

        view = self._to_view(task, joined, names)
        detail = TaskDetail(**view.model_dump())
        detail.events = [
            EventView.model_validate(e).model_copy(update={"actor_name": names.get(e.actor_id)})
            for e in reversed(events)
        ]
        return detail

    def _to_view(self, task: Task, joined: list[int], names: dict[int, str]) -> TaskView:
        view = TaskView.model_validate(task)
        view.assigned_name = names.get(task.primary_assignee_id)
        view.creator_name = names.get(task.created_by)
        view.participants = [WorkerRef(id=w, name=names.get(w, "")) for w in joined]
        return view

    def reorder(self, task_ids: list[UUID]) -> None:
        with self.session() as session:
            for position, task_id in enumerate(task_ids, start=1):
                task = session.get(Task, task_id)
                if task is None:
                    raise TaskNotFound(f"Task {task_id} not found")
                task.sort_order = position
                session.add(task)
            session.commit()

    # ---- participants ----

    def _participants_by_task(self, session: Session, task_ids: list[UUID]) -> dict[UUID, list[int]]:
        if not task_ids:
            return {}
        statement = (
            select(TaskParticipant)
            .where(TaskParticipant.task_id.in_(task_ids))  # pyrefly: ignore
            .order_by(TaskParticipant.joined_at, TaskParticipant.id)
        )
        result: dict[UUID, list[int]] = {}
        for row in session.exec(statement).all():
            result.setdefault(row.task_id, []).append(row.worker_id)
        return result

    def joined_worker_ids(self, session: Session, task_id: UUID) -> list[int]:
        return self._participants_by_task(session, [task_id]).get(task_id, [])

    def add_participant(self, session: Session, task_id: UUID, worker_id: int) -> bool:
        """Add ``worker_id`` to the task's participants; False if already present."""
        existing = session.exec(
            select(TaskParticipant)
            .where(TaskParticipant.task_id == task_id)
            .where(TaskParticipant.worker_id == worker_id)
        ).first()
        if existing is not None:
            return False
        session.add(TaskParticipant(task_id=task_id, worker_id=worker_id, joined_at=self.now()))
        return True

    def joined_at(self, worker_id: int, task_ids: list[UUID]) -> dict[UUID, datetime]:
        """When the worker first joined each of the given tasks."""
        if not task_ids:
            return {}
        with self.session() as session:
            rows = session.exec(
                select(TaskParticipant)
                .where(TaskParticipant.worker_id == worker_id)
                .where(TaskParticipant.task_id.in_(task_ids))  # pyrefly: ignore
            ).all()
        return {row.task_id: row.joined_at for row in rows}

    def tasks_touched_by(self, worker_id: int, start: date, end: date) -> list[Task]:
        """Tasks scheduled in ``[start, end]`` that the worker owns or joined."""
        with self.session() as session:
            joined = select(TaskParticipant.task_id).where(TaskParticipant.worker_id == worker_id)
            statement = (
                select(Task)
                .where(Task.scheduled_date >= start)
                .where(Task.scheduled_date <= end)
                .where((Task.primary_assignee_id == worker_id) | (Task.id.in_(joined)))  # pyrefly: ignore
                .order_by(Task.started_at)
            )
            return list(session.exec(statement).all())

    # ---- events ----

    def append_event(self, session: Session, event: TaskEvent) -> TaskEvent:
        session.add(event)
        return event

    def event_for_action(self, client_action_id: Optional[str]) -> Optional[TaskEvent]:
        """The event a client action already appended, if any."""
        if client_action_id is None:
            return None
        with self.session() as session:
            return session.exec(select(TaskEvent).where(TaskEvent.client_action_id == client_action_id)).first()

    def list_events(self, task_id: UUID, kind: Optional[EventKind] = None) -> list[TaskEvent]:
        """Events for a task, oldest first."""
        with self.session() as session:
            statement = select(TaskEvent).where(TaskEvent.task_id == task_id)
            if kind is not None:
                statement = statement.where(TaskEvent.kind == EventKind(kind).value)
            statement = statement.order_by(TaskEvent.occurred_at, TaskEvent.id)
            return list(session.exec(statement).all())

    def events_for_tasks(self, task_ids: list[UUID], kind: Optional[EventKind] = None) -> list[TaskEvent]:
        if not task_ids:
            return []
        with self.session() as session:
            statement = select(TaskEvent).where(TaskEvent.task_id.in_(task_ids))  # pyrefly: ignore
            if kind is not None:
                statement = statement.where(TaskEvent.kind == EventKind(kind).value)
            statement = statement.order_by(TaskEvent.occurred_at, TaskEvent.id)
            return list(session.exec(statement).all())

    def clear_personal_events(self, session: Session, task_id: UUID, actor_id: int) -> None:
        """Drop the actor's personal sub-state events (part done, part paused, joined) for a task.

        Shared session events (started, paused, resumed, ...) stay: work-time
        accounting reads them.
        """
        session.exec(  # pyrefly: ignore
            delete(TaskEvent)
            .where(TaskEvent.task_id == task_id)
            .where(TaskEvent.actor_id == actor_id)
            .where(TaskEvent.kind == EventKind.STATUS_CHANGE.value)
            .where(TaskEvent.transition.in_(sorted(PERSONAL_TRANSITIONS)))  # pyrefly: ignore
        )

    def latest_sub_statuses(self, session: Session, task_id: UUID) -> dict[int, SubStatus]:
        """Personal sub-status per actor, taken from their most recent status_change event."""
        rows = self._latest_sub_statuses(session, [task_id], None)
        return {actor: status for (_, actor), status in rows.items()}

    def _latest_sub_statuses(
        self, session: Session, task_ids: list[UUID], actor_id: Optional[int]
    ) -> dict[tuple[UUID, int], SubStatus]:
        if not task_ids:
            return {}
        statement = (
            select(TaskEvent)
            .where(TaskEvent.task_id.in_(task_ids))  # pyrefly: ignore
            .where(TaskEvent.kind == EventKind.STATUS_CHANGE.value)
            .where(TaskEvent.actor_id.is_not(None))  # pyrefly: ignore
            .where(TaskEvent.sub_status.is_not(None))  # pyrefly: ignore
        )
        if actor_id is not None:
            statement = statement.where(TaskEvent.actor_id == actor_id)
        statement = statement.order_by(TaskEvent.occurred_at, TaskEvent.id)

        latest: dict[tuple[UUID, int], SubStatus] = {}
        for event in session.exec(statement).all():
            latest[(event.task_id, event.actor_id)] = SubStatus(event.sub_status)
        return latest

    def delay_events_by(self, worker_id: int, start: date, end: date) -> list[TaskEvent]:
        """Delay events the worker logged on tasks scheduled in ``[start, end]``."""
        with self.session() as session:
            statement = (
                select(TaskEvent)
                .join(Task, Task.id == TaskEvent.task_id)  # pyrefly: ignore
                .where(TaskEvent.actor_id == worker_id)
                .where(TaskEvent.kind == EventKind.DELAY.value)
                .where(Task.scheduled_date >= start)
                .where(Task.scheduled_date <= end)
                .order_by(TaskEvent.occurred_at)
            )
            return list(session.exec(statement).all())

    # ---- notifications ----

    def list_notifications(self, user_id: int, limit: int = 50) -> tuple[list[Notification], int]:
        """Latest notifications for a user and the user's unread count."""
        with self.session() as session:
            rows = session.exec(
                select(Notification)
                .where(Notification.user_id == user_id)
                .order_by(Notification.created_at.desc(), Notification.id.desc())  # pyrefly: ignore
                .limit(limit)
            ).all()
            unread = session.exec(
                select(func.count())
                .select_from(Notification)
                .where(Notification.user_id == user_id)
                .where(Notification.is_read == False)  # noqa: E712
            ).one()
        return list(rows), unread

    def mark_notification_read(self, notification_id: int) -> None:
        with self.session() as session:
            notification = session.get(Notification, notification_id)
            if notification is not None and not notification.is_read:
                notification.is_read = True
                session.add(notification)
                session.commit()

    def mark_all_notifications_read(self, user_id: int) -> None:
        with self.session() as session:
            for notification in session.exec(
                select(Notification).where(Notification.user_id == user_id).where(Notification.is_read == False)  # noqa: E712
            ).all():
                notification.is_read = True
                session.add(notification)
            session.commit()

    def delete_read_notifications(self, user_id: int) -> None:
        with self.session() as session:
            session.exec(  # pyrefly: ignore
                delete(Notification).where(Notification.user_id == user_id).where(Notification.is_read == True)  # noqa: E712
            )
            session.commit()
