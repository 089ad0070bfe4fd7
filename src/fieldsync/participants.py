"""Participant ledger: who is working a task and how far each of them got."""

import logging
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from .db import Task, TaskEvent, Worker
from .exceptions import AuthorizationError
from .schemas import Participants, WorkerRef
from .states import EventKind, SubStatus, Transition, is_terminal
from .store import TaskStore

logger = logging.getLogger(__name__)


class ParticipantLedger:
    """
    Tracks the primary assignee and joined helpers of each task.

    Joining is idempotent and always yields a fresh, active personal state:
    the actor's earlier status_change events for the task are removed, so a
    helper who finished or paused their part can pick the task up again.
    """

    def __init__(self, store: TaskStore):
        self.store = store

    def join(self, task_id: UUID, actor_id: int) -> bool:
        """
        Join ``actor_id`` to a task.

        Returns:
            True if the actor was added to the participant set, False if they
            were already the primary assignee or a participant, or the task
            is already completed or cancelled.
        """
        actor = self.store.get_worker(actor_id)
        if not actor.active:
            raise AuthorizationError(f"Worker {actor_id} is not active")

        with self.store.lock_task(task_id) as (session, task):
            if is_terminal(task.status):
                logger.info(f"Ignoring join of worker {actor_id}: task {task_id} is {task.status}")
                return False

            added = False
            if task.primary_assignee_id != actor_id:
                added = self.store.add_participant(session, task_id, actor_id)

            self.store.clear_personal_events(session, task_id, actor_id)
            self.store.append_event(
                session,
                TaskEvent(
                    task_id=task_id,
                    actor_id=actor_id,
                    kind=EventKind.STATUS_CHANGE.value,
                    transition=Transition.JOINED.value,
                    sub_status=SubStatus.ACTIVE.value,
                    message=f"{actor.name} joined the task",
                    occurred_at=self.store.now(),
                ),
            )
            session.commit()

        if added:
            logger.info(f"Worker {actor_id} joined task {task_id}")
        else:
            logger.info(f"Worker {actor_id} rejoined task {task_id}")
        return added

    def member_ids(self, session: Session, task: Task) -> list[int]:
        """Primary assignee (if any) followed by joined helpers, without duplicates."""
        members: list[int] = []
        if task.primary_assignee_id is not None:
            members.append(task.primary_assignee_id)
        for worker_id in self.store.joined_worker_ids(session, task.id):
            if worker_id not in members:
                members.append(worker_id)
        return members

    def list_participants(self, task_id: UUID) -> Participants:
        task = self.store.get_task(task_id)
        with self.store.session() as session:
            joined = [w for w in self.store.joined_worker_ids(session, task_id) if w != task.primary_assignee_id]

        ids = set(joined)
        if task.primary_assignee_id is not None:
            ids.add(task.primary_assignee_id)
        names = self.store.worker_names(ids)

        primary: Optional[WorkerRef] = None
        if task.primary_assignee_id is not None:
            primary = WorkerRef(id=task.primary_assignee_id, name=names.get(task.primary_assignee_id, ""))
        return Participants(primary=primary, joined=[WorkerRef(id=w, name=names.get(w, "")) for w in joined])

    def personal_sub_statuses(self, task_id: UUID) -> dict[int, SubStatus]:
        """Sub-status of every participant; participants without status events count as active."""
        task = self.store.get_task(task_id)
        with self.store.session() as session:
            members = self.member_ids(session, task)
            latest = self.store.latest_sub_statuses(session, task_id)
        return {m: latest.get(m, SubStatus.ACTIVE) for m in members}

    def is_member(self, session: Session, task: Task, worker: Worker) -> bool:
        return worker.id in self.member_ids(session, task)
