"""Daily rollover: pause work left running at shift end and carry unfinished tasks forward."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlmodel import select

from .db import Task, TaskEvent
from .states import EventKind, TaskStatus, Transition
from .store import TaskStore
from .timeutil import shift_window

logger = logging.getLogger(__name__)


@dataclass
class RolloverResult:
    """What a single rollover pass changed."""

    run_date: date
    paused: list[UUID] = field(default_factory=list)
    migrated: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)


class RolloverJob:
    """
    Scheduled job run near the end of the working day.

    Pauses every task still in progress today, then moves pending and paused
    tasks scheduled up to today onto tomorrow. Runs at most once per date,
    inside the configured local-time window.

    Example:
        job = RolloverJob(store, poll_interval_seconds=300)
        await job.run()
    """

    def __init__(self, store: TaskStore, poll_interval_seconds: float = 300.0):
        """
        Initialize the job.

        Args:
            store: Task store
            poll_interval_seconds: How often to check whether the window opened (seconds)
        """
        self.store = store
        self.poll_interval_seconds = poll_interval_seconds
        self.last_run_date: Optional[date] = None
        self._shutdown: bool = False

    def in_window(self, now: datetime) -> bool:
        config = self.store.config
        return config.rollover_window_start_hour <= now.hour <= config.rollover_window_end_hour

    async def run(self) -> None:
        """Run the job loop (blocks until shutdown)."""
        logger.info(f"Starting RolloverJob, polling every {self.poll_interval_seconds}s")

        try:
            while not self._shutdown:
                now = self.store.now()
                if self.in_window(now) and self.last_run_date != now.date():
                    try:
                        self.run_once(now)
                    except Exception as e:
                        logger.error(f"Rollover failed: {e}", exc_info=True)
                await asyncio.sleep(self.poll_interval_seconds)
        except KeyboardInterrupt:
            logger.info("Received interrupt, shutting down...")
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop the loop after the current pass."""
        self._shutdown = True
        logger.info("RolloverJob shut down")

    def run_once(self, now: Optional[datetime] = None) -> RolloverResult:
        """Run the pause sweep followed by the migration sweep."""
        now = now or self.store.now()
        result = RolloverResult(run_date=now.date())

        logger.info(f"Rollover: running for {result.run_date} at {now}")
        self.pause_in_progress(now, result)
        self.migrate_pending(now.date(), result)
        self.last_run_date = result.run_date

        logger.info(
            f"Rollover: paused {len(result.paused)}, migrated {len(result.migrated)}, failed {len(result.failed)}"
        )
        return result

    def pause_in_progress(self, now: datetime, result: RolloverResult) -> None:
        today = now.date()
        with self.store.session() as session:
            task_ids = session.exec(
                select(Task.id)
                .where(Task.scheduled_date == today)
                .where(Task.status == TaskStatus.IN_PROGRESS.value)
            ).all()

        for task_id in task_ids:
            try:
                if self._pause(task_id, now):
                    result.paused.append(task_id)
            except Exception:
                logger.exception(f"Rollover: could not pause task {task_id}")
                result.failed.append(task_id)

    def _pause(self, task_id: UUID, now: datetime) -> bool:
        with self.store.lock_task(task_id) as (session, task):
            if task.status != TaskStatus.IN_PROGRESS.value:
                return False

            pause_at = min(now, self._shift_end(task, now.date()))
            if task.started_at is not None and task.started_at > pause_at:
                pause_at = task.started_at

            task.status = TaskStatus.PAUSED.value
            task.paused_at = pause_at
            session.add(task)
            self.store.append_event(
                session,
                TaskEvent(
                    task_id=task.id,
                    actor_id=task.primary_assignee_id,
                    kind=EventKind.STATUS_CHANGE.value,
                    transition=Transition.AUTO_PAUSED.value,
                    message=f"Paused automatically at end of day ({pause_at:%H:%M})",
                    occurred_at=pause_at,
                ),
            )
            session.commit()

        logger.info(f"Rollover: paused task {task_id} at {pause_at}")
        return True

    def _shift_end(self, task: Task, day: date) -> datetime:
        worker = self.store.get_worker(task.primary_assignee_id) if task.primary_assignee_id is not None else None
        start, end = self.store.shift_for(worker)
        return shift_window(day, start, end)[1]

    def migrate_pending(self, today: date, result: RolloverResult) -> None:
        tomorrow = today + timedelta(days=1)
        with self.store.session() as session:
            tasks = session.exec(
                select(Task)
                .where(Task.scheduled_date <= today)
                .where(Task.status.in_([TaskStatus.PENDING.value, TaskStatus.PAUSED.value]))  # pyrefly: ignore
                .order_by(Task.scheduled_date)
            ).all()

            for task in tasks:
                try:
                    task.scheduled_date = tomorrow
                    task.carried_over = True
                    task.sort_order = 0
                    session.add(task)
                    session.commit()
                    result.migrated.append(task.id)
                    logger.info(f"Rollover: moved task {task.id} to {tomorrow}")
                except Exception:
                    session.rollback()
                    logger.exception(f"Rollover: could not migrate task {task.id}")
                    result.failed.append(task.id)
