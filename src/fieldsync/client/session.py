"""Field client: the worker-side session owning cache, queue and remote API."""

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Optional
from uuid import UUID

from ..config import ClientConfig
from ..exceptions import SyncFailure, TransientSyncFailure
from ..states import TaskStatus
from . import actions
from .actions import OptimisticChange, QueuedAction
from .api import RemoteTaskApi
from .cache import TaskCache
from .queue import ActionQueue
from .storage import JsonFileStore

logger = logging.getLogger(__name__)


class FieldClient:
    """
    Offline-tolerant worker session.

    Every mutation updates the cached task list immediately and is queued for
    the server; the queue drains in the background. A dropped action is
    recorded in ``sync_errors`` and its local effect is left in the cache
    until the next refresh, unless the client was built with
    ``revert_on_failure=True``.

    Example:
        async with FieldClient(ClientConfig(base_url="https://fs.example.com", actor_id=7)) as client:
            tasks = await client.refresh(date.today())
            client.start(date.today(), tasks[0]["id"])
    """

    def __init__(
        self,
        config: ClientConfig,
        api: Optional[RemoteTaskApi] = None,
        auto_drain: bool = True,
        revert_on_failure: bool = False,
    ):
        self.config = config
        self.revert_on_failure = revert_on_failure
        self.api = api or RemoteTaskApi(config)
        self.cache = TaskCache(JsonFileStore(config.cache_path))
        self.queue = ActionQueue(
            JsonFileStore(config.queue_path),
            self.api.send,
            max_attempts=config.max_attempts,
            drain_interval_seconds=config.drain_interval_seconds,
            on_sync_failure=self._on_sync_failure,
            auto_drain=auto_drain,
        )
        self.sync_errors: list[SyncFailure] = []

    async def open(self) -> None:
        await self.queue.start()
        logger.info(f"Field client for worker {self.config.actor_id} opened, {len(self.queue.pending)} pending")

    async def close(self) -> None:
        await self.queue.stop()
        await self.api.close()

    async def __aenter__(self) -> "FieldClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _on_sync_failure(self, failure: SyncFailure, action: QueuedAction, change: Optional[OptimisticChange]) -> None:
        self.sync_errors.append(failure)
        if self.revert_on_failure and change is not None and change.revert is not None:
            change.revert()
            logger.info(f"Reverted local effect of {action.name} ({action.id})")

    # ---- task actions ----

    def _patch(self, day: date, task_id: str, **fields: Any) -> tuple:
        previous: dict = {}

        def apply() -> None:
            previous.update(self.cache.update_task(day, task_id, **fields) or {})

        def revert() -> None:
            if previous:
                self.cache.update_task(day, task_id, **previous)

        return apply, revert

    def _change_status(self, day: date, task_id: UUID | str, status: TaskStatus, **fields: Any) -> str:
        apply, revert = self._patch(day, str(task_id), status=status.value, **fields)
        return self.queue.enqueue(
            actions.UPDATE_TASK_STATUS,
            {"taskId": str(task_id), "status": status.value, "actorId": self.config.actor_id},
            apply=apply,
            revert=revert,
        )

    def start(self, day: date, task_id: UUID | str) -> str:
        return self._change_status(day, task_id, TaskStatus.IN_PROGRESS)

    def resume(self, day: date, task_id: UUID | str) -> str:
        return self._change_status(day, task_id, TaskStatus.IN_PROGRESS, hasPaused=False)

    def pause(self, day: date, task_id: UUID | str) -> str:
        return self._change_status(day, task_id, TaskStatus.PAUSED, hasPaused=True)

    def complete(self, day: date, task_id: UUID | str) -> str:
        return self._change_status(day, task_id, TaskStatus.COMPLETED, hasCompleted=True)

    def join(self, day: date, task_id: UUID | str) -> str:
        apply, revert = self._patch(day, str(task_id), hasCompleted=False, hasPaused=False)
        return self.queue.enqueue(
            actions.JOIN_TASK,
            {"taskId": str(task_id), "actorId": self.config.actor_id},
            apply=apply,
            revert=revert,
        )

    def add_log(
        self,
        task_id: UUID | str,
        log_type: str,
        message: Optional[str] = None,
        delay_reason: Optional[str] = None,
        delay_minutes: Optional[int] = None,
    ) -> str:
        payload: dict[str, Any] = {"taskId": str(task_id), "actorId": self.config.actor_id, "logType": log_type}
        if message is not None:
            payload["message"] = message
        if delay_reason is not None:
            payload["delayReason"] = delay_reason
        if delay_minutes is not None:
            payload["delayMinutes"] = delay_minutes
        return self.queue.enqueue(actions.CREATE_TASK_LOG, payload)

    def mark_notification_read(self, notification_id: int) -> str:
        return self.queue.enqueue(actions.MARK_NOTIFICATION_READ, {"notificationId": notification_id})

    def delete_read_notifications(self) -> str:
        return self.queue.enqueue(actions.DELETE_READ_NOTIFICATIONS, {"userId": self.config.actor_id})

    # ---- reads ----

    def tasks_for(self, day: date) -> list[dict]:
        """Cached tasks for a date, possibly stale."""
        return self.cache.get(day) or []

    async def refresh(self, day: date) -> list[dict]:
        """
        Fetch a date from the server and replace the cached entry.

        Falls back to the cached list when the server cannot be reached.
        """
        try:
            tasks = await self.api.get_tasks(day, self.config.actor_id)
        except TransientSyncFailure as e:
            logger.warning(f"Refresh of {day} failed, serving cached tasks: {e}")
            return self.tasks_for(day)

        if self.cache.replace(day, tasks):
            logger.debug(f"Tasks for {day} changed on the server")
        return tasks

    async def prefetch_neighbours(self, day: date) -> None:
        """Warm the cache for the day before and after ``day``."""
        await asyncio.gather(self.refresh(day - timedelta(days=1)), self.refresh(day + timedelta(days=1)))
