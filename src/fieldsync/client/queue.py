"""Durable offline action queue with single-flight draining."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..exceptions import SyncFailure, TaskValidationError, TransientSyncFailure
from .actions import ACTION_NAMES, REQUIRED_KEYS, OptimisticChange, QueuedAction
from .storage import JsonFileStore

logger = logging.getLogger(__name__)

ActionSender = Callable[[QueuedAction], Awaitable[Any]]
SyncFailureHandler = Callable[[SyncFailure, QueuedAction, Optional[OptimisticChange]], None]


class ActionQueue:
    """
    Ordered list of mutating operations that survives restarts.

    Every mutation of the queue is flushed to storage before the call that
    caused it returns. Draining walks a snapshot in FIFO order and stops at
    the first failure, so later actions never overtake an earlier one.

    Example:
        queue = ActionQueue(JsonFileStore("queue.json"), api.send)
        await queue.start()
        queue.enqueue("update_task_status", {"taskId": tid, "status": "paused", "actorId": 7},
                      apply=lambda: cache.update_task(day, tid, status="paused"))
    """

    def __init__(
        self,
        storage: JsonFileStore,
        sender: ActionSender,
        max_attempts: int = 3,
        drain_interval_seconds: float = 30.0,
        on_sync_failure: Optional[SyncFailureHandler] = None,
        auto_drain: bool = True,
    ):
        """
        Initialize the queue and load persisted actions.

        Args:
            storage: Where the queue is persisted
            sender: Coroutine performing the remote call; raises TransientSyncFailure on failure.
                Any other exception it raises also counts as a failed attempt.
            max_attempts: Attempts before an action is dropped
            drain_interval_seconds: Period of the background drain loop (seconds)
            on_sync_failure: Called with each dropped action and its optimistic change
            auto_drain: Start a drain right after enqueue when an event loop is running
        """
        self.storage = storage
        self.sender = sender
        self.max_attempts = max_attempts
        self.drain_interval_seconds = drain_interval_seconds
        self.on_sync_failure = on_sync_failure
        self.auto_drain = auto_drain
        self.online = True

        self._actions: list[QueuedAction] = []
        self._changes: dict[str, OptimisticChange] = {}
        self._draining = False
        self._stop: Optional[asyncio.Event] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._drains: set[asyncio.Task] = set()

        self.load()

    @property
    def pending(self) -> list[QueuedAction]:
        return list(self._actions)

    @property
    def draining(self) -> bool:
        return self._draining

    def load(self) -> None:
        raw = self.storage.load(default=[])
        self._actions = [QueuedAction.model_validate(item) for item in raw]
        if self._actions:
            logger.info(f"Loaded {len(self._actions)} pending actions from {self.storage.path}")

    def _persist(self) -> None:
        self.storage.save([a.model_dump(mode="json") for a in self._actions])

    def enqueue(
        self,
        name: str,
        payload: dict[str, Any],
        apply: Optional[Callable[[], Any]] = None,
        revert: Optional[Callable[[], Any]] = None,
    ) -> str:
        """
        Apply the local effect, persist the action and trigger a drain.

        Returns:
            The client-generated action id
        """
        if name not in ACTION_NAMES:
            raise TaskValidationError(f"Unknown action '{name}'")
        missing = [key for key in REQUIRED_KEYS[name] if key not in payload]
        if missing:
            raise TaskValidationError(f"Action '{name}' is missing {', '.join(missing)}")

        change = OptimisticChange(apply=apply or (lambda: None), revert=revert)
        change.apply()

        action = QueuedAction(name=name, payload=payload)
        self._actions.append(action)
        self._changes[action.id] = change
        self._persist()
        logger.debug(f"Queued {name} ({action.id}), {len(self._actions)} pending")

        if self.auto_drain:
            self._schedule_drain()
        return action.id

    def _schedule_drain(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.drain())
        self._drains.add(task)
        task.add_done_callback(self._drains.discard)

    def set_online(self, online: bool) -> None:
        self.online = online
        if online:
            self._schedule_drain()

    def notify_online(self) -> None:
        """Connectivity came back: drain right away."""
        logger.info("Back online, draining action queue")
        self.set_online(True)

    async def drain(self) -> int:
        """
        Send pending actions in order. No-op while offline or already draining.

        Returns:
            Number of actions confirmed by the server in this pass
        """
        if self._draining or not self.online or not self._actions:
            return 0

        self._draining = True
        synced = 0
        try:
            for action in list(self._actions):
                try:
                    await self.sender(action)
                except Exception as e:
                    action.attempt_count += 1
                    if isinstance(e, TransientSyncFailure):
                        logger.warning(
                            f"Action {action.name} ({action.id}) failed, attempt {action.attempt_count}/{self.max_attempts}: {e}"
                        )
                    else:
                        logger.error(
                            f"Action {action.name} ({action.id}) could not be sent, attempt {action.attempt_count}/{self.max_attempts}: {e!r}",
                            exc_info=True,
                        )
                    if action.attempt_count >= self.max_attempts:
                        self._drop(action)
                    else:
                        self._persist()
                    break

                self._actions.remove(action)
                self._changes.pop(action.id, None)
                self._persist()
                synced += 1
        finally:
            self._draining = False

        if synced:
            logger.info(f"Synced {synced} actions, {len(self._actions)} pending")
        return synced

    def _drop(self, action: QueuedAction) -> None:
        self._actions.remove(action)
        change = self._changes.pop(action.id, None)
        self._persist()

        failure = SyncFailure(action.id, action.name, action.attempt_count)
        logger.error(str(failure))
        if self.on_sync_failure is not None:
            self.on_sync_failure(failure, action, change)

    async def start(self) -> None:
        """Start the periodic drain loop."""
        if self._loop_task is not None:
            return
        self._stop = asyncio.Event()
        self._loop_task = asyncio.create_task(self._interval_loop())
        self._schedule_drain()

    async def _interval_loop(self) -> None:
        assert self._stop is not None
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.drain_interval_seconds)
            except asyncio.TimeoutError:
                await self.drain()

    async def stop(self) -> None:
        """Stop the loop; drains already in flight run to completion."""
        if self._stop is not None:
            self._stop.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._drains:
            await asyncio.gather(*list(self._drains))
