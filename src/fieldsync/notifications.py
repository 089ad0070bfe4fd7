"""Notification fan-out: in-app notification rows plus best-effort push delivery."""

import logging
from typing import Iterable, Optional, Protocol
from uuid import UUID

import httpx

from .config import Config
from .db import Notification, Task
from .states import WorkerRole
from .store import TaskStore

logger = logging.getLogger(__name__)


class PushSender(Protocol):
    def send(self, user_ids: list[int], title: str, message: str, task_id: Optional[UUID] = None) -> None: ...


class OneSignalPushSender:
    """
    Push sender for the OneSignal REST API.

    Delivery is best-effort: missing credentials and request failures are
    logged and never raised to the caller.
    """

    def __init__(self, config: Config, client: Optional[httpx.Client] = None):
        self.config = config
        self._client = client or httpx.Client(timeout=config.push_timeout_seconds)

    def close(self) -> None:
        self._client.close()

    def send(self, user_ids: list[int], title: str, message: str, task_id: Optional[UUID] = None) -> None:
        if not user_ids:
            return
        if not self.config.push_app_id or not self.config.push_api_key:
            logger.warning("Push credentials missing, skipping push delivery")
            return

        payload: dict = {
            "app_id": self.config.push_app_id,
            "include_external_user_ids": [str(uid) for uid in user_ids],
            "headings": {"en": title},
            "contents": {"en": message},
            "data": {"taskId": str(task_id) if task_id else None},
            "priority": 10,
            "ttl": 86400,
        }
        if self.config.public_origin and task_id:
            payload["web_url"] = f"{self.config.public_origin}/?taskId={task_id}"

        try:
            response = self._client.post(
                self.config.push_url,
                json=payload,
                headers={"Authorization": f"Basic {self.config.push_api_key}"},
            )
            body = response.json()
            if response.is_error or body.get("errors"):
                logger.error(f"Push provider rejected notification: {body.get('errors') or response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Push delivery failed: {e}")


class NullPushSender:
    """Push sender that only logs; used when push is not configured and in tests."""

    def __init__(self):
        self.sent: list[tuple[list[int], str, str, Optional[UUID]]] = []

    def send(self, user_ids: list[int], title: str, message: str, task_id: Optional[UUID] = None) -> None:
        self.sent.append((list(user_ids), title, message, task_id))
        logger.debug(f"Push to {user_ids}: {title} - {message}")


class Notifier:
    """Writes notification rows and forwards them to the push sender."""

    def __init__(self, store: TaskStore, push: PushSender):
        self.store = store
        self.push = push

    def notify(
        self,
        user_ids: Iterable[int],
        type_: str,
        title: str,
        message: str,
        task_id: Optional[UUID] = None,
    ) -> list[int]:
        """Notify each distinct user once. Returns the notified user ids."""
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid is not None))
        if not recipients:
            return []

        now = self.store.now()
        with self.store.session() as session:
            for uid in recipients:
                session.add(
                    Notification(
                        user_id=uid,
                        task_id=task_id,
                        type=type_,
                        title=title,
                        message=message,
                        created_at=now,
                    )
                )
            session.commit()

        logger.info(f"Notified users {recipients} ({type_}) about task {task_id}")
        self.push.send(recipients, title, message, task_id)
        return recipients

    def task_watchers(self, task: Task, actor_id: Optional[int], include_assignee: bool = True) -> list[int]:
        """
        Users interested in a change made by ``actor_id``.

        The creator and the primary assignee, never the actor. A task without a
        creator falls back to every active admin.
        """
        recipients: list[int] = []
        if task.created_by is not None:
            if task.created_by != actor_id:
                recipients.append(task.created_by)
        else:
            admins = self.store.list_workers(role=WorkerRole.ADMIN)
            recipients.extend(a.id for a in admins if a.id != actor_id)

        if include_assignee and task.primary_assignee_id is not None and task.primary_assignee_id != actor_id:
            recipients.append(task.primary_assignee_id)
        return list(dict.fromkeys(recipients))
