"""Remote fieldsync API used by the field client."""

import logging
from datetime import date
from typing import Any, Optional

import httpx

from ..api.session import ACTOR_HEADER
from ..config import ClientConfig
from ..exceptions import TaskValidationError, TransientSyncFailure
from . import actions
from .actions import QueuedAction

logger = logging.getLogger(__name__)


class RemoteTaskApi:
    """
    Thin async wrapper over the HTTP API.

    Any network error or non-success response becomes a TransientSyncFailure;
    the action queue decides whether to retry.
    """

    def __init__(self, config: ClientConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout_seconds,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = {ACTOR_HEADER: str(self.config.actor_id)}
        try:
            response = await self._client.request(method, f"/api{path}", headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransientSyncFailure(f"{method} {path} failed: {e}") from e

        if response.is_error:
            try:
                detail = response.json().get("error")
            except ValueError:
                detail = response.text
            raise TransientSyncFailure(f"{method} {path} returned {response.status_code}: {detail}")
        return response.json()

    async def send(self, action: QueuedAction) -> Any:
        """
        Perform the remote call for a queued action.

        Logs and new tasks carry the action id as ``clientActionId`` so a
        resend after a lost response is recognised by the server.
        """
        payload = dict(action.payload)
        name = action.name

        if name == actions.UPDATE_TASK_STATUS:
            task_id = payload.pop("taskId")
            return await self._request("POST", f"/tasks/{task_id}/status", json=payload)
        if name == actions.JOIN_TASK:
            task_id = payload.pop("taskId")
            return await self._request("POST", f"/tasks/{task_id}/join", json=payload)
        if name == actions.CREATE_TASK_LOG:
            task_id = payload.pop("taskId")
            payload["clientActionId"] = action.id
            return await self._request("POST", f"/tasks/{task_id}/logs", json=payload)
        if name == actions.CREATE_TASK:
            payload["clientActionId"] = action.id
            return await self._request("POST", "/tasks", json=payload)
        if name == actions.MARK_NOTIFICATION_READ:
            return await self._request("POST", f"/notifications/{payload['notificationId']}/read")
        if name == actions.DELETE_READ_NOTIFICATIONS:
            return await self._request("POST", f"/notifications/user/{payload['userId']}/delete-read")
        raise TaskValidationError(f"Unknown action '{name}'")

    async def get_tasks(self, day: date, user_id: Optional[int] = None) -> list[dict]:
        params: dict[str, Any] = {"date": day.isoformat()}
        if user_id is not None:
            params["userId"] = user_id
        return await self._request("GET", "/tasks", params=params)
