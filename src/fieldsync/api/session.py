"""Resolving the acting worker of an HTTP request."""

from typing import Optional, Protocol

from fastapi import Request

from ..db import Worker
from ..exceptions import AuthorizationError, WorkerNotFound
from ..store import TaskStore

ACTOR_HEADER = "X-Actor-Id"


class SessionLookup(Protocol):
    """Maps a request to the worker making it; None for anonymous requests."""

    def resolve(self, request: Request) -> Optional[Worker]: ...


class HeaderSessionLookup:
    """Trusts the ``X-Actor-Id`` header set by an upstream authenticating proxy."""

    def __init__(self, store: TaskStore):
        self.store = store

    def resolve(self, request: Request) -> Optional[Worker]:
        raw = request.headers.get(ACTOR_HEADER)
        if not raw:
            return None
        try:
            worker = self.store.get_worker(int(raw))
        except (ValueError, WorkerNotFound):
            raise AuthorizationError(f"Unknown actor '{raw}'")
        if not worker.active:
            raise AuthorizationError(f"Worker {worker.id} is not active")
        return worker
