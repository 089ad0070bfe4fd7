"""FastAPI application exposing the task lifecycle endpoints."""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, Query, Request

from ..accounting import Report
from ..core import FieldSync
from ..db import Worker
from ..exceptions import AuthorizationError
from ..schemas import (
    EventView,
    JoinRequest,
    LogCreate,
    NotificationList,
    Participants,
    ReorderRequest,
    StatusChange,
    TaskCreate,
    TaskDetail,
    TaskView,
    TransitionResult,
)
from .errors import register_exception_handlers
from .session import HeaderSessionLookup, SessionLookup

logger = logging.getLogger(__name__)


def create_app(fieldsync: FieldSync, session_lookup: Optional[SessionLookup] = None) -> FastAPI:
    """
    Build the HTTP API around a FieldSync instance.

    Args:
        fieldsync: Server facade used by every endpoint
        session_lookup: Resolves the acting worker (defaults to the X-Actor-Id header)

    Example:
        app = create_app(FieldSync.from_config(config))
        uvicorn.run(app, host="0.0.0.0", port=8000)
    """
    lookup = session_lookup or HeaderSessionLookup(fieldsync.store)

    app = FastAPI(
        title="fieldsync API",
        description="Task lifecycle and synchronization for field work",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.fieldsync = fieldsync
    register_exception_handlers(app)

    def current_actor(request: Request) -> Optional[Worker]:
        return lookup.resolve(request)

    def acting_as(actor: Optional[Worker], actor_id: int) -> None:
        """A resolved session may only act for itself."""
        if actor is not None and actor.id != actor_id:
            raise AuthorizationError(f"Session of worker {actor.id} cannot act as worker {actor_id}")

    router = APIRouter(prefix="/api")

    @router.post("/tasks")
    def create_task(data: TaskCreate, actor: Optional[Worker] = Depends(current_actor)):
        """Create a task (dispatcher/admin)."""
        if actor is None:
            raise AuthorizationError("Creating tasks requires a signed-in dispatcher")
        task = fieldsync.create_task(data, created_by=actor.id)
        return {"id": str(task.id), "success": True}

    @router.get("/tasks", response_model=list[TaskView])
    def list_tasks(
        scheduled_date: Optional[date] = Query(None, alias="date"),
        status: Optional[str] = Query(None),
        user_id: Optional[int] = Query(None, alias="userId"),
    ):
        """
        List tasks.

        Query parameters:
        - date: Scheduled date (YYYY-MM-DD)
        - status: Filter by status ("all" for every status)
        - userId: Include that worker's hasCompleted/hasPaused flags
        """
        return fieldsync.list_tasks(scheduled_date, status, user_id)

    @router.post("/tasks/reorder")
    def reorder_tasks(data: ReorderRequest, actor: Optional[Worker] = Depends(current_actor)):
        acting_as(actor, data.actor_id)
        fieldsync.reorder(data.tasks, data.actor_id, data.reason)
        return {"success": True}

    @router.get("/tasks/{task_id}", response_model=TaskDetail)
    def get_task(task_id: UUID):
        return fieldsync.get_task(task_id)

    @router.get("/tasks/{task_id}/participants", response_model=Participants)
    def get_participants(task_id: UUID):
        return fieldsync.participants(task_id)

    @router.post("/tasks/{task_id}/status", response_model=TransitionResult, response_model_exclude_none=True)
    def change_status(task_id: UUID, data: StatusChange, actor: Optional[Worker] = Depends(current_actor)):
        acting_as(actor, data.actor_id)
        return fieldsync.change_status(task_id, data.status.value, data.actor_id)

    @router.post("/tasks/{task_id}/join")
    def join_task(task_id: UUID, data: JoinRequest, actor: Optional[Worker] = Depends(current_actor)):
        acting_as(actor, data.actor_id)
        joined = fieldsync.join(task_id, data.actor_id)
        return {"success": True, "joined": joined}

    @router.get("/tasks/{task_id}/logs", response_model=list[EventView])
    def list_logs(task_id: UUID):
        return fieldsync.list_logs(task_id)

    @router.post("/tasks/{task_id}/logs")
    def create_log(task_id: UUID, data: LogCreate, actor: Optional[Worker] = Depends(current_actor)):
        acting_as(actor, data.actor_id)
        event = fieldsync.add_log(task_id, data)
        return {"success": True, "id": event.id}

    @router.get("/notifications/{user_id}", response_model=NotificationList)
    def list_notifications(user_id: int, limit: int = Query(50, ge=1, le=200)):
        return fieldsync.notifications(user_id, limit)

    @router.post("/notifications/{notification_id}/read")
    def mark_read(notification_id: int):
        fieldsync.mark_notification_read(notification_id)
        return {"success": True}

    @router.post("/notifications/user/{user_id}/read-all")
    def mark_all_read(user_id: int):
        fieldsync.mark_all_notifications_read(user_id)
        return {"success": True}

    @router.api_route("/notifications/user/{user_id}/delete-read", methods=["POST", "DELETE"])
    def delete_read(user_id: int):
        fieldsync.delete_read_notifications(user_id)
        return {"success": True}

    @router.get("/reports", response_model=Report)
    def get_report(period: str = Query("week")):
        """
        Labor report per driver.

        Query parameters:
        - period: today, week, YYYY-MM or YYYY-MM-DD
        """
        return fieldsync.report(period)

    app.include_router(router)
    return app
