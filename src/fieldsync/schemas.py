"""Pydantic models for requests, responses and transition outcomes."""

from datetime import date, datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .states import DelayReason, EventKind, Priority, TaskStatus, TaskType


class ApiModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ContainerIn(ApiModel):
    name: str
    department: Optional[str] = None
    worker_id: Optional[int] = None


class TaskCreate(ApiModel):
    description: str = Field(min_length=1)
    scheduled_date: date
    task_type: TaskType = TaskType.TRANSPORT
    priority: Priority = Priority.NORMAL
    scheduled_time: Optional[time] = None
    material: Optional[str] = None
    location_from: Optional[str] = None
    location_to: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[int] = None
    containers: Optional[list[ContainerIn]] = None
    client_action_id: Optional[str] = None


class StatusChange(ApiModel):
    status: TaskStatus
    actor_id: int


class JoinRequest(ApiModel):
    actor_id: int


class ReorderRequest(ApiModel):
    tasks: list[UUID]
    actor_id: int
    reason: Optional[str] = None


class LogCreate(ApiModel):
    actor_id: int
    log_type: EventKind
    message: Optional[str] = None
    delay_reason: Optional[DelayReason] = None
    delay_minutes: Optional[int] = Field(default=None, ge=0)
    client_action_id: Optional[str] = None


class WorkerRef(ApiModel):
    id: int
    name: str


class EventView(ApiModel):
    id: int
    task_id: UUID
    actor_id: Optional[int]
    actor_name: Optional[str] = None
    kind: str
    message: Optional[str]
    delay_reason: Optional[str]
    delay_minutes: Optional[int]
    transition: Optional[str]
    sub_status: Optional[str]
    occurred_at: datetime


class TaskView(ApiModel):
    id: UUID
    task_type: str
    description: str
    material: Optional[str]
    location_from: Optional[str]
    location_to: Optional[str]
    department: Optional[str]
    notes: Optional[str]
    containers: Optional[list[ContainerIn]]
    status: str
    priority: str
    scheduled_date: date
    scheduled_time: Optional[time]
    sort_order: int
    carried_over: bool
    primary_assignee_id: Optional[int]
    assigned_name: Optional[str] = None
    created_by: Optional[int]
    creator_name: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime]
    paused_at: Optional[datetime]
    completed_at: Optional[datetime]
    participants: list[WorkerRef] = []
    has_completed: Optional[bool] = None
    has_paused: Optional[bool] = None


class TaskDetail(TaskView):
    events: list[EventView] = []


class NotificationView(ApiModel):
    id: int
    user_id: int
    task_id: Optional[UUID]
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime


class NotificationList(ApiModel):
    notifications: list[NotificationView]
    unread_count: int


class TransitionResult(ApiModel):
    """Outcome of a status-change request.

    ``noop`` marks an idempotent repeat; ``partial`` marks a personal
    completion/pause on a shared task whose shared status did not move.
    """

    success: bool = True
    partial: bool = False
    noop: bool = False
    status: str
    message: Optional[str] = None
    still_working: list[WorkerRef] = []


class Participants(ApiModel):
    primary: Optional[WorkerRef]
    joined: list[WorkerRef]
