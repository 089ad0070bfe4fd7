"""SQLModel schema for the task store."""

from datetime import date, datetime, time
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, Field, SQLModel, UniqueConstraint

from ..states import Priority, TaskStatus, TaskType, WorkerRole


class Worker(SQLModel, table=True):
    """Field worker or dispatcher. Managed outside the core; read here for names, roles and shifts."""

    __tablename__ = "workers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    role: str = Field(default=WorkerRole.DRIVER.value, index=True)
    active: bool = Field(default=True)
    work_start: Optional[time] = None
    work_end: Optional[time] = None


class Task(SQLModel, table=True):
    """Task record. ``status`` is a cache of the event log for fast filtering.

    ``client_action_id`` is the id of the queued client action that created
    the task; a resent action finds the existing row instead of inserting.
    """

    __tablename__ = "tasks"

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    task_type: str = Field(default=TaskType.TRANSPORT.value)
    description: str
    material: Optional[str] = None
    location_from: Optional[str] = None
    location_to: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    containers: Optional[list] = Field(default=None, sa_column=Column(JSON))

    status: str = Field(default=TaskStatus.PENDING.value, index=True)
    priority: str = Field(default=Priority.NORMAL.value)
    scheduled_date: date = Field(index=True)
    scheduled_time: Optional[time] = None
    sort_order: int = Field(default=0)
    carried_over: bool = Field(default=False)

    primary_assignee_id: Optional[int] = Field(default=None, foreign_key="workers.id", index=True)
    created_by: Optional[int] = Field(default=None, foreign_key="workers.id")
    client_action_id: Optional[str] = Field(default=None, unique=True)

    created_at: datetime
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TaskParticipant(SQLModel, table=True):
    """Worker who joined a task beyond its primary assignee."""

    __tablename__ = "task_participants"
    __table_args__ = (UniqueConstraint("task_id", "worker_id", name="uq_task_participant"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: UUID = Field(foreign_key="tasks.id", index=True)
    worker_id: int = Field(foreign_key="workers.id", index=True)
    joined_at: datetime


class TaskEvent(SQLModel, table=True):
    """Append-only task log row."""

    __tablename__ = "task_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: UUID = Field(foreign_key="tasks.id", index=True)
    actor_id: Optional[int] = Field(default=None, foreign_key="workers.id", index=True)
    kind: str = Field(index=True)
    message: Optional[str] = None
    delay_reason: Optional[str] = None
    delay_minutes: Optional[int] = None
    transition: Optional[str] = None
    sub_status: Optional[str] = None
    occurred_at: datetime = Field(index=True)
    client_action_id: Optional[str] = Field(default=None, unique=True)


class Notification(SQLModel, table=True):
    """In-app notification produced by task events."""

    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="workers.id", index=True)
    task_id: Optional[UUID] = Field(default=None, foreign_key="tasks.id")
    type: str
    title: str
    message: str
    is_read: bool = Field(default=False)
    created_at: datetime
