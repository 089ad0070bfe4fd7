"""Time accounting: per-worker labor totals and efficiency rebuilt from the task event log."""

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from .config import Config
from .db import Task, TaskEvent, Worker
from .exceptions import TaskValidationError
from .schemas import ApiModel
from .states import SESSION_CLOSERS, SESSION_OPENERS, EventKind, TaskStatus, TaskType, Transition, WorkerRole
from .store import TaskStore
from .timeutil import clip, minutes, shift_length_minutes, shift_window

logger = logging.getLogger(__name__)

Interval = tuple[datetime, datetime]


class TimelineEntry(ApiModel):
    """One bar of a worker's timeline.

    Single-day reports carry ``work``/``work-live``/``delay`` segments with
    start and end; multi-day reports carry one ``bar`` per day.
    """

    type: str
    minutes: int
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    day: Optional[date] = None
    description: Optional[str] = None
    percent: Optional[int] = None


class WorkerReport(ApiModel):
    id: int
    name: str
    tasks_count: int
    work_minutes: int
    delay_minutes: int
    efficiency: int
    single_day: bool
    timeline: list[TimelineEntry]
    average_minutes: dict[str, int]


class Report(ApiModel):
    period: str
    start: date
    end: date
    single_day: bool
    workers: list[WorkerReport]


@dataclass
class WorkSession:
    start: datetime
    end: datetime
    live: bool = False


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def merge_intervals(intervals: list[Interval]) -> list[Interval]:
    """Sort and merge overlapping or touching intervals."""
    merged: list[Interval] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def total_minutes(intervals: list[Interval]) -> float:
    return sum(minutes(end - start) for start, end in intervals)


def efficiency(net_minutes: float, target_minutes: float) -> int:
    """Percentage of the target reached, capped at 100; 0 when there is no target."""
    if target_minutes <= 0:
        return 0
    return min(100, round_half_up(net_minutes / target_minutes * 100))


def parse_period(period: str, today: date) -> tuple[date, date, bool]:
    """
    Resolve a report period into ``(start, end, single_day)``.

    Accepted values: ``today``, ``week`` (last 7 days), ``YYYY-MM`` and
    ``YYYY-MM-DD``.
    """
    if period == "today":
        return today, today, True
    if period == "week":
        return today - timedelta(days=7), today, False

    try:
        if len(period) == 7:
            first = datetime.strptime(period, "%Y-%m").date()
            last_day = calendar.monthrange(first.year, first.month)[1]
            return first, first.replace(day=last_day), False
        day = datetime.strptime(period, "%Y-%m-%d").date()
        return day, day, True
    except ValueError:
        raise TaskValidationError(f"Invalid report period '{period}'")


def personal_end(events: list[TaskEvent], worker_id: int) -> Optional[datetime]:
    """When the worker finished or paused their own part, if that is their latest status event."""
    own = [e for e in events if e.actor_id == worker_id and e.transition is not None]
    if own and own[-1].transition in (Transition.PART_COMPLETED.value, Transition.PART_PAUSED.value):
        return own[-1].occurred_at
    return None


def work_sessions(
    task: Task,
    events: list[TaskEvent],
    worker_id: int,
    now: datetime,
    joined_at: Optional[datetime] = None,
) -> list[WorkSession]:
    """
    Reconstruct the raw working sessions of ``worker_id`` on ``task``.

    Shared sessions are opened by started/resumed events and closed by
    paused/auto_paused/completed/cancelled events. The worker's own part
    completion or pause caps every session, as does the moment a helper
    joined. Tasks without session events fall back to the task timestamps.

    Args:
        task: The task
        events: The task's status_change events, oldest first
        worker_id: Worker whose time is counted
        now: End of still-open sessions
        joined_at: When a helper joined (None for the primary assignee)
    """
    session_events = [e for e in events if e.transition in SESSION_OPENERS | SESSION_CLOSERS]
    live_end = task.completed_at or now

    raw: list[WorkSession] = []
    if session_events:
        opened: Optional[datetime] = None
        for event in session_events:
            if event.transition in SESSION_OPENERS:
                if opened is None:
                    opened = event.occurred_at
                continue
            if opened is None and not raw and task.started_at is not None:
                opened = task.started_at
            if opened is not None:
                raw.append(WorkSession(opened, event.occurred_at))
                opened = None
        if opened is not None:
            raw.append(WorkSession(opened, live_end, live=task.status == TaskStatus.IN_PROGRESS.value))
    elif task.started_at is not None:
        end = task.completed_at or task.paused_at or now
        raw.append(WorkSession(task.started_at, end, live=task.status == TaskStatus.IN_PROGRESS.value))

    cap = personal_end(events, worker_id)
    sessions = []
    for s in raw:
        start, end, live = s.start, s.end, s.live
        if cap is not None and cap < end:
            end, live = cap, False
        if joined_at is not None and joined_at > start:
            start = joined_at
        if start < end:
            sessions.append(WorkSession(start, end, live))
    return sessions


def clip_to_shifts(
    session: WorkSession,
    shift: tuple,
    first_day: Optional[date] = None,
    last_day: Optional[date] = None,
) -> list[WorkSession]:
    """
    Split a session per calendar day and clip each piece to that day's shift.

    Only days within ``[first_day, last_day]`` produce pieces, so a task
    carried over from an earlier day does not bring that day's work along.
    """
    pieces = []
    day = session.start.date()
    if first_day is not None and day < first_day:
        day = first_day
    last = session.end.date()
    if last_day is not None and last > last_day:
        last = last_day
    while day <= last:
        lower, upper = shift_window(day, shift[0], shift[1])
        clipped = clip(session.start, session.end, lower, upper)
        if clipped:
            pieces.append(WorkSession(clipped[0], clipped[1], session.live))
        day += timedelta(days=1)
    return pieces


class TimeAccountingEngine:
    """
    Computes per-worker labor reports over a period.

    Nothing is stored: every report is derived from the task timestamps and
    the event log, so it can be recomputed at any time.

    Example:
        engine = TimeAccountingEngine(store)
        report = engine.report("2024-05")
    """

    def __init__(self, store: TaskStore):
        self.store = store

    @property
    def config(self) -> Config:
        return self.store.config

    def report(self, period: str, now: Optional[datetime] = None) -> Report:
        now = now or self.store.now()
        start, end, single_day = parse_period(period, now.date())

        workers = []
        for worker in self.store.list_workers(role=WorkerRole.DRIVER):
            workers.append(self.worker_report(worker, start, end, single_day, now))
        workers.sort(key=lambda w: w.efficiency, reverse=True)

        logger.info(f"Report for {period}: {len(workers)} drivers ({start} - {end})")
        return Report(period=period, start=start, end=end, single_day=single_day, workers=workers)

    def worker_report(self, worker: Worker, start: date, end: date, single_day: bool, now: datetime) -> WorkerReport:
        shift = self.store.shift_for(worker)
        tasks = [t for t in self.store.tasks_touched_by(worker.id, start, end) if t.started_at is not None]
        task_ids = [t.id for t in tasks]

        events_by_task: dict = {}
        for event in self.store.events_for_tasks(task_ids, kind=EventKind.STATUS_CHANGE):
            events_by_task.setdefault(event.task_id, []).append(event)
        joined = self.store.joined_at(worker.id, task_ids)

        timeline: list[TimelineEntry] = []
        intervals: list[Interval] = []
        per_day: dict[date, float] = {}
        for task in tasks:
            joined_at = None if task.primary_assignee_id == worker.id else joined.get(task.id)
            for session in work_sessions(task, events_by_task.get(task.id, []), worker.id, now, joined_at):
                for piece in clip_to_shifts(session, shift, start, end):
                    intervals.append((piece.start, piece.end))
                    duration = minutes(piece.end - piece.start)
                    per_day[piece.start.date()] = per_day.get(piece.start.date(), 0) + duration
                    if single_day:
                        timeline.append(
                            TimelineEntry(
                                type="work-live" if piece.live else "work",
                                start=piece.start,
                                end=piece.end,
                                description=task.description,
                                minutes=round_half_up(duration),
                            )
                        )

        delay_total = 0.0
        for event in self.store.delay_events_by(worker.id, start, end):
            if not start <= event.occurred_at.date() <= end:
                continue
            delay_end = event.occurred_at + timedelta(minutes=event.delay_minutes or 0)
            lower, upper = shift_window(event.occurred_at.date(), shift[0], shift[1])
            clipped = clip(event.occurred_at, delay_end, lower, upper)
            if clipped is None:
                continue
            duration = minutes(clipped[1] - clipped[0])
            delay_total += duration
            if single_day:
                timeline.append(
                    TimelineEntry(
                        type="delay",
                        start=clipped[0],
                        end=clipped[1],
                        description=event.delay_reason,
                        minutes=round_half_up(duration),
                    )
                )

        if single_day:
            timeline.sort(key=lambda entry: entry.start)
        else:
            for day in sorted(per_day):
                day_minutes = round_half_up(per_day[day])
                timeline.append(
                    TimelineEntry(
                        type="bar",
                        day=day,
                        minutes=day_minutes,
                        percent=min(100, round_half_up(day_minutes / self.config.standard_day_minutes * 100)),
                    )
                )

        net = max(0.0, total_minutes(merge_intervals(intervals)) - delay_total)
        target = self.target_minutes(shift, single_day, len({t.scheduled_date for t in tasks}))

        return WorkerReport(
            id=worker.id,
            name=worker.name,
            tasks_count=len(tasks),
            work_minutes=round_half_up(net),
            delay_minutes=round_half_up(delay_total),
            efficiency=efficiency(net, target),
            single_day=single_day,
            timeline=timeline,
            average_minutes=average_durations(tasks),
        )

    def target_minutes(self, shift: tuple, single_day: bool, active_days: int) -> int:
        overhead = self.config.daily_overhead_minutes
        if single_day:
            return max(0, shift_length_minutes(shift[0], shift[1]) - overhead)
        return active_days * (self.config.standard_day_minutes - overhead)


def average_durations(tasks: list[Task]) -> dict[str, int]:
    """Mean started->completed minutes of completed tasks, per task type."""
    spans: dict[str, list[float]] = {t.value: [] for t in TaskType}
    for task in tasks:
        if task.status != TaskStatus.COMPLETED.value or task.started_at is None or task.completed_at is None:
            continue
        if task.completed_at > task.started_at:
            spans.setdefault(task.task_type, []).append(minutes(task.completed_at - task.started_at))
    return {kind: round_half_up(sum(values) / len(values)) if values else 0 for kind, values in spans.items()}
