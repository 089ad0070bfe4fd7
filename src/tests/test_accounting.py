"""Tests for work-time accounting."""

from datetime import date, datetime, time, timedelta

import pytest

from fieldsync import TaskValidationError
from fieldsync.accounting import (
    WorkSession,
    clip_to_shifts,
    efficiency,
    merge_intervals,
    parse_period,
    total_minutes,
    work_sessions,
)
from fieldsync.db import Task, TaskEvent
from fieldsync.states import EventKind, TaskStatus, Transition

DAY = date(2024, 5, 6)
SHIFT = (time(7, 0), time(15, 0))


def at(hhmm: str, day: date = DAY) -> datetime:
    hours, minutes = hhmm.split(":")
    return datetime.combine(day, time(int(hours), int(minutes)))


def status_event(task: Task, transition: Transition, when: datetime, actor_id=None) -> TaskEvent:
    return TaskEvent(
        task_id=task.id,
        actor_id=actor_id,
        kind=EventKind.STATUS_CHANGE.value,
        transition=transition.value,
        occurred_at=when,
    )


def add_events(store, *events: TaskEvent) -> None:
    with store.session() as session:
        for event in events:
            session.add(event)
        session.commit()


class TestIntervals:
    """Merging and clipping."""

    @pytest.mark.unit
    def test_overlapping_intervals_merge(self):
        merged = merge_intervals([(at("09:00"), at("10:30")), (at("10:00"), at("11:00"))])

        assert merged == [(at("09:00"), at("11:00"))]
        assert total_minutes(merged) == 120

    @pytest.mark.unit
    def test_touching_intervals_merge(self):
        merged = merge_intervals([(at("11:00"), at("12:00")), (at("09:00"), at("11:00"))])

        assert merged == [(at("09:00"), at("12:00"))]

    @pytest.mark.unit
    def test_disjoint_intervals_kept(self):
        merged = merge_intervals([(at("13:00"), at("14:00")), (at("09:00"), at("10:00"))])

        assert total_minutes(merged) == 120
        assert len(merged) == 2

    @pytest.mark.unit
    def test_clip_to_shift(self):
        """Only the part inside 07:00-15:00 counts."""
        pieces = clip_to_shifts(WorkSession(at("14:50"), at("16:20")), SHIFT)

        assert total_minutes([(p.start, p.end) for p in pieces]) == 10

    @pytest.mark.unit
    def test_session_over_midnight_is_split_per_day(self):
        session = WorkSession(at("14:00"), at("08:00", DAY + timedelta(days=1)))

        pieces = clip_to_shifts(session, SHIFT)

        assert [(p.start, p.end) for p in pieces] == [
            (at("14:00"), at("15:00")),
            (at("07:00", DAY + timedelta(days=1)), at("08:00", DAY + timedelta(days=1))),
        ]

    @pytest.mark.unit
    def test_session_outside_shift_is_dropped(self):
        assert clip_to_shifts(WorkSession(at("16:00"), at("17:00")), SHIFT) == []

    @pytest.mark.unit
    def test_days_outside_period_are_dropped(self):
        session = WorkSession(at("14:00", DAY - timedelta(days=1)), at("08:00"))

        pieces = clip_to_shifts(session, SHIFT, DAY, DAY)

        assert [(p.start, p.end) for p in pieces] == [(at("07:00"), at("08:00"))]


class TestEfficiency:
    @pytest.mark.unit
    def test_zero_target(self):
        assert efficiency(300, 0) == 0

    @pytest.mark.unit
    def test_capped_at_hundred(self):
        assert efficiency(600, 460) == 100

    @pytest.mark.unit
    def test_rounds_half_up(self):
        assert efficiency(1, 200) == 1
        assert efficiency(230, 460) == 50


class TestPeriod:
    @pytest.mark.unit
    def test_today(self):
        assert parse_period("today", DAY) == (DAY, DAY, True)

    @pytest.mark.unit
    def test_week(self):
        assert parse_period("week", DAY) == (DAY - timedelta(days=7), DAY, False)

    @pytest.mark.unit
    def test_month(self):
        assert parse_period("2024-02", DAY) == (date(2024, 2, 1), date(2024, 2, 29), False)

    @pytest.mark.unit
    def test_single_day(self):
        assert parse_period("2024-05-01", DAY) == (date(2024, 5, 1), date(2024, 5, 1), True)

    @pytest.mark.unit
    def test_invalid(self):
        with pytest.raises(TaskValidationError):
            parse_period("yesterday", DAY)


class TestWorkSessions:
    """Session reconstruction from the event log."""

    def task(self, **fields) -> Task:
        values = {"description": "t", "scheduled_date": DAY, "created_at": at("06:00")}
        values.update(fields)
        return Task(**values)

    @pytest.mark.unit
    def test_sessions_from_events(self):
        task = self.task(status=TaskStatus.COMPLETED.value, started_at=at("08:00"), completed_at=at("12:00"))
        events = [
            status_event(task, Transition.STARTED, at("08:00")),
            status_event(task, Transition.PAUSED, at("10:00")),
            status_event(task, Transition.RESUMED, at("11:00")),
            status_event(task, Transition.COMPLETED, at("12:00")),
        ]

        sessions = work_sessions(task, events, worker_id=1, now=at("16:00"))

        assert [(s.start, s.end) for s in sessions] == [(at("08:00"), at("10:00")), (at("11:00"), at("12:00"))]

    @pytest.mark.unit
    def test_open_session_ends_now_and_is_live(self):
        task = self.task(status=TaskStatus.IN_PROGRESS.value, started_at=at("08:00"))
        events = [status_event(task, Transition.STARTED, at("08:00"))]

        [session] = work_sessions(task, events, worker_id=1, now=at("09:30"))

        assert session.end == at("09:30")
        assert session.live

    @pytest.mark.unit
    def test_personal_completion_caps_sessions(self):
        task = self.task(status=TaskStatus.IN_PROGRESS.value, started_at=at("08:00"))
        events = [
            status_event(task, Transition.STARTED, at("08:00"), actor_id=1),
            status_event(task, Transition.PART_COMPLETED, at("09:15"), actor_id=2),
        ]

        [session] = work_sessions(task, events, worker_id=2, now=at("12:00"))

        assert (session.start, session.end) == (at("08:00"), at("09:15"))
        assert not session.live

    @pytest.mark.unit
    def test_helper_counted_from_join(self):
        task = self.task(status=TaskStatus.COMPLETED.value, started_at=at("08:00"), completed_at=at("12:00"))
        events = [
            status_event(task, Transition.STARTED, at("08:00")),
            status_event(task, Transition.COMPLETED, at("12:00")),
        ]

        [session] = work_sessions(task, events, worker_id=2, now=at("16:00"), joined_at=at("10:00"))

        assert (session.start, session.end) == (at("10:00"), at("12:00"))

    @pytest.mark.unit
    def test_timestamps_fallback_without_events(self):
        task = self.task(status=TaskStatus.PAUSED.value, started_at=at("08:00"), paused_at=at("09:00"))

        [session] = work_sessions(task, [], worker_id=1, now=at("16:00"))

        assert (session.start, session.end) == (at("08:00"), at("09:00"))


class TestReport:
    """End-to-end report over stored tasks and events."""

    @pytest.fixture
    def worked_day(self, store, workers, make_task):
        first = make_task(
            scheduled_date=DAY,
            primary_assignee_id=workers.anna.id,
            status=TaskStatus.COMPLETED.value,
            started_at=at("09:00"),
            completed_at=at("10:30"),
        )
        second = make_task(
            scheduled_date=DAY,
            primary_assignee_id=workers.anna.id,
            status=TaskStatus.COMPLETED.value,
            started_at=at("10:00"),
            completed_at=at("11:00"),
        )
        add_events(
            store,
            status_event(first, Transition.STARTED, at("09:00"), workers.anna.id),
            status_event(first, Transition.COMPLETED, at("10:30"), workers.anna.id),
            status_event(second, Transition.STARTED, at("10:00"), workers.anna.id),
            status_event(second, Transition.COMPLETED, at("11:00"), workers.anna.id),
            TaskEvent(
                task_id=second.id,
                actor_id=workers.anna.id,
                kind=EventKind.DELAY.value,
                delay_reason="waiting",
                delay_minutes=15,
                occurred_at=at("10:00"),
            ),
        )
        return first, second

    @pytest.mark.unit
    def test_single_day_report(self, fieldsync, workers, worked_day):
        report = fieldsync.report(DAY.isoformat(), now=at("16:00"))

        assert report.single_day
        assert [w.name for w in report.workers][0] == "Anna"
        assert {w.name for w in report.workers} == {"Anna", "Ben", "Cara"}

        anna = report.workers[0]
        assert anna.tasks_count == 2
        assert anna.delay_minutes == 15
        assert anna.work_minutes == 105
        assert anna.efficiency == 23
        assert anna.average_minutes["transport"] == 75
        assert [e.type for e in anna.timeline] == ["work", "work", "delay"]

        ben = next(w for w in report.workers if w.name == "Ben")
        assert ben.efficiency == 0
        assert ben.tasks_count == 0

    @pytest.mark.unit
    def test_month_report_uses_daily_bars(self, fieldsync, workers, worked_day):
        report = fieldsync.report("2024-05", now=at("16:00"))

        anna = next(w for w in report.workers if w.name == "Anna")
        assert not anna.single_day
        [bar] = anna.timeline
        assert bar.type == "bar"
        assert bar.day == DAY
        assert bar.minutes == 150
        assert anna.efficiency == 23

    @pytest.mark.unit
    def test_unstarted_tasks_ignored(self, fieldsync, workers, make_task):
        make_task(scheduled_date=DAY, primary_assignee_id=workers.anna.id)

        report = fieldsync.report(DAY.isoformat(), now=at("16:00"))

        anna = next(w for w in report.workers if w.name == "Anna")
        assert anna.tasks_count == 0
        assert anna.work_minutes == 0

    @pytest.mark.unit
    def test_carried_over_task_counts_only_the_report_day(self, fieldsync, store, workers, make_task):
        """Yesterday's session on a task moved to today stays out of today's report."""
        yesterday = DAY - timedelta(days=1)
        task = make_task(
            scheduled_date=DAY,
            carried_over=True,
            primary_assignee_id=workers.anna.id,
            status=TaskStatus.COMPLETED.value,
            started_at=at("08:00", yesterday),
            completed_at=at("09:00"),
        )
        add_events(
            store,
            status_event(task, Transition.STARTED, at("08:00", yesterday), workers.anna.id),
            status_event(task, Transition.AUTO_PAUSED, at("15:00", yesterday), workers.anna.id),
            status_event(task, Transition.RESUMED, at("08:00"), workers.anna.id),
            status_event(task, Transition.COMPLETED, at("09:00"), workers.anna.id),
        )

        report = fieldsync.report(DAY.isoformat(), now=at("16:00"))

        anna = next(w for w in report.workers if w.name == "Anna")
        assert anna.work_minutes == 60
        assert [(e.start, e.end) for e in anna.timeline] == [(at("08:00"), at("09:00"))]
        assert anna.efficiency == 13
