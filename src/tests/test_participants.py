"""Tests for joining tasks and participant sub-states."""

from uuid import uuid4

import pytest

from fieldsync import AuthorizationError, TaskNotFound
from fieldsync.states import EventKind, SubStatus, Transition


class TestJoin:
    """Joining a task."""

    @pytest.mark.unit
    def test_join_adds_participant(self, fieldsync, store, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)

        assert fieldsync.join(task.id, workers.ben.id) is True

        participants = fieldsync.participants(task.id)
        assert participants.primary.id == workers.anna.id
        assert [w.id for w in participants.joined] == [workers.ben.id]
        joined = store.list_events(task.id, kind=EventKind.STATUS_CHANGE)[-1]
        assert joined.transition == Transition.JOINED.value
        assert joined.sub_status == SubStatus.ACTIVE.value

    @pytest.mark.unit
    def test_join_is_idempotent(self, fieldsync, store, workers, make_task):
        """A second join keeps one membership and one joined event."""
        task = make_task(primary_assignee_id=workers.anna.id)

        fieldsync.join(task.id, workers.ben.id)
        assert fieldsync.join(task.id, workers.ben.id) is False

        assert len(fieldsync.participants(task.id).joined) == 1
        joined = [e for e in store.list_events(task.id) if e.transition == Transition.JOINED.value]
        assert len(joined) == 1

    @pytest.mark.unit
    def test_primary_is_not_added_twice(self, fieldsync, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)

        assert fieldsync.join(task.id, workers.anna.id) is False
        assert fieldsync.participants(task.id).joined == []

    @pytest.mark.unit
    def test_join_finished_task_is_ignored(self, fieldsync, store, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)
        fieldsync.change_status(task.id, "in_progress", workers.anna.id)
        fieldsync.change_status(task.id, "completed", workers.anna.id)
        events = len(store.list_events(task.id))

        assert fieldsync.join(task.id, workers.ben.id) is False
        assert len(store.list_events(task.id)) == events

    @pytest.mark.unit
    def test_inactive_worker_cannot_join(self, fieldsync, store, workers, make_task):
        retired = store.add_worker("Retired", active=False)
        task = make_task()

        with pytest.raises(AuthorizationError):
            fieldsync.join(task.id, retired.id)

    @pytest.mark.unit
    def test_join_missing_task(self, fieldsync, workers):
        with pytest.raises(TaskNotFound):
            fieldsync.join(uuid4(), workers.ben.id)


class TestRejoin:
    """Rejoining resets a participant's personal state."""

    @pytest.mark.unit
    def test_rejoin_clears_prior_completion(self, fieldsync, store, workers, make_task):
        task = make_task(primary_assignee_id=workers.anna.id)
        fieldsync.join(task.id, workers.ben.id)
        fieldsync.change_status(task.id, "in_progress", workers.anna.id)
        fieldsync.change_status(task.id, "completed", workers.ben.id)
        assert fieldsync.ledger.personal_sub_statuses(task.id)[workers.ben.id] == SubStatus.COMPLETED

        fieldsync.join(task.id, workers.ben.id)

        assert fieldsync.ledger.personal_sub_statuses(task.id)[workers.ben.id] == SubStatus.ACTIVE
        transitions = [e.transition for e in store.list_events(task.id) if e.actor_id == workers.ben.id]
        assert Transition.PART_COMPLETED.value not in transitions

        again = fieldsync.change_status(task.id, "completed", workers.ben.id)
        assert again.partial and not again.noop

    @pytest.mark.unit
    def test_rejoin_keeps_shared_session_events(self, fieldsync, store, workers, make_task):
        """Started/paused events stay for work-time accounting."""
        task = make_task()
        fieldsync.change_status(task.id, "in_progress", workers.anna.id)
        fieldsync.change_status(task.id, "paused", workers.anna.id)

        fieldsync.join(task.id, workers.anna.id)

        transitions = [e.transition for e in store.list_events(task.id)]
        assert transitions[:2] == [Transition.STARTED.value, Transition.PAUSED.value]
