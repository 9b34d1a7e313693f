"""Tests for the task state machine."""

import pytest

from tasktree import TaskList
from tasktree.core.events import EventType
from tasktree.core.state import (
    ACTIVE_STATES,
    SETTLED_STATES,
    TRANSITIONS,
    Message,
    RetryInfo,
    TaskState,
    can_transition,
)
from tasktree.core.task import SKIPPED_WITHOUT_TITLE
from tasktree.errors import InvalidTransitionError


def make_task(title="Task"):
    return TaskList([{"title": title, "task": lambda ctx, task: None}]).tasks[0]


class TestTransitions:
    """Tests for the transition table."""

    def test_every_state_has_an_entry(self):
        assert set(TRANSITIONS) == set(TaskState)

    def test_pending_paths(self):
        assert can_transition(TaskState.WAITING, TaskState.PENDING)
        assert can_transition(TaskState.PENDING, TaskState.COMPLETED)
        assert can_transition(TaskState.PENDING, TaskState.SKIPPED)
        assert can_transition(TaskState.PENDING, TaskState.FAILED)
        assert can_transition(TaskState.PENDING, TaskState.RETRYING)

    def test_rollback_paths(self):
        assert can_transition(TaskState.FAILED, TaskState.ROLLING_BACK)
        assert can_transition(TaskState.ROLLING_BACK, TaskState.ROLLED_BACK)
        assert can_transition(TaskState.ROLLING_BACK, TaskState.FAILED)

    def test_final_states(self):
        for state in (TaskState.COMPLETED, TaskState.SKIPPED, TaskState.ROLLED_BACK, TaskState.STOPPED):
            assert not TRANSITIONS[state]

    def test_no_skipping_intermediate_states(self):
        assert not can_transition(TaskState.WAITING, TaskState.COMPLETED)
        assert not can_transition(TaskState.FAILED, TaskState.ROLLED_BACK)
        assert not can_transition(TaskState.PENDING, TaskState.WAITING)

    def test_active_and_settled_are_disjoint(self):
        assert not ACTIVE_STATES & SETTLED_STATES


class TestTask:
    """Tests for Task state changes."""

    def test_initial_state(self):
        task = make_task()
        assert task.state == TaskState.WAITING
        assert task.retry_count == 0
        assert not task.is_active
        assert not task.is_settled

    def test_transition_publishes_event(self):
        task = make_task()
        events = []
        task.bus.subscribe(events.append)

        task.transition(TaskState.PENDING)

        assert len(events) == 1
        assert events[0].type == EventType.STATE
        assert events[0].task_id == task.id
        assert events[0].state == TaskState.PENDING
        assert task.started_at is not None

    def test_invalid_transition_raises(self):
        task = make_task()
        with pytest.raises(InvalidTransitionError):
            task.transition(TaskState.COMPLETED)
        assert task.state == TaskState.WAITING

    def test_settle_records_duration(self):
        task = make_task()
        task.transition(TaskState.PENDING)
        task.settle(TaskState.COMPLETED)
        assert task.message.duration is not None
        assert task.message.duration >= 0

    def test_mark_retrying_counts(self):
        task = make_task()
        task.transition(TaskState.PENDING)
        task.mark_retrying(ValueError("boom"))
        task.mark_retrying(ValueError("again"))

        assert task.is_retrying
        assert task.retry_count == 2
        assert task.message.retry == RetryInfo(count=2, error="again")

    def test_mark_skipped_reason(self):
        task = make_task("Deploy")
        task.transition(TaskState.PENDING)
        task.mark_skipped("not needed")
        assert task.is_skipped
        assert task.message.skip == "not needed"

    def test_mark_skipped_without_reason_uses_title(self):
        task = make_task("Deploy")
        task.transition(TaskState.PENDING)
        task.mark_skipped(True)
        assert task.message.skip == "Deploy"

    def test_mark_skipped_anonymous(self):
        task = make_task(None)
        task.transition(TaskState.PENDING)
        task.mark_skipped(True)
        assert task.message.skip == SKIPPED_WITHOUT_TITLE

    def test_mark_failed_stores_error(self):
        task = make_task()
        task.transition(TaskState.PENDING)
        task.mark_failed(RuntimeError("disk full"))
        assert task.has_failed
        assert task.message.error == "disk full"

    def test_message_snapshot_is_a_copy(self):
        message = Message(output="a")
        snapshot = message.snapshot()
        message.output = "b"
        assert snapshot.output == "a"
