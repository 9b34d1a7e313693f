"""Task declarations, runtime task nodes and normalized task results."""

import time
import uuid
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

from ..errors import InvalidTransitionError, ValidationError
from .events import EventType, TaskEvent
from .options import TaskRendererOptions
from .state import (
    ACTIVE_STATES,
    SETTLED_STATES,
    Message,
    RetryInfo,
    TaskState,
    can_transition,
)

if TYPE_CHECKING:
    from ..executor.engine import TaskList
    from .events import EventBus

SKIPPED_WITHOUT_TITLE = "Skipped task without a title."


@dataclass
class TaskDefinition:
    """Declaration of a single task."""

    task: Callable[..., Any]
    """Task function called as ``task(ctx, wrapper)``"""

    title: Optional[str] = None
    """Display title; tasks without one are anonymous"""

    rollback: Optional[Callable[..., Any]] = None
    """Called as ``rollback(ctx, wrapper)`` once the task has finally failed"""

    retry: int = 0
    """Number of extra attempts after a failure"""

    skip: Union[bool, str, Callable[..., Any], None] = None
    """Evaluated before every attempt; truthy skips, a string is the reason"""

    enabled: Union[bool, Callable[..., Any]] = True
    """Evaluated once before the list starts; falsy removes the task"""

    options: Union[TaskRendererOptions, Mapping[str, Any], None] = None
    """Per-task renderer options"""

    exit_on_error: Union[bool, Callable[..., Any], None] = None
    """Overrides the list's exit_on_error for this task"""

    @classmethod
    def from_value(cls, value: Union["TaskDefinition", Mapping[str, Any]]) -> "TaskDefinition":
        """Build a definition from an instance or a keyword mapping.

        Raises:
            ValidationError: If the value is not a definition or has unknown keys
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError(f"Task definition must be a mapping or TaskDefinition, got {type(value).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(value) - known)
        if unknown:
            raise ValidationError(f"Unknown task definition key(s): {', '.join(unknown)}")
        if "task" not in value:
            raise ValidationError(f"Task definition {value.get('title')!r} has no task function")
        return cls(**value)

    def validate(self) -> None:
        """Check the definition is well formed.

        Raises:
            ValidationError: On the first problem found
        """
        label = self.title or "<anonymous>"
        if not callable(self.task):
            raise ValidationError(f"Task {label}: task must be callable")
        if self.rollback is not None and not callable(self.rollback):
            raise ValidationError(f"Task {label}: rollback must be callable")
        if isinstance(self.retry, bool) or not isinstance(self.retry, int) or self.retry < 0:
            raise ValidationError(f"Task {label}: retry must be an integer >= 0, got {self.retry!r}")
        if self.title is not None and not isinstance(self.title, str):
            raise ValidationError(f"Task {label}: title must be a string")


class Task:
    """Runtime node of the task tree.

    The scheduler is the only writer; renderers read it concurrently. Every
    mutation publishes an event on the run's bus.
    """

    def __init__(self, definition: TaskDefinition, owner: "TaskList"):
        self.id = uuid.uuid4().hex
        self.definition = definition
        self.owner = owner
        self.title: Optional[str] = definition.title
        self.state = TaskState.WAITING
        self.message = Message()
        self.renderer_options = TaskRendererOptions.from_value(definition.options)
        self.retry_count = 0
        self.enabled = True
        self.enabled_evaluated = False
        self.prompt_active = False
        self.skip_requested: Union[str, bool, None] = None
        self.result: Any = None
        self.started_at: Optional[float] = None
        self.subtask_lists: list["TaskList"] = []

    def __repr__(self) -> str:
        return f"Task(title={self.title!r}, state={self.state.value})"

    @property
    def bus(self) -> "EventBus":
        return self.owner.bus

    # =========================================================================
    # Read API (renderers)
    # =========================================================================

    @property
    def subtasks(self) -> list["Task"]:
        """All subtasks, in the order their lists were attached."""
        result: list[Task] = []
        for task_list in self.subtask_lists:
            result.extend(task_list.tasks)
        return result

    @property
    def output(self) -> Optional[str]:
        return self.message.output

    @property
    def has_title(self) -> bool:
        return bool(self.title)

    @property
    def has_subtasks(self) -> bool:
        return any(task_list.tasks for task_list in self.subtask_lists)

    @property
    def is_pending(self) -> bool:
        return self.state == TaskState.PENDING

    @property
    def is_completed(self) -> bool:
        return self.state == TaskState.COMPLETED

    @property
    def has_failed(self) -> bool:
        return self.state == TaskState.FAILED

    @property
    def is_skipped(self) -> bool:
        return self.state == TaskState.SKIPPED

    @property
    def is_retrying(self) -> bool:
        return self.state == TaskState.RETRYING

    @property
    def is_rolling_back(self) -> bool:
        return self.state == TaskState.ROLLING_BACK

    @property
    def has_rolled_back(self) -> bool:
        return self.state == TaskState.ROLLED_BACK

    @property
    def is_stopped(self) -> bool:
        return self.state == TaskState.STOPPED

    @property
    def is_active(self) -> bool:
        """True while the task function or its rollback is running."""
        return self.state in ACTIVE_STATES

    @property
    def is_settled(self) -> bool:
        return self.state in SETTLED_STATES

    @property
    def is_prompt(self) -> bool:
        return self.prompt_active

    # =========================================================================
    # Write API (scheduler and wrapper)
    # =========================================================================

    def _publish(self, event_type: EventType, data: Any = None) -> None:
        self.bus.publish(
            TaskEvent(
                type=event_type,
                task_id=self.id,
                state=self.state,
                message=self.message.snapshot(),
                data=data,
            )
        )

    def transition(self, state: TaskState) -> None:
        """Move the task to ``state`` and publish a STATE event.

        Raises:
            InvalidTransitionError: If the state machine does not allow the move
        """
        if not can_transition(self.state, state):
            raise InvalidTransitionError(
                f"Task {self.title or self.id}: cannot go from {self.state.value} to {state.value}"
            )
        if state == TaskState.PENDING:
            self.started_at = time.monotonic()
        self.state = state
        self._publish(EventType.STATE, state)

    def settle(self, state: TaskState) -> None:
        """Record the elapsed time, then transition to a settled state."""
        if self.started_at is not None:
            self.message.duration = time.monotonic() - self.started_at
        self.transition(state)

    def mark_skipped(self, reason: Union[str, bool]) -> None:
        if isinstance(reason, str) and reason:
            self.message.skip = reason
        elif self.has_title:
            self.message.skip = self.title
        else:
            self.message.skip = SKIPPED_WITHOUT_TITLE
        self.settle(TaskState.SKIPPED)

    def mark_retrying(self, error: BaseException) -> None:
        self.retry_count += 1
        self.message.retry = RetryInfo(count=self.retry_count, error=str(error))
        self.transition(TaskState.RETRYING)

    def mark_failed(self, error: BaseException) -> None:
        self.message.error = str(error) or type(error).__name__
        self.settle(TaskState.FAILED)

    def set_title(self, title: Optional[str]) -> None:
        self.title = title
        self._publish(EventType.TITLE, title)

    def set_output(self, output: Optional[str]) -> None:
        self.message.output = output
        self._publish(EventType.OUTPUT, output)

    def attach_subtasks(self, task_list: "TaskList") -> None:
        """Append a subtask list; subtasks are never removed."""
        if task_list not in self.subtask_lists:
            self.subtask_lists.append(task_list)
            self._publish(EventType.SUBTASKS, len(self.subtasks))

    def notify_subtasks_changed(self) -> None:
        self._publish(EventType.SUBTASKS, len(self.subtasks))


# =============================================================================
# Normalized task results
# =============================================================================


@dataclass(frozen=True)
class EmptyResult:
    """The task function returned nothing."""


@dataclass(frozen=True)
class ValueResult:
    """The task function returned a plain value."""

    value: Any


@dataclass(frozen=True)
class SubtaskResult:
    """The task function returned a list of subtasks."""

    task_list: "TaskList"


@dataclass(frozen=True)
class StreamResult:
    """The task function returned an incremental output source."""

    source: Any


TaskResult = Union[EmptyResult, ValueResult, SubtaskResult, StreamResult]
