"""Task states, allowed transitions and per-task message state."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union


class TaskState(Enum):
    """Task execution state."""
    WAITING = "waiting"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    RETRYING = "retrying"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"
    STOPPED = "stopped"


TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.WAITING: frozenset({TaskState.PENDING, TaskState.STOPPED}),
    TaskState.PENDING: frozenset({
        TaskState.COMPLETED,
        TaskState.FAILED,
        TaskState.SKIPPED,
        TaskState.RETRYING,
    }),
    TaskState.RETRYING: frozenset({
        TaskState.RETRYING,
        TaskState.COMPLETED,
        TaskState.FAILED,
        TaskState.SKIPPED,
    }),
    TaskState.FAILED: frozenset({TaskState.ROLLING_BACK}),
    TaskState.ROLLING_BACK: frozenset({TaskState.ROLLED_BACK, TaskState.FAILED}),
    TaskState.COMPLETED: frozenset(),
    TaskState.SKIPPED: frozenset(),
    TaskState.ROLLED_BACK: frozenset(),
    TaskState.STOPPED: frozenset(),
}

# States in which a task function or rollback is executing
ACTIVE_STATES = frozenset({TaskState.PENDING, TaskState.RETRYING, TaskState.ROLLING_BACK})

# States after which the renderer drops prompt and bottom bar data
SETTLED_STATES = frozenset({
    TaskState.COMPLETED,
    TaskState.FAILED,
    TaskState.SKIPPED,
    TaskState.ROLLED_BACK,
})


def can_transition(current: TaskState, target: TaskState) -> bool:
    """Check whether ``target`` is reachable from ``current`` in one step."""
    return target in TRANSITIONS[current]


@dataclass(frozen=True)
class RetryInfo:
    """Retry bookkeeping for a task."""

    count: int
    """Number of retries performed so far"""

    error: Optional[str] = None
    """Error text of the attempt that triggered the retry"""


@dataclass
class Message:
    """Transient, renderable state of a task."""

    output: Optional[str] = None
    """Latest output chunk, may span multiple lines"""

    skip: Union[str, bool, None] = None
    """Skip reason, or True when skipped without one"""

    error: Optional[str] = None
    """Error text of the final failure"""

    retry: Optional[RetryInfo] = None
    """Retry information once the task has been retried"""

    rollback: Optional[str] = None
    """Set to the task title once the task has been rolled back"""

    duration: Optional[float] = None
    """Elapsed seconds once the task settled"""

    def snapshot(self) -> "Message":
        """Return a copy safe to hand out in events."""
        return replace(self)
