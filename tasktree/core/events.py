"""Publish/subscribe channel for task state change notifications.

Events are a wake-up signal, not a log: there is no buffering or replay, and
subscribers are expected to re-read the task tree rather than rely on payloads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .state import Message, TaskState


class EventType(Enum):
    """Kinds of task notifications."""
    TITLE = "title"
    STATE = "state"
    SUBTASKS = "subtasks"
    OUTPUT = "output"
    CLOSED = "closed"


@dataclass(frozen=True)
class TaskEvent:
    """A single notification published on the bus."""

    type: EventType
    """What changed"""

    task_id: Optional[str] = None
    """Id of the task that changed, None for run-level events"""

    state: Optional[TaskState] = None
    """State of the task right after the change"""

    message: Optional[Message] = None
    """Snapshot of the task message right after the change"""

    data: Any = None
    """Event specific payload (new title, output chunk, ...)"""


Subscriber = Callable[[TaskEvent], None]


class EventBus:
    """Synchronous broadcast to the current set of subscribers."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []
        self.closed = False

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber.

        Args:
            callback: Called with every event published from now on

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: TaskEvent) -> None:
        """Deliver an event to every subscriber, in subscription order."""
        if self.closed:
            return
        for callback in list(self._subscribers):
            callback(event)

    def close(self) -> None:
        """Publish the CLOSED event and stop delivering further events."""
        if self.closed:
            return
        self.publish(TaskEvent(type=EventType.CLOSED))
        self.closed = True
        self._subscribers.clear()
