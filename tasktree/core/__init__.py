"""Task model: state machine, events, options and the task wrapper."""

from .events import EventBus, EventType, TaskEvent
from .options import DefaultRendererOptions, RunOptions, TaskRendererOptions, resolve
from .state import Message, RetryInfo, TaskState
from .task import EmptyResult, StreamResult, SubtaskResult, Task, TaskDefinition, ValueResult
from .wrapper import CancellationToken, TaskWrapper

__all__ = [
    "EventBus",
    "EventType",
    "TaskEvent",
    "DefaultRendererOptions",
    "RunOptions",
    "TaskRendererOptions",
    "resolve",
    "Message",
    "RetryInfo",
    "TaskState",
    "EmptyResult",
    "StreamResult",
    "SubtaskResult",
    "Task",
    "TaskDefinition",
    "ValueResult",
    "CancellationToken",
    "TaskWrapper",
]
