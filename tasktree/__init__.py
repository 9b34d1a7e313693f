"""Run trees of async tasks with a live terminal view.

Usage:
    from tasktree import TaskList

    tasks = TaskList(
        [
            {"title": "Fetch", "task": fetch},
            {"title": "Build", "task": build, "retry": 2},
        ],
        options={"concurrent": False},
    )
    result = tasks.run()
"""

import logging

from .core import RunOptions, TaskDefinition, TaskState, TaskWrapper
from .errors import (
    ConfigurationError,
    InvalidTransitionError,
    RollbackError,
    SignalInterrupt,
    TaskError,
    TaskTreeError,
    ValidationError,
)
from .executor.engine import RunResult, TaskList
from .renderer import DefaultRenderer, FallbackRenderer, Renderer, SilentRenderer

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "TaskList",
    "RunResult",
    "RunOptions",
    "TaskDefinition",
    "TaskState",
    "TaskWrapper",
    "TaskTreeError",
    "TaskError",
    "RollbackError",
    "SignalInterrupt",
    "ConfigurationError",
    "ValidationError",
    "InvalidTransitionError",
    "Renderer",
    "DefaultRenderer",
    "FallbackRenderer",
    "SilentRenderer",
]
