"""Exception taxonomy for task list runs."""

from typing import Any, Optional


class TaskTreeError(Exception):
    """Base class for all errors raised by tasktree.

    Attributes:
        context: The final context value of the run the error escaped from
    """

    def __init__(self, message: str, context: Any = None):
        super().__init__(message)
        self.context = context


class TaskError(TaskTreeError):
    """Raised when a task function fails.

    The original exception is kept both as ``original`` and as ``__cause__``.
    """

    def __init__(self, task_title: Optional[str], original: BaseException, context: Any = None):
        super().__init__(str(original) or type(original).__name__, context)
        self.task_title = task_title
        self.original = original
        self.__cause__ = original


class RollbackError(TaskTreeError):
    """Raised when a rollback function fails. Always fatal to the run."""

    def __init__(self, task_title: Optional[str], original: BaseException, context: Any = None):
        super().__init__(str(original) or type(original).__name__, context)
        self.task_title = task_title
        self.original = original
        self.__cause__ = original


class SignalInterrupt(TaskTreeError):
    """Raised when the run is interrupted by an external signal."""


class ConfigurationError(TaskTreeError):
    """Raised when run or renderer options are invalid."""


class ValidationError(TaskTreeError):
    """Raised when a task definition is malformed."""


class InvalidTransitionError(TaskTreeError):
    """Raised when a task is moved to a state its current state cannot reach."""
