"""Handle passed to running task functions."""

import inspect
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence, Union

from ..errors import TaskError
from .state import RetryInfo

if TYPE_CHECKING:
    from ..executor.engine import TaskList
    from .options import RunOptions
    from .task import Task, TaskDefinition


class CancellationToken:
    """Cooperative cancellation flag shared by every task of a run."""

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason


class TaskOutput:
    """Minimal writable stream that forwards written text to a task's output."""

    def __init__(self, task: "Task"):
        self._task = task

    def write(self, data: Union[str, bytes]) -> int:
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        text = data.rstrip("\r\n")
        if text.strip():
            self._task.set_output(text)
        return len(data)

    def writelines(self, lines: Sequence[Union[str, bytes]]) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        pass

    def isatty(self) -> bool:
        return False


class TaskWrapper:
    """What a task function sees of its task.

    A fresh wrapper is created for every attempt and for the rollback.
    """

    def __init__(self, task: "Task", task_list: "TaskList"):
        self._task = task
        self._task_list = task_list

    @property
    def task(self) -> "Task":
        return self._task

    @property
    def title(self) -> Optional[str]:
        return self._task.title

    @title.setter
    def title(self, value: Optional[str]) -> None:
        self._task.set_title(value)

    @property
    def output(self) -> Optional[str]:
        return self._task.output

    @output.setter
    def output(self, value: Any) -> None:
        self._task.set_output(None if value is None else str(value))

    @property
    def cancelled(self) -> bool:
        """True once the run stopped starting new tasks (failure or interrupt)."""
        return self._task_list.token.cancelled

    def new_list(
        self,
        tasks: Sequence[Union["TaskDefinition", Mapping[str, Any]]],
        options: Union["RunOptions", Mapping[str, Any], None] = None,
    ) -> "TaskList":
        """Create a subtask list owned by this task.

        Return the list from the task function to run it as this task's subtasks.
        """
        from ..executor.engine import TaskList

        return TaskList(tasks, options, parent=self._task)

    def skip(self, message: Optional[str] = None) -> None:
        """Mark the task as skipped once the task function returns."""
        self._task.skip_requested = message or True

    def report(self, error: BaseException) -> None:
        """Record a non-fatal error in the run's error list."""
        if not isinstance(error, TaskError):
            error = TaskError(self._task.title, error)
        self._task_list.root.errors.append(error)

    def is_retry(self) -> Optional[RetryInfo]:
        """Retry information when this attempt is a retry, else None."""
        return self._task.message.retry

    def stdout(self) -> TaskOutput:
        """File-like object whose writes become the task's output."""
        return TaskOutput(self._task)

    async def prompt(self, prompt: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run an interactive prompt and return its answer.

        While the prompt runs, the task's output is shown in the renderer's
        prompt region instead of under the task title.

        Args:
            prompt: Callable returning the answer, or an awaitable of it
        """
        self._task.prompt_active = True
        try:
            answer = prompt(*args, **kwargs)
            if inspect.isawaitable(answer):
                answer = await answer
            return answer
        finally:
            self._task.prompt_active = False
