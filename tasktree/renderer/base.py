"""Renderer base class for execution progress reporting.

Provides the abstract interface for rendering a task tree.
See default.py, fallback.py and silent.py for implementations.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional

from ..core.events import EventBus
from ..core.options import resolve
from ..formatters import OutputFormatter

if TYPE_CHECKING:
    from ..core.task import Task


class Renderer(ABC):
    """Abstract base class for task tree renderers.

    A renderer is bound to the root task list at run start. It subscribes to
    the run's event bus and reads the task tree whenever it needs to draw;
    it never mutates tasks.
    """

    nontty: bool = False
    """Whether the renderer can drive a non-interactive output stream"""

    options_class: Optional[type] = None
    """Dataclass holding the renderer's global options"""

    def __init__(
        self,
        tasks: list["Task"],
        options: Optional[Mapping[str, Any]],
        bus: EventBus,
        output: OutputFormatter,
    ):
        """Initialize the renderer.

        Args:
            tasks: Root task list (the live sequence the scheduler appends to)
            options: Renderer option mapping from the run options
            bus: Event bus of the run
            output: OutputFormatter owning the console
        """
        self.tasks = tasks
        self.bus = bus
        self.output = output
        self.options = self.options_class.from_value(options) if self.options_class else None

    @property
    def console(self):
        return self.output.console

    @property
    def symbols(self):
        return self.output.symbols

    def option(self, task: "Task", key: str) -> Any:
        """Resolve a renderer option for a task: its scope, enclosing scopes, then global."""
        return resolve(key, task.owner.scope_layers(), self.options)

    def iter_tasks(self, tasks: Optional[list["Task"]] = None) -> Iterator["Task"]:
        """Iterate the task tree depth-first."""
        for task in self.tasks if tasks is None else tasks:
            yield task
            yield from self.iter_tasks(task.subtasks)

    def find_task(self, task_id: Optional[str]) -> Optional["Task"]:
        """Find a task of the tree by id."""
        for task in self.iter_tasks():
            if task.id == task_id:
                return task
        return None

    @abstractmethod
    def render(self) -> None:
        """Start rendering."""
        pass

    @abstractmethod
    def end(self, error: Optional[BaseException] = None) -> None:
        """Stop rendering and release the terminal.

        Args:
            error: The error that aborted the run, if any
        """
        pass
