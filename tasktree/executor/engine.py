"""Execution engine walking a task tree with per-group concurrency limits."""

import asyncio
import inspect
import logging
import signal
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

from ..core.events import EventBus
from ..core.options import (
    SCOPED_RENDERER_OPTIONS,
    RunOptions,
    concurrency_limit,
)
from ..core.state import TaskState, can_transition
from ..core.task import (
    EmptyResult,
    StreamResult,
    SubtaskResult,
    Task,
    TaskDefinition,
    TaskResult,
    ValueResult,
)
from ..core.wrapper import CancellationToken, TaskWrapper
from ..errors import (
    ConfigurationError,
    RollbackError,
    SignalInterrupt,
    TaskError,
    TaskTreeError,
    ValidationError,
)
from ..formatters import OutputFormatter
from ..renderer.base import Renderer
from ..renderer.selector import get_renderer_class, select_renderer

logger = logging.getLogger(__name__)

# Errors that abort the run regardless of exit_on_error and are never retried
FATAL_ERRORS = (RollbackError, SignalInterrupt, ConfigurationError, ValidationError)


@dataclass
class RunResult:
    """Result of a run that was not aborted."""

    success: bool
    """False when at least one task failed without aborting the run"""

    context: Any
    """Final context value"""

    errors: list[TaskTreeError] = field(default_factory=list)
    """Recorded non-fatal failures, in the order they happened"""


class _SubtasksFailed(Exception):
    """Carries a fatal error raised by a task's own subtask list."""

    def __init__(self, error: TaskTreeError):
        super().__init__(str(error))
        self.error = error


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _evaluate(condition: Any, ctx: Any) -> Any:
    """Evaluate a bool/str option that may also be a (sync or async) predicate."""
    if callable(condition):
        return await _maybe_await(condition(ctx))
    return condition


def _is_definition_sequence(value: Any) -> bool:
    if not isinstance(value, (list, tuple)) or not value:
        return False
    return all(
        isinstance(item, TaskDefinition) or (isinstance(item, Mapping) and "task" in item)
        for item in value
    )


def _is_stream(value: Any) -> bool:
    if isinstance(value, (str, bytes, bytearray, Mapping, list, tuple, set)):
        return False
    return hasattr(value, "__aiter__") or inspect.isgenerator(value) or hasattr(value, "__next__")


def _chunk_to_text(chunk: Any) -> str:
    if isinstance(chunk, (bytes, bytearray)):
        chunk = bytes(chunk).decode("utf-8", errors="replace")
    return str(chunk).rstrip("\r\n")


async def normalize_result(result: Any, wrapper: TaskWrapper) -> TaskResult:
    """Turn whatever a task function returned into a TaskResult.

    Awaitables are awaited first. A TaskList or a sequence of task definitions
    becomes a SubtaskResult, generators and (async) iterators a StreamResult,
    None an EmptyResult, and anything else a ValueResult.
    """
    result = await _maybe_await(result)
    if result is None:
        return EmptyResult()
    if isinstance(result, TaskList):
        return SubtaskResult(result)
    if _is_definition_sequence(result):
        return SubtaskResult(wrapper.new_list(result))
    if _is_stream(result):
        return StreamResult(result)
    return ValueResult(result)


class TaskList:
    """An ordered sibling group of tasks and the scheduler that runs it.

    The root list owns the run: the context, the event bus, the renderer,
    the error list and the cancellation token. Nested lists share them.
    """

    def __init__(
        self,
        tasks: Optional[Sequence[Union[TaskDefinition, Mapping[str, Any]]]] = None,
        options: Union[RunOptions, Mapping[str, Any], None] = None,
        parent: Optional[Task] = None,
    ):
        self._own_options = RunOptions.from_value(options)
        self.options = self._own_options
        self.parent_task: Optional[Task] = None
        self.parent_list: Optional["TaskList"] = None
        self.root: "TaskList" = self
        self.limit: Optional[int] = concurrency_limit(self.options.concurrent)

        self.tasks: list[Task] = []
        self.renderer_options: dict[str, Any] = dict(self.options.renderer_options)

        # Run-wide state, only meaningful on the root list
        self._bus = EventBus()
        self.errors: list[TaskTreeError] = []
        self.token = CancellationToken()
        self.context: Any = None
        self.renderer: Optional[Renderer] = None
        self._interrupted: Optional[asyncio.Event] = None
        self._signals_registered = False

        self._halted = False
        self._started = False

        if parent is not None:
            self.adopt(parent)
        self.add(tasks or [])

    def __repr__(self) -> str:
        return f"TaskList(tasks={len(self.tasks)}, limit={self.limit})"

    @property
    def bus(self) -> EventBus:
        return self.root._bus

    @property
    def is_root(self) -> bool:
        return self.parent_task is None

    def adopt(self, parent: Task) -> None:
        """Bind this list to the task that owns it as subtasks.

        Scheduling options not set on this list are inherited from the list
        the parent task belongs to.
        """
        if self.parent_task is parent:
            return
        unknown = sorted(set(self._own_options.renderer_options) - SCOPED_RENDERER_OPTIONS)
        if unknown:
            raise ConfigurationError(
                f"Renderer option(s) {', '.join(unknown)} can only be set on the root task list"
            )
        self.parent_task = parent
        self.parent_list = parent.owner
        self.root = parent.owner.root
        self.token = self.root.token
        self.errors = self.root.errors
        self.options = self._own_options.inherit(parent.owner.options)
        self.limit = concurrency_limit(self.options.concurrent)

    def scope_layers(self) -> list[Mapping[str, Any]]:
        """Renderer option overrides from this list outwards to the root."""
        layers = []
        task_list: Optional[TaskList] = self
        while task_list is not None:
            layers.append(task_list.renderer_options)
            task_list = task_list.parent_list
        return layers

    def add(self, definitions: Sequence[Union[TaskDefinition, Mapping[str, Any]]]) -> list[Task]:
        """Append tasks to the list.

        Raises:
            ValidationError: If a definition is malformed
        """
        added = []
        for value in definitions:
            definition = TaskDefinition.from_value(value)
            definition.validate()
            task = Task(definition, self)
            self.tasks.append(task)
            added.append(task)
        if added and self.parent_task is not None and self in self.parent_task.subtask_lists:
            self.parent_task.notify_subtasks_changed()
        return added

    # =========================================================================
    # Run entry points
    # =========================================================================

    def run(self, ctx: Any = None) -> RunResult:
        """Run the task list to completion on a new event loop.

        Args:
            ctx: Context shared by every task; defaults to ``options.ctx`` or a new dict

        Returns:
            The run result

        Raises:
            TaskTreeError: When the run is aborted; ``error.context`` holds the final context
        """
        return asyncio.run(self.run_async(ctx))

    async def run_async(self, ctx: Any = None) -> RunResult:
        """Run the task list on the current event loop. See ``run``."""
        if not self.is_root:
            raise ConfigurationError("Only a root task list can be run directly")
        if self._started:
            raise ConfigurationError("A task list can only be run once")
        self._started = True

        if ctx is None:
            ctx = self.options.ctx if self.options.ctx is not None else {}
        self.context = ctx

        error: Optional[TaskTreeError] = None
        try:
            await self._prepare(ctx)
            self.renderer = self._create_renderer()
            self.renderer.render()
            self._register_signal_listeners()
            await self._run_until_interrupted(ctx)
        except TaskTreeError as exc:
            exc.context = ctx
            error = exc
            raise
        finally:
            self._remove_signal_listeners()
            if self.renderer is not None:
                self.renderer.end(error)
            self.bus.close()

        logger.debug("Run finished with %d recorded error(s)", len(self.errors))
        return RunResult(success=not self.errors, context=ctx, errors=list(self.errors))

    def interrupt(self) -> None:
        """Abort the run as if SIGINT was received.

        No new task is started. In-flight task functions are cancelled and
        marked failed, unstarted tasks are marked STOPPED, then the run fails
        with SignalInterrupt.
        """
        root = self.root
        logger.info("Interrupt received, aborting run")
        root.token.cancel("interrupted")
        if root._interrupted is not None:
            root._interrupted.set()

    async def _run_until_interrupted(self, ctx: Any) -> None:
        self._interrupted = asyncio.Event()
        group = asyncio.ensure_future(self._run_group(ctx))
        interrupted = asyncio.ensure_future(self._interrupted.wait())
        try:
            await asyncio.wait({group, interrupted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            interrupted.cancel()
        if not group.done():
            # Cancellation unwinds every nested group before the run fails
            group.cancel()
            await asyncio.wait({group})
            raise SignalInterrupt("Interrupted.")
        group.result()

    def _create_renderer(self) -> Renderer:
        output = OutputFormatter(no_color=self.options.disable_color, console=self.options.console)
        renderer_cls = select_renderer(
            renderer=self.options.renderer,
            fallback_renderer=self.options.fallback_renderer,
            renderer_fallback=self.options.renderer_fallback,
            renderer_silent=self.options.renderer_silent,
            is_terminal=output.console.is_terminal,
        )
        logger.debug("Selected renderer %s", renderer_cls.__name__)
        if renderer_cls is get_renderer_class(self.options.renderer):
            renderer_options = self.options.renderer_options
        elif renderer_cls is get_renderer_class(self.options.fallback_renderer):
            renderer_options = self.options.fallback_renderer_options
        else:
            renderer_options = None
        return renderer_cls(self.tasks, renderer_options, bus=self.bus, output=output)

    def _register_signal_listeners(self) -> None:
        if not self.options.register_signal_listeners:
            return
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, self.interrupt)
        except (NotImplementedError, RuntimeError, ValueError) as exc:
            logger.debug("Signal listeners unavailable: %s", exc)
            return
        self._signals_registered = True

    def _remove_signal_listeners(self) -> None:
        if self._signals_registered:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
            self._signals_registered = False

    # =========================================================================
    # Scheduling
    # =========================================================================

    def _stopping(self) -> bool:
        return self._halted or self.token.reason == "interrupted"

    async def _prepare(self, ctx: Any) -> None:
        """Evaluate ``enabled`` for every task not evaluated yet."""
        for task in self.tasks:
            await self._evaluate_enabled(task, ctx)

    async def _evaluate_enabled(self, task: Task, ctx: Any) -> None:
        if task.enabled_evaluated:
            return
        try:
            enabled = await _evaluate(task.definition.enabled, ctx)
        except Exception as exc:
            raise ValidationError(
                f"Enabled condition of task {task.title or '<anonymous>'} failed: {exc}"
            ) from exc
        task.enabled = bool(enabled)
        task.enabled_evaluated = True
        if not task.enabled:
            logger.debug("Task %r disabled", task.title)

    async def _run_group(self, ctx: Any) -> None:
        """Run this sibling group, never exceeding ``self.limit`` active tasks.

        A fatal failure halts the group: running siblings settle, unstarted
        ones are marked STOPPED, then the first fatal error is raised. When
        the group itself is cancelled, running siblings are cancelled and
        awaited before the unstarted ones are marked STOPPED.
        """
        running: set[asyncio.Future] = set()
        fatal: Optional[BaseException] = None
        index = 0

        try:
            await self._prepare(ctx)
            while True:
                while (
                    not self._stopping()
                    and index < len(self.tasks)
                    and (self.limit is None or len(running) < self.limit)
                ):
                    task = self.tasks[index]
                    index += 1
                    await self._evaluate_enabled(task, ctx)
                    if not task.enabled:
                        continue
                    running.add(asyncio.ensure_future(self._run_task(task, ctx)))

                if not running:
                    break

                done, running = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for future in done:
                    if future.cancelled():
                        continue
                    exc = future.exception()
                    if exc is None:
                        continue
                    if fatal is None:
                        fatal = exc
                        self._halted = True
                        if self.is_root:
                            self.token.cancel("failed")
                        logger.info("Halting task group after failure: %s", exc)
                    else:
                        logger.debug("Additional failure while halting: %s", exc)
        except asyncio.CancelledError:
            for future in running:
                future.cancel()
            if running:
                await asyncio.gather(*running, return_exceptions=True)
            self._mark_stopped(index)
            raise

        if self._stopping():
            self._mark_stopped(index)

        if fatal is not None:
            raise fatal

    def _mark_stopped(self, index: int) -> None:
        for task in self.tasks[index:]:
            if task.enabled and task.state == TaskState.WAITING:
                task.transition(TaskState.STOPPED)

    async def _run_task(self, task: Task, ctx: Any) -> None:
        """Run one task through its attempts, failure handling and rollback.

        Returns normally when the task settled without aborting the group,
        raises the error when the failure is fatal for the group.
        """
        task.transition(TaskState.PENDING)
        logger.debug("Task %r started", task.title)
        try:
            await self._attempt(task, ctx)
        except asyncio.CancelledError:
            if task.is_active:
                task.mark_failed(SignalInterrupt("Interrupted."))
            raise

    async def _attempt(self, task: Task, ctx: Any) -> None:
        while True:
            wrapper = TaskWrapper(task, self)
            task.skip_requested = None
            retryable = True
            try:
                skip = await _evaluate(task.definition.skip, ctx)
                if skip:
                    task.mark_skipped(skip)
                    logger.debug("Task %r skipped", task.title)
                    return
                await self._execute(task, ctx, wrapper)
            except _SubtasksFailed as failure:
                error: BaseException = failure.error
                retryable = False
            except TaskTreeError as exc:
                error = exc
            except Exception as exc:
                error = TaskError(task.title, exc)
            else:
                if task.skip_requested:
                    task.mark_skipped(task.skip_requested)
                else:
                    task.settle(TaskState.COMPLETED)
                return

            if isinstance(error, FATAL_ERRORS):
                if can_transition(task.state, TaskState.FAILED):
                    task.mark_failed(error)
                raise error

            if retryable and task.retry_count < task.definition.retry:
                logger.info(
                    "Task %r failed, retrying (%d/%d): %s",
                    task.title,
                    task.retry_count + 1,
                    task.definition.retry,
                    error,
                )
                task.mark_retrying(error)
                continue

            task.mark_failed(error)
            await self._handle_failure(task, error, ctx)
            return

    async def _execute(self, task: Task, ctx: Any, wrapper: TaskWrapper) -> None:
        result = await normalize_result(task.definition.task(ctx, wrapper), wrapper)
        await self._consume(task, result, ctx)

    async def _consume(self, task: Task, result: TaskResult, ctx: Any) -> None:
        if isinstance(result, ValueResult):
            task.result = result.value
        elif isinstance(result, SubtaskResult):
            child = result.task_list
            child.adopt(task)
            task.attach_subtasks(child)
            try:
                await child._run_group(ctx)
            except TaskTreeError as exc:
                raise _SubtasksFailed(exc) from exc
        elif isinstance(result, StreamResult):
            source = result.source
            if hasattr(source, "__aiter__"):
                async for chunk in source:
                    task.set_output(_chunk_to_text(chunk))
            else:
                for chunk in source:
                    task.set_output(_chunk_to_text(chunk))
                    await asyncio.sleep(0)

    async def _handle_failure(self, task: Task, error: TaskTreeError, ctx: Any) -> None:
        """Apply rollback and exit-on-error policy to a finally failed task."""
        if task.definition.rollback is not None:
            await self._rollback(task, error, ctx)
            if self.options.exit_after_rollback is not False:
                raise error
            self.errors.append(error)
            return

        if await self._exit_on_error(task, ctx):
            raise error
        logger.info("Task %r failed without aborting the run: %s", task.title, error)
        self.errors.append(error)

    async def _rollback(self, task: Task, error: TaskTreeError, ctx: Any) -> None:
        logger.info("Rolling back task %r after: %s", task.title, error)
        task.transition(TaskState.ROLLING_BACK)
        wrapper = TaskWrapper(task, self)
        try:
            result = await normalize_result(task.definition.rollback(ctx, wrapper), wrapper)
            await self._consume(task, result, ctx)
        except _SubtasksFailed as failure:
            task.mark_failed(failure.error)
            raise RollbackError(task.title, failure.error) from failure.error
        except Exception as exc:
            task.mark_failed(exc)
            raise RollbackError(task.title, exc) from exc
        task.message.rollback = task.title
        task.settle(TaskState.ROLLED_BACK)

    async def _exit_on_error(self, task: Task, ctx: Any) -> bool:
        """Whether a failure of ``task`` aborts its group.

        The nearest setting wins, looking at the task, then its list, then
        the task owning that list and so on up to the root list. Defaults to
        True.

        Raises:
            ValidationError: If an exit_on_error predicate fails
        """
        node: Optional[Task] = task
        while node is not None:
            own = node.definition.exit_on_error
            if own is not None:
                try:
                    return bool(await _evaluate(own, ctx))
                except Exception as exc:
                    raise ValidationError(
                        f"Exit on error condition of task {node.title or '<anonymous>'} failed: {exc}"
                    ) from exc
            if node.owner._own_options.exit_on_error is not None:
                return node.owner._own_options.exit_on_error
            node = node.owner.parent_task
        return True
