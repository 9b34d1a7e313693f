"""Interactive renderer redrawing the whole task tree in place.

Uses a Rich Live display with manual refresh. A frame is recomputed from the
current task tree on every bus event and on a spinner tick; the bottom bar
and prompt regions are kept by the renderer between frames.
"""

import asyncio
import logging
from collections import deque
from typing import Callable, Optional

from rich.live import Live
from rich.text import Text

from ..core.events import EventType, TaskEvent
from ..core.options import DefaultRendererOptions, validate_renderer_options
from ..errors import ConfigurationError
from ..utils.string_utils import TextLike, format_duration, indent, strip, to_text, truncate, wrap
from .base import Renderer

logger = logging.getLogger(__name__)

# Extra indent of continuation rows of a multi-line string
SUB_INDENT = 2


class DefaultRenderer(Renderer):
    """Live updating tree renderer for interactive terminals."""

    nontty = False
    options_class = DefaultRendererOptions

    TICK_INTERVAL = 0.1

    def __init__(self, *args, columns: Optional[Callable[[], int]] = None, **kwargs):
        """Initialize the renderer.

        Args:
            columns: Terminal width provider; defaults to the console width

        Raises:
            ConfigurationError: If the renderer options are invalid
        """
        super().__init__(*args, **kwargs)
        validate_renderer_options(self.options)
        self._columns = columns or (lambda: self.console.width)

        # Region buffers, keyed by task id
        self._bottom_bar: dict[str, deque] = {}
        self._prompt_bar: Optional[str] = None
        self._prompt_owner: Optional[str] = None

        self.spinner_position = 0
        self.live: Optional[Live] = None
        self._timer: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._drawing = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def render(self) -> None:
        """Start the live display and the spinner tick."""
        if self.live is not None:
            return

        self._unsubscribe = self.bus.subscribe(self._on_event)
        self.live = Live(
            self.create_render(),
            console=self.console,
            auto_refresh=False,
            transient=True,
        )
        self.live.start()
        self.live.refresh()

        if not self.options.lazy:
            try:
                self._timer = asyncio.get_running_loop().create_task(self._tick())
            except RuntimeError:
                logger.debug("No running event loop, spinner tick disabled")

    def end(self, error: Optional[BaseException] = None) -> None:
        """Stop redrawing and leave the final frame in the scrollback."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.live is not None:
            self.live.stop()
            self.live = None

        if not self.options.clear_output:
            frame = self.create_render(prompt=False)
            if frame.plain.strip():
                self.output.print(frame)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.TICK_INTERVAL)
            self.spinner_position = (self.spinner_position + 1) % len(self.symbols.spinner)
            self._redraw()

    def _on_event(self, event: TaskEvent) -> None:
        if event.type != EventType.CLOSED:
            self._redraw()

    def _redraw(self) -> None:
        # Triggers arriving while a frame is being drawn are dropped
        if self._drawing or self.live is None:
            return
        self._drawing = True
        try:
            frame = self.create_render()
            if frame.plain.strip():
                self.live.update(frame, refresh=True)
        finally:
            self._drawing = False

    # =========================================================================
    # Frame composition
    # =========================================================================

    def create_render(self, tasks: bool = True, bottom_bar: bool = True, prompt: bool = True) -> Text:
        """Compose a full frame from the current task tree.

        Args:
            tasks: Include the task tree
            bottom_bar: Include the bottom bar region
            prompt: Include the prompt region

        Returns:
            The frame; empty when there is nothing to show
        """
        # The tree is always walked since it feeds the region buffers
        sections = [
            self._render_tasks(self.tasks) if tasks else [],
            self._render_bottom_bar() if bottom_bar else [],
            self._render_prompt() if prompt else [],
        ]

        frame = Text()
        for lines in sections:
            if not any(line.plain.strip() for line in lines):
                continue
            if frame.plain:
                frame.append("\n\n")
            frame.append_text(Text("\n").join(lines))
        return frame

    def _render_tasks(self, tasks: list, level: int = 0) -> list[Text]:
        output: list[Text] = []

        for task in tasks:
            if not task.enabled:
                continue

            if task.has_title:
                output.extend(self._title_line(task, level))

            show_subtasks = self.option(task, "show_subtasks") is not False
            if not task.has_subtasks or not show_subtasks:
                if (
                    task.has_failed
                    and self.option(task, "collapse_errors") is False
                    and (self.option(task, "show_error_message") or not show_subtasks)
                ):
                    output.extend(self._dump(task, level, task.message.error))
                elif (
                    task.is_skipped
                    and self.option(task, "collapse_skips") is False
                    and (self.option(task, "show_skip_message") or not show_subtasks)
                ):
                    output.extend(self._dump(task, level, task.message.skip))

            if task.output:
                output.extend(self._route_output(task, level))

            if show_subtasks and task.has_subtasks and self._expand_subtasks(task):
                subtasks = task.subtasks
                sub_level = level + 1 if task.has_title else level
                rendered = self._render_tasks(subtasks, sub_level)
                if any(line.plain.strip() for line in rendered) and any(sub.has_title for sub in subtasks):
                    output.extend(rendered)

            if task.is_settled:
                if self._prompt_owner == task.id:
                    self._prompt_bar = None
                    self._prompt_owner = None
                if not task.renderer_options.persistent_output:
                    self._bottom_bar.pop(task.id, None)

        return output

    def _title_line(self, task, level: int) -> list[Text]:
        title = task.title

        if task.is_stopped:
            return self.format_string(title, Text(self.symbols.SquareSmallFilled, style="red"), level)

        if task.has_failed and self.option(task, "collapse_errors"):
            error = task.message.error
            if not task.has_subtasks and error and self.option(task, "show_error_message"):
                title = error
        elif task.is_skipped and self.option(task, "collapse_skips"):
            reason = task.message.skip
            if isinstance(reason, str) and reason and self.option(task, "show_skip_message"):
                title = reason
            title = self._suffix(title, "SKIPPED", self.option(task, "suffix_skips"))
        elif task.is_retrying and self.option(task, "suffix_retries"):
            count = task.message.retry.count if task.message.retry else task.retry_count
            title = self._suffix(title, f"RETRYING-{count}")
        elif task.is_completed and (self.option(task, "show_timer") or task.renderer_options.show_timer):
            if task.message.duration is not None:
                title = Text.assemble(title, " ", (f"[{format_duration(task.message.duration)}]", "dim"))

        return self.format_string(title, self._symbol(task), level)

    def _dump(self, task, level: int, data) -> list[Text]:
        if not isinstance(data, str):
            return []
        if task.has_title and data == task.title:
            return []
        return self.format_string(data, self._symbol(task, data=True), level + 1)

    def _route_output(self, task, level: int) -> list[Text]:
        if task.is_active and task.is_prompt:
            self._prompt_bar = task.output
            self._prompt_owner = task.id
            return []

        options = task.renderer_options
        if options.bottom_bar_items or not task.has_title:
            buffer = self._bottom_bar.get(task.id)
            if buffer is None:
                buffer = deque(maxlen=options.bottom_bar_items or 1)
                self._bottom_bar[task.id] = buffer
            if not task.is_skipped and (not buffer or buffer[-1] != task.output):
                buffer.append(task.output)
            return []

        if task.is_active or options.persistent_output:
            return self.format_string(task.output, self._symbol(task, data=True), level + 1)
        return []

    def _expand_subtasks(self, task) -> bool:
        if task.is_pending or task.has_failed:
            return True
        if task.is_completed and not task.has_title:
            return True
        return any(
            self.option(subtask, "collapse") is False or subtask.has_failed or subtask.has_rolled_back
            for subtask in task.subtasks
        )

    def _render_bottom_bar(self) -> list[Text]:
        lines: list[Text] = []
        icon = self.symbols.PointerSmall
        for buffer in self._bottom_bar.values():
            for item in buffer:
                lines.extend(self.format_string(item, icon, 0))
        return lines

    def _render_prompt(self) -> list[Text]:
        if not self._prompt_bar:
            return []
        return [Text(self._prompt_bar)]

    # =========================================================================
    # Line formatting
    # =========================================================================

    @staticmethod
    def _suffix(message: TextLike, suffix: str, condition: Optional[bool] = True) -> TextLike:
        if condition is False:
            return message
        return Text.assemble(message, (f" [{suffix}]", "dim"))

    def _symbol(self, task, data: bool = False) -> Text:
        """Status figure of a task, or of its data lines when ``data`` is set."""
        sym = self.symbols
        lazy = self.options.lazy
        frame = sym.spinner[self.spinner_position % len(sym.spinner)]

        if not data:
            if task.is_pending:
                titled_subtasks = any(subtask.has_title for subtask in task.subtasks)
                if lazy or (self.option(task, "show_subtasks") is not False and titled_subtasks):
                    return Text(sym.Pointer, style="yellow")
                return Text(frame, style="bright_yellow")
            if task.is_completed:
                if any(subtask.has_failed for subtask in task.subtasks):
                    return Text(sym.Warning, style="yellow")
                return Text(sym.Tick, style="green")
            if task.is_retrying:
                return Text(sym.Warning if lazy else frame, style="dark_orange")
            if task.is_rolling_back:
                return Text(sym.Warning if lazy else frame, style="red")
            if task.has_rolled_back:
                return Text(sym.ArrowLeft, style="red")
            if task.has_failed:
                return Text(sym.Pointer if task.has_subtasks else sym.Cross, style="red")
            if task.is_stopped:
                return Text(sym.SquareSmallFilled, style="red")

        if task.is_skipped:
            if data or self.option(task, "collapse_skips"):
                return Text(sym.ArrowDown, style="yellow")
            return Text(sym.Warning, style="yellow")

        if data:
            return Text(sym.PointerSmall)
        return Text(sym.SquareSmallFilled, style="dim")

    def format_string(self, value: TextLike, icon: TextLike, level: int) -> list[Text]:
        """Lay out ``icon value`` for the given tree level.

        Each line fits in the terminal width minus the level indent. Rows after
        the first are indented by two spaces.

        Args:
            value: Text to show, possibly multi-line
            icon: Status figure prefix
            level: Depth in the tree

        Returns:
            The formatted lines; empty when the text is blank

        Raises:
            ConfigurationError: If format_output is unknown
        """
        text = to_text(value)
        if not text.plain.strip():
            return []

        indentation = self.options.indentation
        columns = max(1, self._columns() - level * indentation - 2)
        composed = Text.assemble(to_text(icon), " ", text)
        rows = composed.split("\n", allow_blank=True)

        lines: list[Text] = []
        if self.options.format_output == "truncate":
            for index, row in enumerate(rows):
                row = strip(row)
                if index:
                    row = indent(row, SUB_INDENT)
                lines.append(truncate(row, columns) if row.plain else row)
        elif self.options.format_output == "wrap":
            first = True
            for row in rows:
                row = strip(row)
                if not row.plain:
                    lines.append(row)
                    continue
                for part in wrap(row, max(1, columns - SUB_INDENT), self.console):
                    part = strip(part)
                    lines.append(part if first else indent(part, SUB_INDENT))
                    first = False
        else:
            raise ConfigurationError(f"Format option for the renderer is wrong: {self.options.format_output!r}")

        if self.options.remove_empty_lines:
            lines = [line for line in lines if line.plain]

        return [indent(line, level * indentation) for line in lines]
