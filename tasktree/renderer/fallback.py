"""Fallback renderer for simple line-based progress reporting.

Used when the output stream is not interactive (pipes, CI logs) or when
explicitly requested. Prints one line per task state change or output
chunk; nothing is ever redrawn.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from rich.text import Text

from ..core.events import EventType, TaskEvent
from ..core.options import coerce_options
from ..core.state import TaskState
from ..utils.string_utils import format_duration
from .base import Renderer


@dataclass
class FallbackRendererOptions:
    """Options of the fallback renderer."""

    use_icons: bool = True
    """Prefix lines with a status figure"""

    show_timer: bool = False
    """Append the duration to completed tasks"""

    log_title_change: bool = True
    """Print a line when a running task changes its title"""

    @classmethod
    def from_value(cls, value: Union["FallbackRendererOptions", Mapping[str, Any], None]) -> "FallbackRendererOptions":
        return coerce_options(cls, value)


class FallbackRenderer(Renderer):
    """Line-logging renderer for non-interactive output."""

    nontty = True
    options_class = FallbackRendererOptions

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._unsubscribe = None

    def render(self) -> None:
        """Subscribe to the run's events."""
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(self._on_event)

    def end(self, error: Optional[BaseException] = None) -> None:
        """Unsubscribe from the run's events."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _line(self, tag: str, message: str, icon: str = "", style: str = "") -> Text:
        line = Text()
        if icon and self.options.use_icons:
            line.append(f"{icon} ", style=style)
        line.append(f"[{tag}]", style=style or "dim")
        line.append(" ")
        line.append(message)
        return line

    def _on_event(self, event: TaskEvent) -> None:
        task = self.find_task(event.task_id)
        if task is None:
            return

        if event.type == EventType.STATE:
            line = self._format_state(task, event.state)
        elif event.type == EventType.OUTPUT:
            line = self._format_output(event.data)
        elif event.type == EventType.TITLE and self.options.log_title_change and task.is_active:
            line = self._line("TITLE", event.data) if event.data else None
        else:
            line = None

        if line is not None:
            self.output.print(line)

    def _format_state(self, task, state: Optional[TaskState]) -> Optional[Text]:
        sym = self.symbols
        title = task.title
        message = task.message

        if state == TaskState.FAILED:
            return self._line("FAILED", message.error or title or "", sym.Cross, "red")
        if state == TaskState.SKIPPED:
            reason = message.skip if isinstance(message.skip, str) else title
            return self._line("SKIPPED", reason or "", sym.ArrowDown, "yellow")

        # Anonymous tasks only report failures and skips
        if not title:
            return None

        if state == TaskState.PENDING:
            return self._line("STARTED", title, sym.Play)
        if state == TaskState.COMPLETED:
            text = title
            if message.duration is not None and (
                self.option(task, "show_timer") or task.renderer_options.show_timer
            ):
                text = f"{title} [{format_duration(message.duration)}]"
            return self._line("COMPLETED", text, sym.Tick, "green")
        if state == TaskState.RETRYING:
            count = message.retry.count if message.retry else task.retry_count
            return self._line("RETRY", f"{title} ({count}/{task.definition.retry})", sym.Refresh, "dark_orange")
        if state == TaskState.ROLLING_BACK:
            return self._line("ROLLBACK", title, sym.ArrowLeft, "red")
        if state == TaskState.ROLLED_BACK:
            return self._line("ROLLED BACK", title, sym.ArrowLeft, "red")
        return None

    def _format_output(self, data: Any) -> Optional[Text]:
        if not data or not str(data).strip():
            return None
        lines = [line for line in str(data).splitlines() if line.strip()]
        text = Text()
        for index, line in enumerate(lines):
            if index:
                text.append("\n")
            text.append_text(self._line("DATA", line, self.symbols.PointerSmall))
        return text
