"""Run and renderer configuration with layered resolution.

Options for nested task lists are resolved explicitly: a value set on the
innermost scope wins, then each enclosing scope is consulted, then the
global defaults.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar, Union

from ..errors import ConfigurationError

T = TypeVar("T")

FORMAT_OUTPUT_CHOICES = ("truncate", "wrap")


@dataclass
class RunOptions:
    """Options of one task list.

    ``None`` means "inherit from the enclosing list"; the root list falls back
    to the documented defaults.
    """

    concurrent: Union[bool, int, None] = None
    """False runs tasks one by one, True runs all at once, n caps the group"""

    exit_on_error: Optional[bool] = None
    """Stop starting new tasks once one fails (default True)"""

    exit_after_rollback: Optional[bool] = None
    """Fail the run once a rollback has finished (default True)"""

    ctx: Any = None
    """Initial context value; a fresh dict is used when omitted"""

    register_signal_listeners: bool = True
    """Turn SIGINT into a final render plus SignalInterrupt"""

    renderer: Any = "default"
    """Requested renderer: "default", "fallback", "silent" or a Renderer class"""

    fallback_renderer: Any = "fallback"
    """Renderer used when the requested one cannot drive the output stream"""

    renderer_fallback: Union[bool, Callable[[], bool], None] = None
    """Force (or forbid) the fallback renderer; None decides from the console"""

    renderer_silent: Union[bool, Callable[[], bool], None] = None
    """Force the silent renderer"""

    disable_color: bool = False
    """Render without colors and with ASCII figures"""

    renderer_options: dict[str, Any] = field(default_factory=dict)
    """Renderer options; on subtask lists only scope overridable keys apply"""

    fallback_renderer_options: dict[str, Any] = field(default_factory=dict)
    """Options of the fallback renderer"""

    console: Any = None
    """rich Console to render to; defaults to one on stdout"""

    @classmethod
    def from_value(cls, value: Union["RunOptions", Mapping[str, Any], None]) -> "RunOptions":
        return coerce_options(cls, value)

    def inherit(self, parent: "RunOptions") -> "RunOptions":
        """Fill unset scheduling options from the enclosing list's options."""
        return replace(
            self,
            concurrent=self.concurrent if self.concurrent is not None else parent.concurrent,
            exit_on_error=self.exit_on_error if self.exit_on_error is not None else parent.exit_on_error,
            exit_after_rollback=(
                self.exit_after_rollback
                if self.exit_after_rollback is not None
                else parent.exit_after_rollback
            ),
        )


@dataclass
class DefaultRendererOptions:
    """Global options of the default renderer."""

    indentation: int = 2
    clear_output: bool = False
    show_subtasks: bool = True
    collapse: bool = True
    collapse_skips: bool = True
    show_skip_message: bool = True
    suffix_skips: bool = True
    collapse_errors: bool = True
    show_error_message: bool = True
    suffix_retries: bool = True
    lazy: bool = False
    show_timer: bool = False
    remove_empty_lines: bool = True
    format_output: str = "truncate"

    @classmethod
    def from_value(cls, value: Union["DefaultRendererOptions", Mapping[str, Any], None]) -> "DefaultRendererOptions":
        return coerce_options(cls, value)


# Keys of DefaultRendererOptions a subtask list may override for its scope
SCOPED_RENDERER_OPTIONS = frozenset({
    "show_subtasks",
    "collapse",
    "collapse_skips",
    "show_skip_message",
    "suffix_skips",
    "collapse_errors",
    "show_error_message",
    "suffix_retries",
    "show_timer",
})


@dataclass
class TaskRendererOptions:
    """Per-task options of the default renderer."""

    bottom_bar: Union[bool, int] = False
    """Route output to the bottom bar; an int keeps that many items"""

    persistent_output: bool = False
    """Keep the output after the task settles"""

    show_timer: bool = False
    """Show the elapsed time once the task completes"""

    @classmethod
    def from_value(cls, value: Union["TaskRendererOptions", Mapping[str, Any], None]) -> "TaskRendererOptions":
        return coerce_options(cls, value)

    @property
    def bottom_bar_items(self) -> int:
        """Number of output items retained in the bottom bar (0 when disabled)."""
        if isinstance(self.bottom_bar, bool):
            return 1 if self.bottom_bar else 0
        return max(0, self.bottom_bar)


def coerce_options(cls: type[T], value: Any) -> T:
    """Build an options dataclass from an instance, a mapping or None.

    Args:
        cls: The options dataclass
        value: Existing instance, keyword mapping, or None for defaults

    Returns:
        An instance of ``cls``

    Raises:
        ConfigurationError: If the mapping has unknown keys or the value type is wrong
    """
    if value is None:
        return cls()
    if isinstance(value, cls):
        return value
    if not isinstance(value, Mapping):
        raise ConfigurationError(
            f"{cls.__name__} expects a mapping or {cls.__name__} instance, got {type(value).__name__}"
        )
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(value) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} option(s): {', '.join(unknown)}")
    return cls(**value)


def resolve(key: str, layers: Iterable[Optional[Mapping[str, Any]]], defaults: Any) -> Any:
    """Resolve an option from the innermost layer outwards.

    Args:
        key: Option name
        layers: Override mappings ordered innermost first; None entries are skipped
        defaults: Object holding the global value as an attribute

    Returns:
        The first non-None value found, else the global value
    """
    for layer in layers:
        if layer and layer.get(key) is not None:
            return layer[key]
    return getattr(defaults, key)


def concurrency_limit(concurrent: Union[bool, int, None]) -> Optional[int]:
    """Normalize the ``concurrent`` option.

    Returns:
        Maximum number of active tasks in a sibling group, None when unbounded

    Raises:
        ConfigurationError: If an integer limit is lower than 1
    """
    if concurrent is None or concurrent is False:
        return 1
    if concurrent is True:
        return None
    if not isinstance(concurrent, int) or concurrent < 1:
        raise ConfigurationError(f"concurrent must be a bool or an integer >= 1, got {concurrent!r}")
    return concurrent


def validate_renderer_options(options: DefaultRendererOptions) -> None:
    """Validate options that can only be checked at render time."""
    if options.format_output not in FORMAT_OUTPUT_CHOICES:
        raise ConfigurationError(
            f"Format option for the renderer is wrong: {options.format_output!r} "
            f"(expected one of {', '.join(FORMAT_OUTPUT_CHOICES)})"
        )
    if options.indentation < 0:
        raise ConfigurationError(f"indentation must be >= 0, got {options.indentation}")
